"""
Persistence contract between the care core and the surrounding record storage.

Key patterns:
- Protocol-based dependency injection (services never import a concrete store)
- Plain dict records in, plain dict records out
- Optimistic concurrency through a store-managed ``version`` field
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, NamedTuple, Protocol

from pydantic import BaseModel

Record = dict[str, Any]


class RecordKind(str, Enum):
    """Collections the core reads from and writes to."""

    PATIENTS = "patients"
    PRESCRIPTIONS = "prescriptions"
    REMINDERS = "reminders"
    SYMPTOM_SUBMISSIONS = "symptom_submissions"
    VILLAGE_DAILY_STATS = "village_daily_stats"
    HEALTH_RECORDS = "health_records"


class Order(NamedTuple):
    """Sort instruction for ``RecordStore.query``."""

    field: str
    descending: bool = False


class RecordStore(Protocol):
    """
    Protocol defining the key-value persistence layer the core runs against.

    Why Protocol over ABC: structural typing, trivial test doubles, no coupling
    to a storage backend.

    Contract:
    - ``query`` filters on field equality only; there are no range filters.
      A negative ``limit`` raises ``ValueError``.
    - ``insert`` assigns ``id`` and sets ``version`` to 1, and raises
      ``DuplicateRecordError`` when a unique index of the kind is violated.
      Unique indexes are sparse: records with a null key field are skipped.
      Reminders are unique on ``predecessor_id``; daily stats on
      (``village``, ``day``).
    - ``patch`` merges fields into a record and bumps ``version``. With
      ``expected_version`` it raises ``VersionConflictError`` if the stored
      version differs. Unknown ids raise ``RecordNotFoundError``.
    - Reads return copies; mutating them never changes stored state.
    """

    async def get(self, kind: RecordKind, record_id: str) -> Record | None: ...

    async def query(
        self,
        kind: RecordKind,
        filter: Mapping[str, Any] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[Record]: ...

    async def insert(self, kind: RecordKind, record: Record) -> str: ...

    async def patch(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> None: ...


def to_record(model: BaseModel) -> Record:
    """Dump a domain model for insertion, leaving ``id`` and ``version`` to the store."""
    return model.model_dump(exclude={"id", "version"})
