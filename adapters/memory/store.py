"""
In-process record store implementing the ``RecordStore`` protocol.

Behaves like the document store the core normally runs against:
- ids are opaque strings assigned on insert
- every record carries a ``version`` bumped on each patch
- unique indexes are declared per record kind and skip records with a
  missing key field
- reads hand out deep copies

An optional per-call latency widens the window between a read and the
following write, which makes interleavings of concurrent callers easy to
reproduce.
"""

import asyncio
import copy
import uuid
from collections.abc import Mapping
from typing import Any

import structlog

from ruralcare.config import StorageConfig
from ruralcare.errors import DuplicateRecordError, RecordNotFoundError, VersionConflictError
from ruralcare.services.persistence import Order, Record, RecordKind

logger = structlog.get_logger(__name__)

DEFAULT_UNIQUE_INDEXES: dict[RecordKind, tuple[str, ...]] = {
    RecordKind.VILLAGE_DAILY_STATS: ("village", "day"),
    RecordKind.REMINDERS: ("predecessor_id",),
}

_RESERVED_FIELDS = frozenset({"id", "version"})


class InMemoryRecordStore:
    """Dict-backed store. Safe for concurrent coroutines on one event loop."""

    def __init__(
        self,
        unique_indexes: Mapping[RecordKind, tuple[str, ...]] | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        self.unique_indexes = dict(
            DEFAULT_UNIQUE_INDEXES if unique_indexes is None else unique_indexes
        )
        self.latency_seconds = latency_seconds
        self._records: dict[str, Record] = {}
        self._kinds: dict[str, RecordKind] = {}
        self.logger = logger.bind(component="memory_record_store")

    @classmethod
    def from_config(cls, config: StorageConfig) -> "InMemoryRecordStore":
        return cls(latency_seconds=config.simulated_latency_seconds)

    def put(self, kind: RecordKind, record: Record) -> str:
        """
        Load a record synchronously, keeping its ``id`` if it has one.

        Used to seed records owned by the surrounding application, such as
        patient profiles.
        """
        record_id = str(record.get("id") or uuid.uuid4().hex)
        self._check_unique(kind, record)
        self._store(kind, record_id, record)
        return record_id

    async def get(self, kind: RecordKind, record_id: str) -> Record | None:
        await self._simulate_latency()
        if self._kinds.get(record_id) != kind:
            return None
        return copy.deepcopy(self._records[record_id])

    async def query(
        self,
        kind: RecordKind,
        filter: Mapping[str, Any] | None = None,
        order: Order | None = None,
        limit: int | None = None,
    ) -> list[Record]:
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be non-negative, got {limit}")

        await self._simulate_latency()
        conditions = dict(filter or {})
        matches = [
            record
            for record_id, record in self._records.items()
            if self._kinds[record_id] == kind
            and all(record.get(field) == value for field, value in conditions.items())
        ]

        if order is not None:
            matches.sort(key=lambda r: r.get(order.field), reverse=order.descending)
        if limit is not None:
            matches = matches[:limit]

        return copy.deepcopy(matches)

    async def insert(self, kind: RecordKind, record: Record) -> str:
        await self._simulate_latency()
        self._check_unique(kind, record)
        record_id = uuid.uuid4().hex
        self._store(kind, record_id, record)
        self.logger.debug("record_inserted", kind=kind.value, record_id=record_id)
        return record_id

    async def patch(
        self,
        record_id: str,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> None:
        await self._simulate_latency()
        reserved = _RESERVED_FIELDS.intersection(fields)
        if reserved:
            raise ValueError(f"cannot patch reserved fields: {sorted(reserved)}")

        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError("record", record_id)
        if expected_version is not None and record["version"] != expected_version:
            raise VersionConflictError(record_id, expected_version, record["version"])

        record.update(copy.deepcopy(dict(fields)))
        record["version"] += 1
        self.logger.debug("record_patched", record_id=record_id, version=record["version"])

    def count(self, kind: RecordKind) -> int:
        return sum(1 for k in self._kinds.values() if k == kind)

    def _store(self, kind: RecordKind, record_id: str, record: Record) -> None:
        stored = copy.deepcopy(record)
        stored["id"] = record_id
        stored["version"] = 1
        self._records[record_id] = stored
        self._kinds[record_id] = kind

    def _check_unique(self, kind: RecordKind, record: Record) -> None:
        fields = self.unique_indexes.get(kind)
        if not fields:
            return
        key = tuple(record.get(f) for f in fields)
        # Sparse: records missing any indexed field are not indexed
        if None in key:
            return
        for record_id, existing in self._records.items():
            if self._kinds[record_id] == kind and tuple(existing.get(f) for f in fields) == key:
                raise DuplicateRecordError(kind.value, key)

    async def _simulate_latency(self) -> None:
        # Always yield so concurrent callers interleave between store calls
        await asyncio.sleep(self.latency_seconds)
