"""
Error taxonomy for the care core.

Malformed user input (interval expressions, frequency text) is tolerated with
documented defaults and never raises. What remains are missing records and
concurrent-update conflicts reported by the record store.
"""


class RuralCareError(Exception):
    """Base class for all errors raised by the care core."""


class RecordNotFoundError(RuralCareError):
    """Raised when an operation targets a record id that does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} record {record_id!r} not found")
        self.kind = kind
        self.record_id = record_id


class VersionConflictError(RuralCareError):
    """A patch was attempted against a stale version of a record."""

    def __init__(self, record_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"record {record_id!r} is at version {actual_version}, expected {expected_version}"
        )
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class DuplicateRecordError(RuralCareError):
    """An insert would violate a unique index of the record kind."""

    def __init__(self, kind: str, key: tuple[object, ...]) -> None:
        super().__init__(f"{kind} record with key {key!r} already exists")
        self.kind = kind
        self.key = key
