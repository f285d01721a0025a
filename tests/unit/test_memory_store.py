"""Tests for the in-process record store."""

import pytest

from adapters.memory.store import InMemoryRecordStore
from ruralcare.config import StorageConfig
from ruralcare.errors import DuplicateRecordError, RecordNotFoundError, VersionConflictError
from ruralcare.services.persistence import Order, RecordKind


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


async def test_insert_assigns_id_and_version(store: InMemoryRecordStore) -> None:
    record_id = await store.insert(RecordKind.REMINDERS, {"patient_id": "p", "id": "ignored"})

    record = await store.get(RecordKind.REMINDERS, record_id)

    assert record == {"id": record_id, "patient_id": "p", "version": 1}


async def test_get_checks_kind(store: InMemoryRecordStore) -> None:
    record_id = await store.insert(RecordKind.REMINDERS, {"patient_id": "p"})

    assert await store.get(RecordKind.PRESCRIPTIONS, record_id) is None
    assert await store.get(RecordKind.REMINDERS, "nope") is None


async def test_reads_are_copies(store: InMemoryRecordStore) -> None:
    record_id = store.put(RecordKind.VILLAGE_DAILY_STATS, {"village": "A", "common_symptoms": []})

    record = await store.get(RecordKind.VILLAGE_DAILY_STATS, record_id)
    assert record is not None
    record["common_symptoms"].append("fever")

    (stored,) = await store.query(RecordKind.VILLAGE_DAILY_STATS)
    assert stored["common_symptoms"] == []


async def test_query_filter_order_limit(store: InMemoryRecordStore) -> None:
    for n in (3, 1, 2):
        store.put(RecordKind.REMINDERS, {"patient_id": "p", "n": n})
    store.put(RecordKind.REMINDERS, {"patient_id": "q", "n": 9})

    records = await store.query(
        RecordKind.REMINDERS, filter={"patient_id": "p"}, order=Order("n", descending=True), limit=2
    )

    assert [r["n"] for r in records] == [3, 2]


async def test_patch_bumps_version(store: InMemoryRecordStore) -> None:
    record_id = store.put(RecordKind.REMINDERS, {"completed": False})

    await store.patch(record_id, {"completed": True}, expected_version=1)

    record = await store.get(RecordKind.REMINDERS, record_id)
    assert record is not None
    assert record["completed"] is True
    assert record["version"] == 2


async def test_patch_with_stale_version_conflicts(store: InMemoryRecordStore) -> None:
    record_id = store.put(RecordKind.REMINDERS, {"completed": False})
    await store.patch(record_id, {"completed": True})

    with pytest.raises(VersionConflictError) as exc_info:
        await store.patch(record_id, {"completed": False}, expected_version=1)

    assert exc_info.value.actual_version == 2
    record = await store.get(RecordKind.REMINDERS, record_id)
    assert record is not None and record["completed"] is True


async def test_patch_unknown_record(store: InMemoryRecordStore) -> None:
    with pytest.raises(RecordNotFoundError):
        await store.patch("nope", {"completed": True})


@pytest.mark.parametrize("field", ["id", "version"])
async def test_patch_rejects_reserved_fields(store: InMemoryRecordStore, field: str) -> None:
    record_id = store.put(RecordKind.REMINDERS, {"completed": False})

    with pytest.raises(ValueError, match="reserved"):
        await store.patch(record_id, {field: "x"})


async def test_unique_village_day_index(store: InMemoryRecordStore) -> None:
    await store.insert(RecordKind.VILLAGE_DAILY_STATS, {"village": "A", "day": "2024-03-01"})
    await store.insert(RecordKind.VILLAGE_DAILY_STATS, {"village": "B", "day": "2024-03-01"})

    with pytest.raises(DuplicateRecordError):
        await store.insert(RecordKind.VILLAGE_DAILY_STATS, {"village": "A", "day": "2024-03-01"})

    assert store.count(RecordKind.VILLAGE_DAILY_STATS) == 2


async def test_unique_indexes_can_be_disabled() -> None:
    store = InMemoryRecordStore(unique_indexes={})
    for _ in range(2):
        await store.insert(RecordKind.VILLAGE_DAILY_STATS, {"village": "A", "day": "2024-03-01"})

    assert store.count(RecordKind.VILLAGE_DAILY_STATS) == 2


def test_from_config() -> None:
    store = InMemoryRecordStore.from_config(StorageConfig(simulated_latency_seconds=0.2))
    assert store.latency_seconds == 0.2


async def test_negative_limit_is_rejected(store: InMemoryRecordStore) -> None:
    store.put(RecordKind.REMINDERS, {"patient_id": "p"})

    with pytest.raises(ValueError, match="non-negative"):
        await store.query(RecordKind.REMINDERS, limit=-1)

    assert await store.query(RecordKind.REMINDERS, limit=0) == []


async def test_reminder_predecessor_index_is_sparse(store: InMemoryRecordStore) -> None:
    await store.insert(RecordKind.REMINDERS, {"patient_id": "p", "predecessor_id": None})
    await store.insert(RecordKind.REMINDERS, {"patient_id": "p"})
    await store.insert(RecordKind.REMINDERS, {"patient_id": "p", "predecessor_id": "r-1"})

    with pytest.raises(DuplicateRecordError):
        await store.insert(RecordKind.REMINDERS, {"patient_id": "p", "predecessor_id": "r-1"})

    assert store.count(RecordKind.REMINDERS) == 3
