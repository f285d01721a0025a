"""
Tests for the per-village daily statistics aggregator.

Concurrency tests run against a store with artificial latency so that
concurrent read-modify-write cycles genuinely interleave.
"""

import asyncio
from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from adapters.memory.store import InMemoryRecordStore
from ruralcare.config import AnalyticsConfig
from ruralcare.domain.models import UrgencyLevel, VillageDailyStat
from ruralcare.services.persistence import RecordKind
from ruralcare.services.village_stats import (
    VillageStatsAggregator,
    day_for,
    first_of_day,
    merge_submission,
    merge_symptoms,
)

DAY = date(2024, 3, 1)
FAST_RETRY = AnalyticsConfig(conflict_backoff_seconds=0.0, max_backoff_seconds=0.0)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def aggregator(store: InMemoryRecordStore) -> VillageStatsAggregator:
    return VillageStatsAggregator(store, FAST_RETRY)


class TestDayFor:
    def test_aware_instant_is_converted_to_utc_date(self) -> None:
        ist = timezone(timedelta(hours=5, minutes=30))
        # 02:00 in India on March 2nd is still March 1st in UTC
        assert day_for(datetime(2024, 3, 2, 2, 0, tzinfo=ist)) == date(2024, 3, 1)

    def test_naive_instant_is_read_as_utc(self) -> None:
        assert day_for(datetime(2024, 3, 1, 23, 59)) == date(2024, 3, 1)


class TestPureMerging:
    def test_merge_symptoms_keeps_first_appearance_order(self) -> None:
        assert merge_symptoms(["fever", "cough"], ["cough", "chills", "fever", "rash"]) == [
            "fever",
            "cough",
            "chills",
            "rash",
        ]

    def test_first_of_day_deduplicates(self) -> None:
        stat = first_of_day("A", DAY, ["fever", "fever", "cough"], UrgencyLevel.EMERGENCY)
        assert stat.common_symptoms == ["fever", "cough"]
        assert stat.total_cases == 1
        assert stat.emergency_cases == 1

    def test_merge_submission_returns_new_model(self) -> None:
        stat = VillageDailyStat(
            village="A", day=DAY, total_cases=4, emergency_cases=1, common_symptoms=["fever"]
        )
        merged = merge_submission(stat, ["cough"], UrgencyLevel.LOW)

        assert merged.total_cases == 5
        assert merged.emergency_cases == 1
        assert merged.common_symptoms == ["fever", "cough"]
        assert stat.total_cases == 4


class TestRecordSubmission:
    async def test_first_submission_creates_record(
        self, aggregator: VillageStatsAggregator, store: InMemoryRecordStore
    ) -> None:
        stat = await aggregator.record_submission("A", DAY, ["fever", "cough"], "high")

        assert stat.id is not None
        assert stat.total_cases == 1
        assert stat.emergency_cases == 0
        assert set(stat.common_symptoms) == {"fever", "cough"}
        assert store.count(RecordKind.VILLAGE_DAILY_STATS) == 1

    async def test_second_submission_merges(
        self, aggregator: VillageStatsAggregator, store: InMemoryRecordStore
    ) -> None:
        await aggregator.record_submission("A", DAY, ["fever", "cough"], UrgencyLevel.HIGH)
        stat = await aggregator.record_submission(
            "A", DAY, ["cough", "chills"], UrgencyLevel.EMERGENCY
        )

        assert stat.total_cases == 2
        assert stat.emergency_cases == 1
        assert stat.common_symptoms == ["fever", "cough", "chills"]

        (stored,) = await store.query(RecordKind.VILLAGE_DAILY_STATS)
        assert stored["total_cases"] == 2
        assert stored["common_symptoms"] == ["fever", "cough", "chills"]
        assert stored["version"] == stat.version == 2

    async def test_not_idempotent(self, aggregator: VillageStatsAggregator) -> None:
        for _ in range(3):
            stat = await aggregator.record_submission("A", DAY, ["fever"], "low")
        assert stat.total_cases == 3

    async def test_keys_are_independent(
        self, aggregator: VillageStatsAggregator, store: InMemoryRecordStore
    ) -> None:
        await aggregator.record_submission("A", DAY, ["fever"], "low")
        await aggregator.record_submission("B", DAY, ["cough"], "emergency")
        await aggregator.record_submission("A", DAY + timedelta(days=1), ["rash"], "low")

        assert store.count(RecordKind.VILLAGE_DAILY_STATS) == 3
        (b_stat,) = await store.query(RecordKind.VILLAGE_DAILY_STATS, filter={"village": "B"})
        assert b_stat["emergency_cases"] == 1

    @pytest.mark.parametrize(
        "day",
        ["2024-03-01", datetime(2024, 3, 1, 18, 30, tzinfo=UTC), DAY],
    )
    async def test_day_inputs_normalize_to_same_key(
        self, aggregator: VillageStatsAggregator, day: object
    ) -> None:
        stat = await aggregator.record_submission("A", day, ["fever"], "low")  # type: ignore
        assert stat.day == DAY

    async def test_unknown_urgency_is_rejected(self, aggregator: VillageStatsAggregator) -> None:
        with pytest.raises(ValueError):
            await aggregator.record_submission("A", DAY, ["fever"], "catastrophic")


class TestConcurrentSubmissions:
    @pytest.mark.parametrize("submissions", [2, 10, 25])
    async def test_no_increment_is_lost(self, submissions: int) -> None:
        store = InMemoryRecordStore(latency_seconds=0.001)
        aggregator = VillageStatsAggregator(store, FAST_RETRY)

        await asyncio.gather(
            *(
                aggregator.record_submission(
                    "A",
                    DAY,
                    [f"symptom-{i % 3}"],
                    UrgencyLevel.EMERGENCY if i % 2 else UrgencyLevel.LOW,
                )
                for i in range(submissions)
            )
        )

        (stat,) = await store.query(RecordKind.VILLAGE_DAILY_STATS)
        assert stat["total_cases"] == submissions
        assert stat["emergency_cases"] == submissions // 2
        assert sorted(stat["common_symptoms"]) == sorted(
            {f"symptom-{i % 3}" for i in range(submissions)}
        )

    async def test_racing_first_submissions_create_one_record(self) -> None:
        store = InMemoryRecordStore(latency_seconds=0.001)
        aggregator = VillageStatsAggregator(store, FAST_RETRY)

        await asyncio.gather(
            aggregator.record_submission("A", DAY, ["fever"], "low"),
            aggregator.record_submission("A", DAY, ["cough"], "low"),
        )

        assert store.count(RecordKind.VILLAGE_DAILY_STATS) == 1
        (stat,) = await store.query(RecordKind.VILLAGE_DAILY_STATS)
        assert stat["total_cases"] == 2
        assert set(stat["common_symptoms"]) == {"fever", "cough"}

    async def test_retries_back_off_with_default_config(self) -> None:
        store = InMemoryRecordStore(latency_seconds=0.001)
        aggregator = VillageStatsAggregator(store)

        await asyncio.gather(
            *(aggregator.record_submission("A", DAY, ["fever"], "low") for _ in range(5))
        )

        (stat,) = await store.query(RecordKind.VILLAGE_DAILY_STATS)
        assert stat["total_cases"] == 5

    def test_backoff_is_capped(self) -> None:
        aggregator = VillageStatsAggregator(
            InMemoryRecordStore(),
            AnalyticsConfig(conflict_backoff_seconds=0.01, max_backoff_seconds=0.05),
        )
        assert all(aggregator._backoff_seconds(n) <= 0.05 for n in range(1, 50))
