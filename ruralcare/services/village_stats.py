"""
Incremental per-village, per-day health statistics.

Every symptom submission is folded into the ``VillageDailyStat`` for its
(village, day) key. That record is the one hot spot of shared mutable state,
so updates use optimistic concurrency:
- merges patch with the version that was read
- first-of-day inserts lean on the store's unique (village, day) index
- a conflict means another submission landed first; back off and redo the
  read-modify-write from scratch

Conflicts are never surfaced to callers. Different keys never contend.
"""

import asyncio
import random
from collections.abc import Iterable, Sequence
from datetime import date, datetime

import structlog

from ruralcare.config import AnalyticsConfig
from ruralcare.domain.models import UrgencyLevel, VillageDailyStat, as_utc
from ruralcare.errors import DuplicateRecordError, VersionConflictError
from ruralcare.services.persistence import RecordKind, RecordStore, to_record

logger = structlog.get_logger(__name__)

# Exponent cap for the retry backoff; the delay itself is capped by config
_MAX_BACKOFF_EXPONENT = 10


def day_for(instant: datetime) -> date:
    """Calendar day of an instant in UTC. Naive datetimes are read as UTC."""
    return as_utc(instant).date()


def _as_day(day: date | datetime | str) -> date:
    if isinstance(day, datetime):
        return day_for(day)
    if isinstance(day, str):
        return date.fromisoformat(day)
    return day


def merge_symptoms(existing: Sequence[str], new: Iterable[str]) -> list[str]:
    """Union of symptom labels, keeping the order of first appearance."""
    merged = list(existing)
    for symptom in new:
        if symptom not in merged:
            merged.append(symptom)
    return merged


def first_of_day(
    village: str, day: date, symptoms: Iterable[str], urgency: UrgencyLevel
) -> VillageDailyStat:
    return VillageDailyStat(
        village=village,
        day=day,
        total_cases=1,
        emergency_cases=1 if urgency == UrgencyLevel.EMERGENCY else 0,
        common_symptoms=merge_symptoms([], symptoms),
    )


def merge_submission(
    stat: VillageDailyStat, symptoms: Iterable[str], urgency: UrgencyLevel
) -> VillageDailyStat:
    return stat.model_copy(
        update={
            "total_cases": stat.total_cases + 1,
            "emergency_cases": stat.emergency_cases
            + (1 if urgency == UrgencyLevel.EMERGENCY else 0),
            "common_symptoms": merge_symptoms(stat.common_symptoms, symptoms),
        }
    )


class VillageStatsAggregator:
    """Folds symptom submissions into daily village statistics."""

    def __init__(self, store: RecordStore, config: AnalyticsConfig | None = None) -> None:
        self.store = store
        self.config = config or AnalyticsConfig()
        self.logger = logger.bind(component="village_stats_aggregator")

    async def record_submission(
        self,
        village: str,
        day: date | datetime | str,
        symptoms: Sequence[str],
        urgency: UrgencyLevel | str,
    ) -> VillageDailyStat:
        """
        Count one submission for (village, day) and return the updated stat.

        Not idempotent: every call is a new case.
        """
        day = _as_day(day)
        urgency = UrgencyLevel(urgency)
        attempt = 0

        while True:
            try:
                stat = await self._apply(village, day, symptoms, urgency)
            except (VersionConflictError, DuplicateRecordError) as e:
                attempt += 1
                self.logger.debug(
                    "village_stats_conflict_retry",
                    village=village,
                    day=day.isoformat(),
                    attempt=attempt,
                    conflict=type(e).__name__,
                )
                await asyncio.sleep(self._backoff_seconds(attempt))
                continue

            self.logger.info(
                "village_stats_recorded",
                village=village,
                day=day.isoformat(),
                total_cases=stat.total_cases,
                emergency_cases=stat.emergency_cases,
                retries=attempt,
            )
            return stat

    async def _apply(
        self, village: str, day: date, symptoms: Sequence[str], urgency: UrgencyLevel
    ) -> VillageDailyStat:
        """One optimistic read-modify-write attempt."""
        records = await self.store.query(
            RecordKind.VILLAGE_DAILY_STATS, filter={"village": village, "day": day}, limit=1
        )

        if not records:
            stat = first_of_day(village, day, symptoms, urgency)
            stat_id = await self.store.insert(RecordKind.VILLAGE_DAILY_STATS, to_record(stat))
            return stat.model_copy(update={"id": stat_id, "version": 1})

        current = VillageDailyStat.model_validate(records[0])
        updated = merge_submission(current, symptoms, urgency)
        await self.store.patch(
            current.id,
            {
                "total_cases": updated.total_cases,
                "emergency_cases": updated.emergency_cases,
                "common_symptoms": updated.common_symptoms,
            },
            expected_version=current.version,
        )
        return updated.model_copy(update={"version": current.version + 1})

    def _backoff_seconds(self, attempt: int) -> float:
        delay = self.config.conflict_backoff_seconds * 2 ** min(attempt - 1, _MAX_BACKOFF_EXPONENT)
        return min(self.config.max_backoff_seconds, delay) * random.uniform(0.5, 1.0)
