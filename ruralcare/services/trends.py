"""
Rolling-window trend summaries over village daily statistics.

Symptom ranking counts days, not cases: a label seen in ten submissions on
one day scores the same as a label seen once that day.
"""

from collections import Counter

import structlog

from ruralcare.config import AnalyticsConfig
from ruralcare.domain.models import SymptomCount, TrendSummary, VillageDailyStat
from ruralcare.services.persistence import Order, RecordKind, RecordStore

logger = structlog.get_logger(__name__)


def round_half_up(numerator: int, denominator: int) -> int:
    """Round a non-negative ratio with halves going up (5/2 -> 3), unlike ``round``."""
    return (2 * numerator + denominator) // (2 * denominator)


def rank_symptoms(stats: list[VillageDailyStat], limit: int) -> list[SymptomCount]:
    """
    Rank symptom labels by the number of daily records they appear in.

    ``stats`` must be newest first. Ties keep the order in which labels were
    first met while scanning, because Counter preserves insertion order and
    ``sorted`` is stable.
    """
    day_counts: Counter[str] = Counter()
    for stat in stats:
        day_counts.update(dict.fromkeys(stat.common_symptoms, 1))

    ranked = sorted(day_counts.items(), key=lambda item: item[1], reverse=True)
    return [SymptomCount(symptom=symptom, count=count) for symptom, count in ranked[:limit]]


def summarize(village: str, stats: list[VillageDailyStat], top_limit: int = 5) -> TrendSummary:
    """Build a trend summary from a non-empty, newest-first list of daily stats."""
    if not stats:
        raise ValueError("cannot summarize an empty window")

    total_cases = sum(s.total_cases for s in stats)
    total_emergencies = sum(s.emergency_cases for s in stats)

    return TrendSummary(
        village=village,
        days_covered=len(stats),
        total_cases=total_cases,
        total_emergencies=total_emergencies,
        average_daily_cases=round_half_up(total_cases, len(stats)),
        emergency_rate=(
            round_half_up(100 * total_emergencies, total_cases) if total_cases > 0 else 0
        ),
        top_symptoms=rank_symptoms(stats, top_limit),
    )


class TrendReporter:
    """Read-only dashboard queries over persisted daily stats."""

    def __init__(self, store: RecordStore, config: AnalyticsConfig | None = None) -> None:
        self.store = store
        self.config = config or AnalyticsConfig()
        self.logger = logger.bind(component="trend_reporter")

    async def get_recent_stats(
        self, village: str, days: int | None = None
    ) -> list[VillageDailyStat]:
        """The most recent daily records for a village, newest first, unaggregated."""
        days = self.config.recent_stats_days if days is None else days
        if days <= 0:
            raise ValueError(f"days must be positive, got {days}")

        records = await self.store.query(
            RecordKind.VILLAGE_DAILY_STATS,
            filter={"village": village},
            order=Order("day", descending=True),
            limit=days,
        )
        return [VillageDailyStat.model_validate(r) for r in records]

    async def get_trends(
        self, village: str, window_days: int | None = None
    ) -> TrendSummary | None:
        """
        Summarize the last ``window_days`` daily records of a village.

        Returns None when the village has no records at all.
        """
        window = self.config.trend_window_days if window_days is None else window_days
        stats = await self.get_recent_stats(village, days=window)
        if not stats:
            self.logger.info("village_trends_no_data", village=village, window_days=window)
            return None

        summary = summarize(village, stats, self.config.top_symptoms_limit)
        self.logger.info(
            "village_trends_computed",
            village=village,
            days_covered=summary.days_covered,
            total_cases=summary.total_cases,
            emergency_rate=summary.emergency_rate,
        )
        return summary
