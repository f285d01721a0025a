"""
Core services for the care records system.

This package contains the reminder scheduler, urgency triage, village
statistics aggregation and trend reporting, plus the intake pipeline that
wires them together over a ``RecordStore``.
"""

from .intake import (
    CareServices,
    PrescriptionService,
    SymptomIntakeService,
    build_care_services,
)
from .intervals import interval_hours_for_frequency, parse_interval
from .persistence import Order, RecordKind, RecordStore
from .reminders import ReminderScheduler, mark_completed
from .trends import TrendReporter
from .urgency import UrgencyClassifier, classify_analysis, classify_fields
from .village_stats import VillageStatsAggregator, day_for

__all__ = [
    "CareServices",
    "Order",
    "PrescriptionService",
    "RecordKind",
    "RecordStore",
    "ReminderScheduler",
    "SymptomIntakeService",
    "TrendReporter",
    "UrgencyClassifier",
    "VillageStatsAggregator",
    "build_care_services",
    "classify_analysis",
    "classify_fields",
    "day_for",
    "interval_hours_for_frequency",
    "mark_completed",
    "parse_interval",
]
