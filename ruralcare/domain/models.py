"""
Domain models for reminder scheduling and village health statistics.

These models represent the core care concepts and are storage-agnostic.
They use Pydantic for validation; the record store only ever sees plain dicts
produced by ``model_dump``.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize an instant to UTC, reading naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ReminderKind(str, Enum):
    """Kinds of care actions a reminder can track."""

    MEDICINE = "medicine"
    VACCINE = "vaccine"
    CHECKUP = "checkup"
    OTHER = "other"


class UrgencyLevel(str, Enum):
    """Coarse triage tier attached to a symptom submission."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class SymptomSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Patient(BaseModel):
    """Read-only view of a patient profile owned by the surrounding application."""

    id: str
    name: str
    age: int = Field(ge=0)
    gender: str
    village: str = Field(min_length=1)


class Medicine(BaseModel):
    """One line of a prescription."""

    name: str = Field(min_length=1)
    dosage: str
    frequency: str = Field(description="Free text such as 'twice daily' or '1-0-1'")
    duration: str
    instructions: str | None = None


class Prescription(BaseModel):
    id: str | None = None
    patient_id: str
    doctor_name: str | None = None
    medicines: list[Medicine] = Field(min_length=1)
    extracted_text: str | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    version: int = 0


class Reminder(BaseModel):
    """
    A scheduled care action with a due time and completion state.

    Reminders are append-only: completion is the only mutation, and completed
    reminders stay around for history views.
    """

    id: str | None = None
    patient_id: str
    kind: ReminderKind
    title: str = Field(min_length=1)
    description: str = ""
    scheduled_time: datetime
    completed: bool = False
    medicine_key: str | None = Field(None, description="Medicine name this reminder tracks")
    repeat_interval: str | None = Field(None, description="Compact expression, e.g. '12h', '7d'")
    prescription_id: str | None = None
    predecessor_id: str | None = Field(
        None, description="Reminder whose completion spawned this one; unique per store"
    )
    created_at: datetime = Field(default_factory=utc_now)
    version: int = 0

    @field_validator("scheduled_time", "created_at")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def repeats(self) -> bool:
        """Whether completing this reminder schedules a successor."""
        return bool(self.repeat_interval) and self.kind == ReminderKind.MEDICINE


class SymptomSubmission(BaseModel):
    """A patient's symptom check. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    patient_id: str
    symptoms: list[str] = Field(min_length=1)
    severity: SymptomSeverity
    duration: str = Field(description="Duration bucket, e.g. '1-3 days'")
    temperature: float | None = Field(None, description="Body temperature in Fahrenheit")
    additional_info: str | None = None
    analysis: str = ""
    recommendation: str | None = None
    urgency: UrgencyLevel
    created_at: datetime = Field(default_factory=utc_now)
    version: int = 0

    @field_validator("created_at")
    @classmethod
    def normalize_instant(cls, v: datetime) -> datetime:
        return as_utc(v)


class VillageDailyStat(BaseModel):
    """Per-village, per-calendar-day rollup of case counts and symptoms seen."""

    id: str | None = None
    village: str
    day: date
    total_cases: int = Field(ge=0)
    emergency_cases: int = Field(ge=0)
    common_symptoms: list[str] = Field(default_factory=list)
    version: int = 0


class HealthRecord(BaseModel):
    """Audit entry written alongside symptom checks and prescriptions."""

    id: str | None = None
    patient_id: str
    kind: Literal["symptom_check", "prescription"]
    data: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    version: int = 0


class SymptomCount(BaseModel):
    symptom: str
    count: int = Field(ge=1, description="Number of daily records the symptom appeared in")


class TrendSummary(BaseModel):
    """Rolling-window summary over a village's daily stats. Derived, never stored."""

    model_config = ConfigDict(frozen=True)

    village: str
    days_covered: int = Field(gt=0)
    total_cases: int = Field(ge=0)
    total_emergencies: int = Field(ge=0)
    average_daily_cases: int = Field(ge=0)
    emergency_rate: int = Field(ge=0, le=100, description="Percentage of emergency cases")
    top_symptoms: list[SymptomCount] = Field(default_factory=list)


@dataclass
class CompletionOutcome:
    """Result of completing a reminder: the updated entity and an optional successor."""

    reminder: Reminder
    successor: Reminder | None = None
    already_completed: bool = False
