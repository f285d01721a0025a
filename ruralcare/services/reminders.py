"""
Medicine adherence reminders.

Reminders move through a single transition, Pending -> Completed. Completing
a repeating medicine reminder schedules its successor as a side effect; that
step is modelled by the pure ``mark_completed`` function so it can be tested
without a store.

The next occurrence is computed from the original scheduled time, not from
the moment the patient ticked it off, which keeps dose times on a fixed
cadence.
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from itertools import dropwhile, takewhile

import structlog

from ruralcare.config import SchedulingConfig
from ruralcare.domain.models import (
    CompletionOutcome,
    Medicine,
    Reminder,
    ReminderKind,
    as_utc,
    utc_now,
)
from ruralcare.errors import DuplicateRecordError, RecordNotFoundError, VersionConflictError
from ruralcare.services.intervals import (
    format_interval_hours,
    interval_hours_for_frequency,
    parse_interval,
)
from ruralcare.services.persistence import Order, RecordKind, RecordStore, to_record

logger = structlog.get_logger(__name__)


def mark_completed(reminder: Reminder) -> CompletionOutcome:
    """
    Apply the completion transition to a reminder.

    Returns the completed reminder and, for repeating medicine reminders, the
    successor that should be inserted. A reminder that is already completed
    comes back unchanged with no successor.
    """
    if reminder.completed:
        return CompletionOutcome(reminder=reminder, already_completed=True)

    completed = reminder.model_copy(update={"completed": True})
    if not reminder.repeats:
        return CompletionOutcome(reminder=completed)

    successor = Reminder(
        patient_id=reminder.patient_id,
        kind=reminder.kind,
        title=reminder.title,
        description=reminder.description,
        scheduled_time=reminder.scheduled_time + parse_interval(reminder.repeat_interval),
        completed=False,
        medicine_key=reminder.medicine_key,
        repeat_interval=reminder.repeat_interval,
        prescription_id=reminder.prescription_id,
        predecessor_id=reminder.id,
    )
    return CompletionOutcome(reminder=completed, successor=successor)


class ReminderScheduler:
    """
    Creates, completes and lists reminders against a ``RecordStore``.

    Completion is exactly-once. The successor is inserted before the
    completed flag is written, and the store keeps ``predecessor_id`` unique,
    so a completion interrupted between the two writes can simply be retried.
    The flag itself is written with an optimistic version check, so of two
    racing completions only one reports the successor and the other turns
    into a no-op.
    """

    def __init__(
        self,
        store: RecordStore,
        config: SchedulingConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.config = config or SchedulingConfig()
        self.clock = clock
        self.logger = logger.bind(component="reminder_scheduler")

    async def schedule_initial_reminders(
        self, prescription_id: str, medicines: Sequence[Medicine]
    ) -> list[Reminder]:
        """Create the first dose reminder for every medicine of a prescription."""
        prescription = await self.store.get(RecordKind.PRESCRIPTIONS, prescription_id)
        if prescription is None:
            raise RecordNotFoundError(RecordKind.PRESCRIPTIONS.value, prescription_id)

        first_dose_at = self.clock() + timedelta(
            minutes=self.config.first_reminder_delay_minutes
        )

        reminders: list[Reminder] = []
        for medicine in medicines:
            hours = interval_hours_for_frequency(medicine.frequency)
            reminder = Reminder(
                patient_id=prescription["patient_id"],
                kind=ReminderKind.MEDICINE,
                title=f"Take {medicine.name}",
                description=f"{medicine.dosage} - {medicine.instructions or 'As prescribed'}",
                scheduled_time=first_dose_at,
                medicine_key=medicine.name,
                repeat_interval=format_interval_hours(hours),
                prescription_id=prescription_id,
            )
            reminders.append(await self._insert(reminder))

        self.logger.info(
            "initial_reminders_scheduled",
            prescription_id=prescription_id,
            count=len(reminders),
            first_dose_at=first_dose_at.isoformat(),
        )
        return reminders

    async def create_custom_reminder(
        self,
        patient_id: str,
        kind: ReminderKind,
        title: str,
        description: str,
        scheduled_time: datetime,
        repeat_interval: str | None = None,
    ) -> Reminder:
        reminder = await self._insert(
            Reminder(
                patient_id=patient_id,
                kind=kind,
                title=title,
                description=description,
                scheduled_time=scheduled_time,
                repeat_interval=repeat_interval or None,
            )
        )
        self.logger.info(
            "custom_reminder_created",
            reminder_id=reminder.id,
            kind=reminder.kind.value,
            repeats=reminder.repeats,
        )
        return reminder

    async def complete_reminder(self, reminder_id: str) -> CompletionOutcome:
        """
        Mark a reminder completed and insert its successor if it repeats.

        Raises ``RecordNotFoundError`` for unknown ids. Completing an already
        completed reminder is a no-op. A retry after a failure between the
        successor insert and the completed write reuses the stored successor.
        """
        while True:
            record = await self.store.get(RecordKind.REMINDERS, reminder_id)
            if record is None:
                raise RecordNotFoundError(RecordKind.REMINDERS.value, reminder_id)

            reminder = Reminder.model_validate(record)
            outcome = mark_completed(reminder)
            if outcome.already_completed:
                self.logger.info("reminder_already_completed", reminder_id=reminder_id)
                return outcome

            if outcome.successor is not None:
                outcome.successor = await self._spawn_successor(outcome.successor)

            try:
                await self.store.patch(
                    reminder_id, {"completed": True}, expected_version=reminder.version
                )
            except VersionConflictError:
                # Someone else wrote first; re-read and let the transition decide
                self.logger.info("reminder_completion_conflict", reminder_id=reminder_id)
                continue
            break

        outcome.reminder = outcome.reminder.model_copy(update={"version": reminder.version + 1})
        self.logger.info(
            "reminder_completed",
            reminder_id=reminder_id,
            successor_id=outcome.successor.id if outcome.successor else None,
            next_time=(
                outcome.successor.scheduled_time.isoformat() if outcome.successor else None
            ),
        )
        return outcome

    async def get_upcoming_reminders(
        self,
        patient_id: str,
        horizon: timedelta | None = None,
        now: datetime | None = None,
    ) -> list[Reminder]:
        """
        Pending reminders due between now and now + horizon, soonest first.

        ``RecordStore.query`` only filters on equality, so the time window is
        applied here while walking the patient's pending reminders in
        scheduled order; the walk stops at the first reminder past the window.
        """
        start = as_utc(now) if now is not None else self.clock()
        end = start + (horizon or timedelta(hours=self.config.upcoming_horizon_hours))

        records = await self.store.query(
            RecordKind.REMINDERS,
            filter={"patient_id": patient_id, "completed": False},
            order=Order("scheduled_time"),
        )
        reminders = (Reminder.model_validate(r) for r in records)
        due = dropwhile(lambda r: r.scheduled_time < start, reminders)
        return list(takewhile(lambda r: r.scheduled_time <= end, due))

    async def get_reminder_history(
        self, patient_id: str, limit: int | None = None
    ) -> list[Reminder]:
        """All reminders of a patient, completed or not, latest scheduled first."""
        records = await self.store.query(
            RecordKind.REMINDERS,
            filter={"patient_id": patient_id},
            order=Order("scheduled_time", descending=True),
            limit=limit or self.config.reminder_history_limit,
        )
        return [Reminder.model_validate(r) for r in records]

    async def _spawn_successor(self, successor: Reminder) -> Reminder:
        """Insert a successor, or return the one an earlier attempt already stored."""
        try:
            return await self._insert(successor)
        except DuplicateRecordError:
            records = await self.store.query(
                RecordKind.REMINDERS, filter={"predecessor_id": successor.predecessor_id}, limit=1
            )
            self.logger.info(
                "reminder_successor_already_spawned", predecessor_id=successor.predecessor_id
            )
            return Reminder.model_validate(records[0])

    async def _insert(self, reminder: Reminder) -> Reminder:
        reminder_id = await self.store.insert(RecordKind.REMINDERS, to_record(reminder))
        return reminder.model_copy(update={"id": reminder_id, "version": 1})
