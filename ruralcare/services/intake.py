"""
Care intake pipeline that ties the core components together.

This is the end-to-end flow the surrounding application calls into:
1. A symptom submission is triaged, stored, audited and counted in the
   village's daily statistics
2. A new prescription is stored, audited, and gets one dose reminder per
   medicine
3. Dashboards read trends back through the ``TrendReporter``
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

import structlog

from ruralcare.config import AppConfig, get_config
from ruralcare.domain.models import (
    HealthRecord,
    Medicine,
    Patient,
    Prescription,
    Reminder,
    SymptomSeverity,
    SymptomSubmission,
    UrgencyLevel,
    utc_now,
)
from ruralcare.errors import RecordNotFoundError
from ruralcare.services.persistence import Order, RecordKind, RecordStore, to_record
from ruralcare.services.reminders import ReminderScheduler
from ruralcare.services.trends import TrendReporter
from ruralcare.services.urgency import UrgencyClassifier
from ruralcare.services.village_stats import VillageStatsAggregator, day_for

logger = structlog.get_logger(__name__)


async def load_patient(store: RecordStore, patient_id: str) -> Patient:
    record = await store.get(RecordKind.PATIENTS, patient_id)
    if record is None:
        raise RecordNotFoundError(RecordKind.PATIENTS.value, patient_id)
    return Patient.model_validate(record)


class SymptomIntakeService:
    """Stores symptom checks and forwards them to the village statistics."""

    def __init__(
        self,
        store: RecordStore,
        aggregator: VillageStatsAggregator,
        classifier: UrgencyClassifier | None = None,
        history_limit: int = 20,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.classifier = classifier or UrgencyClassifier()
        self.history_limit = history_limit
        self.clock = clock
        self.logger = logger.bind(component="symptom_intake")

    async def submit_symptoms(
        self,
        patient_id: str,
        symptoms: Sequence[str],
        severity: SymptomSeverity | str,
        duration: str,
        analysis: str = "",
        temperature: float | None = None,
        additional_info: str | None = None,
        recommendation: str | None = None,
        urgency: UrgencyLevel | str | None = None,
    ) -> SymptomSubmission:
        """
        Record a symptom check for a patient.

        When ``urgency`` is not supplied it is derived from the analysis text,
        or from severity and temperature if there is no analysis.
        """
        patient = await load_patient(self.store, patient_id)
        severity = SymptomSeverity(severity)
        level = (
            UrgencyLevel(urgency)
            if urgency
            else self.classifier.resolve(analysis, severity, temperature)
        )

        submission = SymptomSubmission(
            patient_id=patient.id,
            symptoms=list(symptoms),
            severity=severity,
            duration=duration,
            temperature=temperature,
            additional_info=additional_info,
            analysis=analysis,
            recommendation=recommendation,
            urgency=level,
            created_at=self.clock(),
        )
        submission_id = await self.store.insert(
            RecordKind.SYMPTOM_SUBMISSIONS, to_record(submission)
        )
        submission = submission.model_copy(update={"id": submission_id, "version": 1})

        await self.store.insert(
            RecordKind.HEALTH_RECORDS,
            to_record(
                HealthRecord(
                    patient_id=patient.id,
                    kind="symptom_check",
                    data={
                        "submission_id": submission_id,
                        "symptoms": submission.symptoms,
                        "severity": severity.value,
                        "urgency": level.value,
                        "analysis": analysis,
                    },
                )
            ),
        )

        await self.aggregator.record_submission(
            patient.village, day_for(submission.created_at), submission.symptoms, level
        )

        self.logger.info(
            "symptoms_submitted",
            submission_id=submission_id,
            village=patient.village,
            urgency=level.value,
            symptom_count=len(submission.symptoms),
        )
        return submission

    async def get_symptom_history(
        self, patient_id: str, limit: int | None = None
    ) -> list[SymptomSubmission]:
        records = await self.store.query(
            RecordKind.SYMPTOM_SUBMISSIONS,
            filter={"patient_id": patient_id},
            order=Order("created_at", descending=True),
            limit=limit or self.history_limit,
        )
        return [SymptomSubmission.model_validate(r) for r in records]


@dataclass
class PrescriptionCreated:
    prescription: Prescription
    reminders: list[Reminder]


class PrescriptionService:
    """Stores prescriptions and kicks off their dose reminders."""

    def __init__(
        self,
        store: RecordStore,
        scheduler: ReminderScheduler,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.clock = clock
        self.logger = logger.bind(component="prescription_service")

    async def create_prescription(
        self,
        patient_id: str,
        medicines: Sequence[Medicine],
        doctor_name: str | None = None,
        extracted_text: str | None = None,
    ) -> PrescriptionCreated:
        patient = await load_patient(self.store, patient_id)

        prescription = Prescription(
            patient_id=patient.id,
            doctor_name=doctor_name,
            medicines=list(medicines),
            extracted_text=extracted_text,
            created_at=self.clock(),
        )
        prescription_id = await self.store.insert(
            RecordKind.PRESCRIPTIONS, to_record(prescription)
        )
        prescription = prescription.model_copy(update={"id": prescription_id, "version": 1})

        reminders = await self.scheduler.schedule_initial_reminders(
            prescription_id, prescription.medicines
        )

        await self.store.insert(
            RecordKind.HEALTH_RECORDS,
            to_record(
                HealthRecord(
                    patient_id=patient.id,
                    kind="prescription",
                    data={
                        "prescription_id": prescription_id,
                        "medicines": [m.model_dump() for m in prescription.medicines],
                        "doctor_name": doctor_name,
                    },
                )
            ),
        )

        self.logger.info(
            "prescription_created",
            prescription_id=prescription_id,
            patient_id=patient.id,
            medicines=len(prescription.medicines),
        )
        return PrescriptionCreated(prescription=prescription, reminders=reminders)

    async def deactivate_prescription(self, prescription_id: str) -> Prescription:
        record = await self.store.get(RecordKind.PRESCRIPTIONS, prescription_id)
        if record is None:
            raise RecordNotFoundError(RecordKind.PRESCRIPTIONS.value, prescription_id)

        await self.store.patch(prescription_id, {"is_active": False})
        self.logger.info("prescription_deactivated", prescription_id=prescription_id)
        return Prescription.model_validate(
            {**record, "is_active": False, "version": record["version"] + 1}
        )

    async def list_prescriptions(self, patient_id: str) -> list[Prescription]:
        records = await self.store.query(
            RecordKind.PRESCRIPTIONS,
            filter={"patient_id": patient_id},
            order=Order("created_at", descending=True),
        )
        return [Prescription.model_validate(r) for r in records]


@dataclass
class CareServices:
    """All core services wired against one record store."""

    scheduler: ReminderScheduler
    aggregator: VillageStatsAggregator
    trends: TrendReporter
    symptoms: SymptomIntakeService
    prescriptions: PrescriptionService


def build_care_services(
    store: RecordStore,
    config: AppConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> CareServices:
    config = config or get_config()

    scheduler = ReminderScheduler(store, config.scheduling, clock=clock)
    aggregator = VillageStatsAggregator(store, config.analytics)
    return CareServices(
        scheduler=scheduler,
        aggregator=aggregator,
        trends=TrendReporter(store, config.analytics),
        symptoms=SymptomIntakeService(
            store,
            aggregator,
            history_limit=config.analytics.symptom_history_limit,
            clock=clock,
        ),
        prescriptions=PrescriptionService(store, scheduler, clock=clock),
    )
