"""
End-to-end walkthrough of the care core against the in-memory store.

This script exercises:
1. Configuration loading and validation
2. Prescription intake and dose reminder scheduling
3. Reminder completion and successor generation
4. Symptom triage and village statistics
5. Concurrent submissions for the same village and day
6. Trend reporting

Run with: uv run python run_demo.py
"""

import asyncio
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.memory.store import InMemoryRecordStore
from ruralcare.config import get_config, print_config_summary, validate_config
from ruralcare.domain.models import Medicine
from ruralcare.observability import configure_logging
from ruralcare.services import CareServices, RecordKind, build_care_services

console = Console()

VILLAGE = "Rampur"
PATIENTS = [
    {"id": "patient-1", "name": "Asha", "age": 34, "gender": "female", "village": VILLAGE},
    {"id": "patient-2", "name": "Ravi", "age": 61, "gender": "male", "village": VILLAGE},
]


def seed_store() -> InMemoryRecordStore:
    store = InMemoryRecordStore.from_config(get_config().storage)
    for patient in PATIENTS:
        store.put(RecordKind.PATIENTS, patient)
    return store


async def check_configuration() -> bool:
    console.print(Panel("🔧 Configuration", style="blue"))
    try:
        validate_config()
        print_config_summary()
        return True
    except Exception as e:
        console.print(f"❌ Configuration check failed: {e}", style="red")
        return False


async def check_prescription_flow(services: CareServices) -> bool:
    console.print(Panel("💊 Prescription and Reminders", style="blue"))

    created = await services.prescriptions.create_prescription(
        "patient-1",
        [
            Medicine(name="Paracetamol", dosage="500mg", frequency="thrice daily", duration="5d"),
            Medicine(name="Amoxicillin", dosage="250mg", frequency="twice a day", duration="7d"),
            Medicine(name="Vitamin D", dosage="1 tab", frequency="once", duration="30d"),
        ],
        doctor_name="Dr. Mehta",
    )

    table = Table(title="Initial Reminders")
    table.add_column("Title", style="cyan")
    table.add_column("Due", style="green")
    table.add_column("Repeats", style="yellow")
    for reminder in created.reminders:
        table.add_row(reminder.title, reminder.scheduled_time.isoformat(), reminder.repeat_interval)
    console.print(table)

    first = created.reminders[0]
    outcome = await services.scheduler.complete_reminder(first.id)
    again = await services.scheduler.complete_reminder(first.id)

    if outcome.successor is None or again.successor is not None:
        console.print("❌ Completion did not produce exactly one successor", style="red")
        return False

    console.print(
        f"✅ Next {outcome.successor.title} at {outcome.successor.scheduled_time.isoformat()}",
        style="green",
    )
    return True


async def check_symptom_flow(services: CareServices) -> bool:
    console.print(Panel("🩺 Symptom Triage and Village Stats", style="blue"))

    submissions = [
        ("patient-1", ["fever", "cough"], "moderate", "High priority: see a doctor today."),
        ("patient-2", ["cough", "chills"], "severe", "This is urgent, go to the clinic now."),
        ("patient-2", ["headache"], "mild", ""),
    ]
    for patient_id, symptoms, severity, analysis in submissions:
        submission = await services.symptoms.submit_symptoms(
            patient_id, symptoms, severity, duration="1-3 days", analysis=analysis
        )
        console.print(f"• {', '.join(submission.symptoms)} → {submission.urgency.value}")

    # Many health workers syncing at once for the same village and day
    await asyncio.gather(
        *(
            services.symptoms.submit_symptoms(
                "patient-1", ["fever"], "mild", duration="today", analysis="mild fever"
            )
            for _ in range(10)
        )
    )

    recent = await services.trends.get_recent_stats(VILLAGE, days=1)
    total = recent[0].total_cases if recent else 0
    if total != 13:
        console.print(f"❌ Expected 13 cases today, found {total}", style="red")
        return False

    console.print(f"✅ {total} cases recorded for {VILLAGE} today", style="green")
    return True


async def check_trends(services: CareServices) -> bool:
    console.print(Panel("📈 Trends", style="blue"))

    # Backfill a few earlier days so the window has some history
    today = datetime.now(UTC)
    for offset, symptoms, urgency in [
        (1, ["fever", "diarrhea"], "high"),
        (2, ["diarrhea"], "emergency"),
        (3, ["cough"], "low"),
    ]:
        await services.aggregator.record_submission(
            VILLAGE, today - timedelta(days=offset), symptoms, urgency
        )

    summary = await services.trends.get_trends(VILLAGE)
    if summary is None:
        console.print("❌ No trend data", style="red")
        return False

    table = Table(title=f"{VILLAGE}: last {summary.days_covered} days")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Total Cases", str(summary.total_cases))
    table.add_row("Emergencies", str(summary.total_emergencies))
    table.add_row("Average Daily Cases", str(summary.average_daily_cases))
    table.add_row("Emergency Rate", f"{summary.emergency_rate}%")
    table.add_row(
        "Top Symptoms", ", ".join(f"{s.symptom} ({s.count}d)" for s in summary.top_symptoms)
    )
    console.print(table)
    return True


async def run_walkthrough() -> None:
    console.print(Panel("🏥 Rural Care Core - Walkthrough", style="bold blue"))
    configure_logging(get_config().logging)

    services = build_care_services(seed_store())
    steps = [
        ("Configuration", check_configuration()),
        ("Prescriptions", check_prescription_flow(services)),
        ("Symptoms", check_symptom_flow(services)),
        ("Trends", check_trends(services)),
    ]

    results = []
    for name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, await step))
        except Exception as e:
            console.print(f"❌ {name} failed with exception: {e}", style="red")
            results.append((name, False))

    summary_table = Table()
    summary_table.add_column("Step", style="cyan")
    summary_table.add_column("Result", style="white")
    for name, ok in results:
        summary_table.add_row(name, "✅ PASSED" if ok else "❌ FAILED")
    console.print(summary_table)


if __name__ == "__main__":
    try:
        asyncio.run(run_walkthrough())
    except KeyboardInterrupt:
        console.print("\n👋 Stopped by user", style="yellow")
