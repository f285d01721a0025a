"""
Keyword-based urgency triage.

Two rule lists, each an explicit ordered sequence where the first matching
rule wins:
- analysis rules scan free-text symptom analysis
- field rules look at the structured severity and temperature of a submission

Results are advisory triage only, never a clinical judgement.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from ruralcare.domain.models import SymptomSeverity, UrgencyLevel

logger = structlog.get_logger(__name__)

EMERGENCY_TEMPERATURE_F = 103.0
HIGH_FEVER_TEMPERATURE_F = 102.0
FEVER_TEMPERATURE_F = 100.4


@dataclass(frozen=True)
class AnalysisRule:
    level: UrgencyLevel
    keywords: tuple[str, ...]

    def matches(self, folded_text: str) -> bool:
        return any(keyword in folded_text for keyword in self.keywords)


@dataclass(frozen=True)
class FieldRule:
    level: UrgencyLevel
    predicate: Callable[[SymptomSeverity, float | None], bool]


ANALYSIS_RULES: tuple[AnalysisRule, ...] = (
    AnalysisRule(UrgencyLevel.EMERGENCY, ("emergency", "urgent")),
    AnalysisRule(UrgencyLevel.HIGH, ("high priority",)),
    AnalysisRule(UrgencyLevel.LOW, ("low priority", "mild")),
)


def _at_least(temperature: float | None, threshold: float) -> bool:
    return temperature is not None and temperature >= threshold


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule(
        UrgencyLevel.EMERGENCY,
        lambda severity, temp: (
            severity == SymptomSeverity.SEVERE and _at_least(temp, EMERGENCY_TEMPERATURE_F)
        ),
    ),
    FieldRule(
        UrgencyLevel.HIGH,
        lambda severity, temp: (
            severity == SymptomSeverity.SEVERE or _at_least(temp, HIGH_FEVER_TEMPERATURE_F)
        ),
    ),
    FieldRule(
        UrgencyLevel.LOW,
        lambda severity, temp: (
            severity == SymptomSeverity.MILD and not _at_least(temp, FEVER_TEMPERATURE_F)
        ),
    ),
)


def classify_analysis(text: str | None) -> UrgencyLevel:
    """Classify free-text analysis output. Defaults to ``medium`` when nothing matches."""
    folded = (text or "").casefold()
    for rule in ANALYSIS_RULES:
        if rule.matches(folded):
            return rule.level
    return UrgencyLevel.MEDIUM


def classify_fields(severity: SymptomSeverity, temperature: float | None = None) -> UrgencyLevel:
    """Classify from structured submission fields. Defaults to ``medium``."""
    severity = SymptomSeverity(severity)
    for rule in FIELD_RULES:
        if rule.predicate(severity, temperature):
            return rule.level
    return UrgencyLevel.MEDIUM


class UrgencyClassifier:
    """
    Picks the rule list that fits the data at hand.

    Analysis text wins when present; the structured fields are only consulted
    for submissions that arrive without any analysis.
    """

    def __init__(self) -> None:
        self.logger = logger.bind(component="urgency_classifier")

    def resolve(
        self,
        analysis: str | None,
        severity: SymptomSeverity,
        temperature: float | None = None,
    ) -> UrgencyLevel:
        if analysis and analysis.strip():
            level = classify_analysis(analysis)
            source = "analysis"
        else:
            level = classify_fields(severity, temperature)
            source = "fields"

        self.logger.debug("urgency_classified", urgency=level.value, source=source)
        return level
