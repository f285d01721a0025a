"""Tests for keyword-based urgency triage."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ruralcare.domain.models import SymptomSeverity, UrgencyLevel
from ruralcare.services.urgency import UrgencyClassifier, classify_analysis, classify_fields


class TestClassifyAnalysis:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("This is an EMERGENCY, call an ambulance.", UrgencyLevel.EMERGENCY),
            ("Urgent care recommended.", UrgencyLevel.EMERGENCY),
            ("High Priority: visit a clinic today.", UrgencyLevel.HIGH),
            ("Low priority, rest at home.", UrgencyLevel.LOW),
            ("Symptoms appear mild.", UrgencyLevel.LOW),
            ("Monitor for two days.", UrgencyLevel.MEDIUM),
            ("", UrgencyLevel.MEDIUM),
        ],
    )
    def test_keyword_rules(self, text: str, expected: UrgencyLevel) -> None:
        assert classify_analysis(text) == expected

    def test_urgent_beats_mild(self) -> None:
        assert classify_analysis("Mild rash but urgent review of the wound") == (
            UrgencyLevel.EMERGENCY
        )

    def test_high_priority_beats_low_priority(self) -> None:
        assert classify_analysis("high priority; not low priority") == UrgencyLevel.HIGH

    def test_none_text_is_medium(self) -> None:
        assert classify_analysis(None) == UrgencyLevel.MEDIUM

    @given(prefix=st.text(), suffix=st.text())
    def test_emergency_keyword_always_wins(self, prefix: str, suffix: str) -> None:
        assert classify_analysis(f"{prefix} emergency {suffix}") == UrgencyLevel.EMERGENCY


class TestClassifyFields:
    @pytest.mark.parametrize(
        "severity,temperature,expected",
        [
            (SymptomSeverity.SEVERE, 103.5, UrgencyLevel.EMERGENCY),
            (SymptomSeverity.SEVERE, None, UrgencyLevel.HIGH),
            (SymptomSeverity.MODERATE, 102.2, UrgencyLevel.HIGH),
            (SymptomSeverity.MILD, 102.0, UrgencyLevel.HIGH),
            (SymptomSeverity.MILD, None, UrgencyLevel.LOW),
            (SymptomSeverity.MILD, 99.1, UrgencyLevel.LOW),
            (SymptomSeverity.MILD, 100.8, UrgencyLevel.MEDIUM),
            (SymptomSeverity.MODERATE, None, UrgencyLevel.MEDIUM),
        ],
    )
    def test_field_rules(
        self, severity: SymptomSeverity, temperature: float | None, expected: UrgencyLevel
    ) -> None:
        assert classify_fields(severity, temperature) == expected

    def test_accepts_plain_string_severity(self) -> None:
        assert classify_fields("severe", 104.0) == UrgencyLevel.EMERGENCY  # type: ignore[arg-type]


class TestUrgencyClassifier:
    def test_prefers_analysis_text(self) -> None:
        classifier = UrgencyClassifier()
        level = classifier.resolve("looks mild", SymptomSeverity.SEVERE, 104.0)
        assert level == UrgencyLevel.LOW

    @pytest.mark.parametrize("analysis", [None, "", "   "])
    def test_falls_back_to_fields_without_analysis(self, analysis: str | None) -> None:
        classifier = UrgencyClassifier()
        level = classifier.resolve(analysis, SymptomSeverity.SEVERE, 104.0)
        assert level == UrgencyLevel.EMERGENCY
