"""Tests for the deterministic consistency audit."""

from __future__ import annotations

from typing import Any

import pytest

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import Severity
from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.services.consistency import CandidateAuditor


def _audit(data: dict[str, Any], context: ResearchContext | None = None):
    return CandidateAuditor().audit(CommercialReport.model_validate(data), context)


def _descriptions(audit) -> list[str]:
    return [i.description for i in audit.issues]


class TestCleanReport:
    def test_no_issues(self, report: CommercialReport, context: ResearchContext) -> None:
        audit = CandidateAuditor().audit(report, context)
        assert audit.issues == ()
        assert audit.score == pytest.approx(1.0)

    def test_computed_figures(self, report: CommercialReport) -> None:
        audit = CandidateAuditor().audit(report)
        assert audit.computed["cagr"] == pytest.approx(0.3195, abs=1e-4)
        assert audit.computed["peak_patients_2030"] == pytest.approx(33_333.33, abs=0.01)
        assert audit.computed["pipeline_density"] == pytest.approx(12.0)
        assert audit.computed["strategic_fit"] == pytest.approx(1.0)


class TestSanity:
    def test_impossible_magnitude(self, report_data: dict[str, Any]) -> None:
        report_data["peak_revenue_2030"] = 2e12
        audit = _audit(report_data)
        assert any("orders of magnitude" in d for d in _descriptions(audit))
        assert audit.blocking_issues

    def test_persistence_out_of_range(self, report_data: dict[str, Any]) -> None:
        report_data["persistence_rate"] = 1.5
        audit = _audit(report_data)
        assert any("persistence_rate must be between" in d for d in _descriptions(audit))
        assert any("Cannot derive peak_patients_2030" in d for d in _descriptions(audit))

    def test_zero_avg_price(self, report_data: dict[str, Any]) -> None:
        report_data["avg_price"] = 0
        audit = _audit(report_data)
        assert "avg_price cannot be zero" in _descriptions(audit)

    def test_years_to_peak_bounds(self, report_data: dict[str, Any]) -> None:
        report_data["years_to_peak"] = 25
        report_data.pop("cagr")
        assert any("years_to_peak" in d for d in _descriptions(_audit(report_data)))

    def test_vector_length_mismatch(self, report_data: dict[str, Any]) -> None:
        report_data["vector_b"] = [1.0, 0.0]
        descriptions = _descriptions(_audit(report_data))
        assert any("vector lengths must match" in d for d in descriptions)


class TestDerivedFigures:
    def test_cagr_contradiction_is_critical(self, report_data: dict[str, Any]) -> None:
        report_data["cagr"] = 0.45
        audit = _audit(report_data)
        issue = next(i for i in audit.issues if "CAGR" in i.description)
        assert issue.severity is Severity.CRITICAL
        assert issue.suggested_fix == "Use CAGR = 0.3195"

    def test_cagr_within_tolerance(self, report_data: dict[str, Any]) -> None:
        report_data["cagr"] = 0.335
        assert not any("CAGR" in d for d in _descriptions(_audit(report_data)))

    def test_peak_patients_relative_tolerance(self, report_data: dict[str, Any]) -> None:
        report_data["peak_patients_2030"] = 36_000
        assert not _audit(report_data).issues
        report_data["peak_patients_2030"] = 40_000
        assert any("peak patients" in d for d in _descriptions(_audit(report_data)))

    def test_pipeline_density_contradiction(self, report_data: dict[str, Any]) -> None:
        report_data["pipeline_density"] = 20.0
        assert any("pipeline density" in d for d in _descriptions(_audit(report_data)))

    def test_strategic_fit_contradiction(self, report_data: dict[str, Any]) -> None:
        report_data["vector_b"] = [0.9, -0.6, 0.1]
        assert any("strategic fit" in d for d in _descriptions(_audit(report_data)))

    def test_negative_peak_revenue_is_reported_not_raised(
        self, report_data: dict[str, Any]
    ) -> None:
        report_data["peak_revenue_2030"] = -1e9
        audit = _audit(report_data)
        assert any("Cannot derive cagr" in d for d in _descriptions(audit))
        assert "cagr" not in audit.computed
        assert audit.blocking_issues


class TestBusinessLogic:
    def test_rare_flag_must_follow_patient_count(self, report_data: dict[str, Any]) -> None:
        report_data["reg_incentives"]["rare_disease"]["value"] = False
        audit = _audit(report_data)
        assert any("Rare disease logic error" in d for d in _descriptions(audit))

    def test_prv_flag_must_follow_patient_count(self, report_data: dict[str, Any]) -> None:
        report_data["reg_incentives"]["prv_eligibility"]["value"] = False
        assert any("PRV logic error" in d for d in _descriptions(_audit(report_data)))

    def test_rare_indication_requires_rare_count(self, report_data: dict[str, Any]) -> None:
        report_data["avg_price"] = 1_000
        report_data["peak_patients_2030"] = 1_500_000
        report_data["reg_incentives"] = None
        ctx = ResearchContext(target="T", indication="rare muscular dystrophy")
        audit = _audit(report_data, ctx)
        issue = next(i for i in audit.issues if "rare disease threshold" in i.description)
        assert issue.severity is Severity.CRITICAL

    def test_oncology_pricing_is_low_severity(self, report_data: dict[str, Any]) -> None:
        ctx = ResearchContext(target="KRAS", indication="pancreatic cancer", phase="Phase 3")
        audit = _audit(report_data, ctx)
        issue = next(i for i in audit.issues if "oncology" in i.description)
        assert issue.severity is Severity.LOW
        assert not audit.blocking_issues

    def test_patients_from_forecast(self, report_data: dict[str, Any]) -> None:
        report_data.pop("peak_patients_2030")
        report_data["financial_forecast"]["peak_patients_count"] = {"value": 450_000}
        assert any("Rare disease logic error" in d for d in _descriptions(_audit(report_data)))


class TestCrossField:
    def test_split_as_percentages(self, report_data: dict[str, Any]) -> None:
        report_data["key_market_assumptions"]["geographic_split"] = {
            "us": 60, "eu": 30, "row": 10,
        }
        assert not _audit(report_data).issues

    def test_split_not_summing(self, report_data: dict[str, Any]) -> None:
        report_data["key_market_assumptions"]["geographic_split"] = {
            "us": 0.6, "eu": 0.3, "row": 0.3,
        }
        audit = _audit(report_data)
        assert any("Geographic split" in i.description for i in audit.blocking_issues)

    def test_low_ten_year_ratio_is_critical(self, report_data: dict[str, Any]) -> None:
        report_data["financial_forecast"]["total_ten_year_revenue_usd"]["value"] = 4e9
        audit = _audit(report_data)
        assert any("Ten-year revenue" in i.description for i in audit.blocking_issues)

    def test_high_ten_year_ratio_is_medium(self, report_data: dict[str, Any]) -> None:
        report_data["financial_forecast"]["total_ten_year_revenue_usd"]["value"] = 3e10
        audit = _audit(report_data)
        issue = next(i for i in audit.issues if "Ten-year revenue" in i.description)
        assert issue.severity is Severity.MEDIUM

    def test_phase_revenue_limit(self, report_data: dict[str, Any]) -> None:
        ctx = ResearchContext(target="T", indication="fibrosis", phase="Phase 1")
        audit = _audit(report_data, ctx)
        issue = next(i for i in audit.issues if "exceeds the plausible" in i.description)
        assert issue.severity is Severity.MEDIUM

    def test_phase_share_limit(
        self, report_data: dict[str, Any], context: ResearchContext
    ) -> None:
        report_data["financial_forecast"]["peak_market_share_percent"] = {"value": 40}
        audit = _audit(report_data, context)
        assert any("Peak market share" in d for d in _descriptions(audit))


class TestCompleteness:
    def test_empty_report(self) -> None:
        audit = CandidateAuditor().audit(CommercialReport())
        severities = {i.description.split(":")[0]: i.severity for i in audit.issues}
        assert severities["Missing core market figures"] is Severity.HIGH
        assert severities["Missing derived figures"] is Severity.MEDIUM
        assert severities["Report cites no sources"] is Severity.HIGH
        assert not audit.blocking_issues
        assert audit.score < 1.0

    def test_issues_sorted_by_severity(self, report_data: dict[str, Any]) -> None:
        report_data["cagr"] = 0.9
        report_data.pop("avg_price")
        audit = _audit(report_data)
        assert audit.issues[0].severity is Severity.CRITICAL
        assert audit.issues[-1].severity is not Severity.CRITICAL
