"""Tests for source classification and the rule-based scorer."""

from __future__ import annotations

from typing import Any

import pytest

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory
from pharma_assurance.domain.values import ResearchContext, ResearchParameters
from pharma_assurance.services.scoring import RuleBasedScorer, classify_sources


class TestClassifySources:
    def test_authoritative_sources(self) -> None:
        result = classify_sources(
            [
                "https://www.fda.gov/drugs",
                "https://clinicaltrials.gov/study/NCT1",
                "https://www.sec.gov/filing",
            ]
        )
        assert result.valid_sources == 3
        assert result.primary_sources == 2
        assert result.authoritative_sources == 3
        assert result.source_quality_score == pytest.approx(100.0)
        assert result.missing_critical_sources == ()
        assert result.source_gaps == ()

    def test_subdomains_match(self) -> None:
        result = classify_sources(["https://pubmed.ncbi.nlm.nih.gov/123/"])
        assert result.primary_sources == 1

    def test_too_few_sources_scaled(self) -> None:
        result = classify_sources(["https://fda.gov/x", "https://example.com/y"])
        # (1 + 0.6) / 2 authoritative-weighted, then scaled by 2/3
        assert result.source_quality_score == pytest.approx(53.33, abs=0.01)
        assert result.missing_critical_sources == ("clinicaltrials.gov",)
        assert "only 2 valid source(s); at least 3 required" in result.source_gaps

    def test_unresolvable_citations(self) -> None:
        result = classify_sources(["see appendix", "https://fda.gov/a"], min_source_count=1)
        assert result.total_sources == 2
        assert result.valid_sources == 1
        assert "1 citation(s) are not resolvable URLs" in result.source_gaps

    def test_no_sources(self) -> None:
        result = classify_sources([])
        assert result.source_quality_score == 0.0
        assert len(result.missing_critical_sources) == 2


class TestRuleBasedScorer:
    def test_consistent_report_scores_full(
        self, report: CommercialReport, context: ResearchContext
    ) -> None:
        sheet = RuleBasedScorer().score(report, context, ResearchParameters(), attempt=1)
        assert set(sheet.category_scores) == set(QualityCategory)
        for entry in sheet.category_scores.values():
            assert entry.score == pytest.approx(100.0)
        assert sheet.critical_issues == ()
        assert sheet.source_validation.valid_sources == 6

    def test_contradictions_lower_factual_accuracy(
        self, report_data: dict[str, Any], context: ResearchContext
    ) -> None:
        report_data["cagr"] = 0.9
        report_data["pipeline_density"] = 40.0
        report = CommercialReport.model_validate(report_data)
        sheet = RuleBasedScorer().score(report, context, ResearchParameters(), attempt=1)
        factual = sheet.category_scores[QualityCategory.FACTUAL_ACCURACY]
        assert factual.score < 100.0
        assert any(i.is_blocking for i in sheet.critical_issues)

    def test_sparse_report(self, context: ResearchContext) -> None:
        report = CommercialReport(current_market=1e8)
        sheet = RuleBasedScorer().score(report, context, ResearchParameters(), attempt=1)
        scores = {cat: entry.score for cat, entry in sheet.category_scores.items()}
        assert scores[QualityCategory.MARKET_INTELLIGENCE] == pytest.approx(25.0)
        assert scores[QualityCategory.COMPETITIVE_ANALYSIS] == pytest.approx(40.0)
        assert scores[QualityCategory.SOURCE_CREDIBILITY] == 0.0

    def test_prv_claim_in_early_phase_penalized(self, report: CommercialReport) -> None:
        early = ResearchContext(target="LPA1", indication="fibrosis", phase="Phase 1")
        sheet = RuleBasedScorer().score(report, early, ResearchParameters(), attempt=1)
        regulatory = sheet.category_scores[QualityCategory.REGULATORY_COMPLIANCE]
        assert regulatory.score == pytest.approx(90.0)
