"""Tests for LLMQualityScorer."""

from __future__ import annotations

import pytest

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory, Severity
from pharma_assurance.domain.exceptions import ScoringError
from pharma_assurance.domain.values import ResearchContext, ResearchParameters
from pharma_assurance.services.assessment import QualityAssessor, is_acceptable
from pharma_assurance.services.llm_scoring import (
    CategoryOutput,
    IssueOutput,
    LLMQualityScorer,
    ScoringOutput,
    SourceValidationOutput,
    to_score_sheet,
)
from tests.helpers.mock_llm import MockStructuredChatModel


def _output(score: float = 88.0, **kwargs) -> ScoringOutput:
    categories = {
        cat.value: CategoryOutput(score=score, confidence=0.9, reasoning="ok")
        for cat in QualityCategory
    }
    return ScoringOutput(
        **categories,
        source_validation=SourceValidationOutput(
            total_sources=5, valid_sources=5, primary_sources=3, source_quality_score=86
        ),
        **kwargs,
    )


class TestToScoreSheet:
    def test_categories(self) -> None:
        sheet = to_score_sheet(_output(91.0))
        assert sheet.category_scores[QualityCategory.SCIENTIFIC_COHERENCE].score == 91.0
        assert sheet.source_validation.source_quality_score == 86

    def test_issue_severity_parsing(self) -> None:
        sheet = to_score_sheet(
            _output(
                critical_issues=[
                    IssueOutput(severity=" Critical ", category="factual_accuracy",
                                description="fabricated deal"),
                    IssueOutput(severity="severe", category="x", description="odd"),
                ]
            )
        )
        assert [i.severity for i in sheet.critical_issues] == [Severity.CRITICAL, Severity.MEDIUM]

    def test_optional_fields(self) -> None:
        sheet = to_score_sheet(
            _output(confidence=0.7, improvement_potential=4.0, corrective_instructions="fix")
        )
        assert sheet.confidence == 0.7
        assert sheet.improvement_potential == 4.0
        assert sheet.corrective_text == "fix"


class TestLLMQualityScorer:
    def test_score(self, report: CommercialReport, context: ResearchContext) -> None:
        model = MockStructuredChatModel(structured_responses=[_output(88.0)])
        sheet = LLMQualityScorer(model).score(report, context, ResearchParameters(), 1)
        assert sheet.category_scores[QualityCategory.FACTUAL_ACCURACY].score == 88.0

    def test_model_error(self, report: CommercialReport, context: ResearchContext) -> None:
        model = MockStructuredChatModel(structured_responses=[RuntimeError("boom")])
        with pytest.raises(ScoringError, match="boom"):
            LLMQualityScorer(model).score(report, context, ResearchParameters(), 1)

    def test_with_assessor(self, report: CommercialReport, context: ResearchContext) -> None:
        model = MockStructuredChatModel(structured_responses=[_output(90.0)])
        qa = QualityAssessor(LLMQualityScorer(model)).assess(
            report, attempt=1, parameters=ResearchParameters(), context=context
        )
        assert qa.overall_score == pytest.approx(90.0)
        assert is_acceptable(qa, 0.85)

    def test_failure_maps_to_default(
        self, report: CommercialReport, context: ResearchContext
    ) -> None:
        model = MockStructuredChatModel(structured_responses=[ValueError("bad json")])
        qa = QualityAssessor(LLMQualityScorer(model)).assess(
            report, attempt=1, parameters=ResearchParameters(), context=context, max_attempts=2
        )
        assert qa.scoring_failed
        assert qa.retry_recommended
