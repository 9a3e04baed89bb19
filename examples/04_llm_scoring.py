#!/usr/bin/env python3
"""Example 04: LLM-backed scoring with a mock chat model.

Demonstrates:
- LLMQualityScorer built on with_structured_output(ScoringOutput)
- Swapping in MockStructuredChatModel so no API key is needed
- Assessing one report with QualityAssessor and reading the decision

Replace the mock with any LangChain chat model (``ChatOpenAI``,
``ChatAnthropic`` ...) to score real reports.

Run:
    PYTHONPATH=src python examples/04_llm_scoring.py
"""

from __future__ import annotations

from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.services.assessment import QualityAssessor, is_acceptable
from pharma_assurance.services.llm_scoring import (
    CategoryOutput,
    IssueOutput,
    LLMQualityScorer,
    ScoringOutput,
    SourceValidationOutput,
)
from pharma_assurance.services.parameters import ParameterSelector
from pharma_assurance.testing import MockStructuredChatModel


def _category(score: float) -> CategoryOutput:
    return CategoryOutput(score=score, confidence=0.85, reasoning="mock review")


def main() -> None:
    review = ScoringOutput(
        factual_accuracy=_category(78),
        scientific_coherence=_category(88),
        source_credibility=_category(84),
        pharma_expertise=_category(86),
        reasoning_depth=_category(82),
        regulatory_compliance=_category(90),
        market_intelligence=_category(80),
        competitive_analysis=_category(75),
        critical_issues=[
            IssueOutput(
                severity="high",
                category="factual_accuracy",
                description="Peak revenue lacks a cited analyst consensus",
                suggested_fix="Cite an analyst or company forecast for 2030 revenue",
            )
        ],
        source_validation=SourceValidationOutput(
            total_sources=6, valid_sources=6, authoritative_sources=4, source_quality_score=86
        ),
    )
    model = MockStructuredChatModel(structured_responses=[review])

    context = ResearchContext(
        target="C5aR1", indication="hidradenitis suppurativa", therapeutic_area="Dermatology"
    )
    parameters = ParameterSelector().select(context)
    assessor = QualityAssessor(LLMQualityScorer(model), timeout=30.0)

    report = {"currentMarket": 1.2e9, "peakRevenue2030": 3.5e9, "yearsToPeak": 6}
    assessment = assessor.assess(report, attempt=1, parameters=parameters, context=context)

    print("=== LLM Scoring ===")
    print(f"Threshold:  {parameters.quality_threshold:.2f}")
    print(f"Overall:    {assessment.overall_score:.1f}")
    print(f"Confidence: {assessment.confidence:.2f}")
    print(f"Accepted:   {is_acceptable(assessment, parameters.quality_threshold)}")
    print(f"Priority:   {assessment.retry_priority.value}")
    print()
    print(assessment.corrective_instructions)


if __name__ == "__main__":
    main()
