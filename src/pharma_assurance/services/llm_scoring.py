"""LLM-based scoring strategy using LangChain structured output.

Uses ``model.with_structured_output(ScoringOutput)`` to obtain the eight
category scores, issues and source metrics for a report.  Any failure is
raised as ``ScoringError``; the assessor turns that into the default
assessment.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory, Severity
from pharma_assurance.domain.exceptions import ScoringError
from pharma_assurance.domain.values import (
    CategoryScore,
    CriticalIssue,
    ResearchContext,
    ResearchParameters,
    SourceValidation,
)
from pharma_assurance.services.scoring import BaseQualityScorer, ScoreSheet

logger = logging.getLogger(__name__)

# -- Structured output schemas -----------------------------------------------


class CategoryOutput(BaseModel):
    score: float = Field(ge=0, le=100, description="Category score [0, 100]")
    confidence: float = Field(ge=0, le=1, description="Confidence in the score [0, 1]")
    reasoning: str = ""
    evidence: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)


class IssueOutput(BaseModel):
    severity: str = Field(description="critical | high | medium | low")
    category: str
    description: str
    impact: str = ""
    suggested_fix: str = ""
    evidence: list[str] = Field(default_factory=list)


class SourceValidationOutput(BaseModel):
    total_sources: int = 0
    valid_sources: int = 0
    primary_sources: int = 0
    recent_sources: int = 0
    authoritative_sources: int = 0
    source_quality_score: float = Field(default=0, ge=0, le=100)
    missing_critical_sources: list[str] = Field(default_factory=list)
    source_gaps: list[str] = Field(default_factory=list)


class ScoringOutput(BaseModel):
    """Structured output schema for LLM quality review."""

    factual_accuracy: CategoryOutput
    scientific_coherence: CategoryOutput
    source_credibility: CategoryOutput
    pharma_expertise: CategoryOutput
    reasoning_depth: CategoryOutput
    regulatory_compliance: CategoryOutput
    market_intelligence: CategoryOutput
    competitive_analysis: CategoryOutput
    critical_issues: list[IssueOutput] = Field(default_factory=list)
    source_validation: SourceValidationOutput = Field(default_factory=SourceValidationOutput)
    confidence: float | None = Field(default=None, ge=0, le=1)
    improvement_potential: float | None = Field(default=None, ge=0, le=100)
    corrective_instructions: str = ""


# -- Prompt ------------------------------------------------------------------

_SCORING_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a senior pharmaceutical commercial-intelligence reviewer. "
            "Score the report on each quality category from 0 to 100 with a "
            "confidence from 0 to 1. Flag fabricated data, impossible "
            "magnitudes and internal contradictions as critical issues.\n\n"
            "Validation strictness: {strictness}. Quality threshold: {threshold}/100.",
        ),
        (
            "human",
            "## Asset\n"
            "**Target**: {target}\n"
            "**Indication**: {indication}\n"
            "**Therapeutic area**: {therapeutic_area}\n"
            "**Geography**: {geography}\n"
            "**Phase**: {phase}\n\n"
            "## Report (attempt {attempt})\n{report}\n\n"
            "Review the report.",
        ),
    ]
)


# -- LLMQualityScorer --------------------------------------------------------


class LLMQualityScorer(BaseQualityScorer):
    """Score reports with an LLM reviewer.

    Parameters
    ----------
    model:
        A LangChain chat model (e.g. ``ChatOpenAI``, ``ChatAnthropic``).
    prompt:
        Optional custom ``ChatPromptTemplate`` to replace the default.
    """

    def __init__(
        self,
        model: BaseChatModel,
        prompt: ChatPromptTemplate | None = None,
    ) -> None:
        self.model = model
        self._prompt = prompt or _SCORING_PROMPT
        self._chain = self._build_chain()

    def _build_chain(self) -> Any:
        structured_model = self.model.with_structured_output(ScoringOutput)
        return self._prompt | structured_model

    def score(
        self,
        report: CommercialReport,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
    ) -> ScoreSheet:
        try:
            result = self._chain.invoke(
                {
                    "strictness": parameters.validation_strictness.value,
                    "threshold": round(parameters.quality_threshold * 100),
                    "target": context.target,
                    "indication": context.indication,
                    "therapeutic_area": context.therapeutic_area or "N/A",
                    "geography": context.geography,
                    "phase": context.phase,
                    "attempt": attempt,
                    "report": json.dumps(report.to_document(), indent=2, default=str),
                }
            )
        except Exception as exc:
            raise ScoringError(f"LLM review failed: {exc}", scorer="llm") from exc

        if not isinstance(result, ScoringOutput):
            raise ScoringError(
                f"LLM review returned {type(result).__name__}, expected ScoringOutput",
                scorer="llm",
            )
        return to_score_sheet(result)


def to_score_sheet(output: ScoringOutput) -> ScoreSheet:
    """Convert the structured LLM output into a ``ScoreSheet``."""
    categories = {}
    for cat in QualityCategory:
        entry: CategoryOutput = getattr(output, cat.value)
        categories[cat] = CategoryScore(
            score=entry.score,
            confidence=entry.confidence,
            reasoning=entry.reasoning,
            evidence=tuple(entry.evidence),
            issues=tuple(entry.issues),
        )

    issues = []
    for item in output.critical_issues:
        try:
            severity = Severity(item.severity.strip().lower())
        except ValueError:
            logger.debug("LLMQualityScorer: unknown severity %r, using medium", item.severity)
            severity = Severity.MEDIUM
        issues.append(
            CriticalIssue(
                severity=severity,
                category=item.category,
                description=item.description,
                impact=item.impact,
                suggested_fix=item.suggested_fix,
                evidence=tuple(item.evidence),
            )
        )

    sv = output.source_validation
    return ScoreSheet(
        category_scores=categories,
        critical_issues=tuple(issues),
        source_validation=SourceValidation(
            total_sources=sv.total_sources,
            valid_sources=sv.valid_sources,
            primary_sources=sv.primary_sources,
            recent_sources=sv.recent_sources,
            authoritative_sources=sv.authoritative_sources,
            source_quality_score=sv.source_quality_score,
            missing_critical_sources=tuple(sv.missing_critical_sources),
            source_gaps=tuple(sv.source_gaps),
        ),
        confidence=output.confidence,
        improvement_potential=output.improvement_potential,
        corrective_text=output.corrective_instructions,
    )
