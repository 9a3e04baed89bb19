"""Quality assessment: turn one candidate into a ``QualityAssessment``.

The assessor parses the candidate, delegates category scoring to a
``BaseQualityScorer``, merges in the deterministic audit findings, and
derives the overall score, confidence, retry decision, retry priority and
corrective instructions.

Acceptance requires all of:

- overall score >= threshold x 100
- no critical-severity issue
- source credibility >= 80 and reasoning depth >= 80
- confidence >= 0.8
- source quality >= 80

If the candidate cannot be parsed or the scorer fails, a default
assessment is produced instead (overall 50, one critical ``system`` issue).
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Mapping
from typing import Any

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory, RetryPriority, Severity
from pharma_assurance.domain.exceptions import CandidateParseError
from pharma_assurance.domain.values import (
    CATEGORY_WEIGHTS,
    CategoryScore,
    CriticalIssue,
    QualityAssessment,
    ResearchContext,
    ResearchParameters,
    SourceValidation,
    weighted_overall,
)
from pharma_assurance.services.consistency import CandidateAuditor
from pharma_assurance.services.parsing import parse_candidate
from pharma_assurance.services.scoring import BaseQualityScorer, ScoreSheet

logger = logging.getLogger(__name__)

MIN_CATEGORY_SCORE = 80.0
MIN_CONFIDENCE = 0.8
MIN_SOURCE_QUALITY = 80.0
MAX_IMPROVEMENT_POTENTIAL = 8.0
HIGH_PRIORITY_MARGIN = 10.0
DEFAULT_SCORE = 50.0
DEFAULT_CONFIDENCE = 0.5


# ===================================================================== #
#  Decision rules                                                        #
# ===================================================================== #

def is_acceptable(assessment: QualityAssessment, threshold: float) -> bool:
    """Whether *assessment* meets every acceptance criterion at *threshold* (0-1)."""
    return (
        assessment.overall_score >= threshold * 100.0
        and not assessment.has_blocking_issues
        and assessment.score_for(QualityCategory.SOURCE_CREDIBILITY) >= MIN_CATEGORY_SCORE
        and assessment.score_for(QualityCategory.REASONING_DEPTH) >= MIN_CATEGORY_SCORE
        and assessment.confidence >= MIN_CONFIDENCE
        and assessment.source_validation.source_quality_score >= MIN_SOURCE_QUALITY
    )


def needs_retry(
    overall: float,
    category_scores: Mapping[QualityCategory, CategoryScore],
    issues: tuple[CriticalIssue, ...],
    confidence: float,
    improvement_potential: float,
    threshold: float,
) -> bool:
    """Whether a candidate with these figures should be regenerated."""

    def _score(cat: QualityCategory) -> float:
        entry = category_scores.get(cat)
        return entry.score if entry is not None else 0.0

    return (
        any(i.is_blocking for i in issues)
        or overall < threshold * 100.0
        or _score(QualityCategory.SOURCE_CREDIBILITY) < MIN_CATEGORY_SCORE
        or _score(QualityCategory.REASONING_DEPTH) < MIN_CATEGORY_SCORE
        or improvement_potential > MAX_IMPROVEMENT_POTENTIAL
        or confidence < MIN_CONFIDENCE
    )


def build_corrective_instructions(
    category_scores: Mapping[QualityCategory, CategoryScore],
    issues: tuple[CriticalIssue, ...],
    source_validation: SourceValidation,
    scorer_text: str = "",
) -> str:
    """Summarize what the next attempt must fix.

    Lists critical and high issues with their fixes, categories below 80,
    missing critical sources and source gaps, then the scorer's own text.
    """
    lines: list[str] = []
    serious = [i for i in issues if i.severity in (Severity.CRITICAL, Severity.HIGH)]
    if serious:
        lines.append("CRITICAL ISSUES TO ADDRESS:")
        for issue in serious:
            fix = issue.suggested_fix or "resolve before resubmitting"
            lines.append(f"- {issue.description}: {fix}")

    weak = [
        (cat, entry.score)
        for cat, entry in category_scores.items()
        if entry.score < MIN_CATEGORY_SCORE
    ]
    if weak:
        lines.append("CATEGORIES BELOW TARGET (target 80+):")
        for cat, score in sorted(weak, key=lambda item: item[1]):
            lines.append(f"- {cat.value}: {score:.0f}/100")

    if source_validation.missing_critical_sources:
        lines.append(
            "MISSING CRITICAL SOURCES: "
            + ", ".join(source_validation.missing_critical_sources)
        )
    if source_validation.source_gaps:
        lines.append("SOURCE GAPS:")
        lines.extend(f"- {gap}" for gap in source_validation.source_gaps)

    if scorer_text:
        lines.append("SPECIFIC CORRECTIVE ACTIONS:")
        lines.append(scorer_text)
    return "\n".join(lines)


# ===================================================================== #
#  Assessor                                                              #
# ===================================================================== #

class QualityAssessor:
    """Score candidates and decide whether they should be retried.

    Parameters
    ----------
    scorer:
        The scoring capability.
    auditor:
        Deterministic auditor whose findings are merged into every
        assessment.  Pass ``None`` to use a default ``CandidateAuditor``.
    timeout:
        Optional scorer timeout in seconds; a timeout counts as a scoring
        failure.
    """

    def __init__(
        self,
        scorer: BaseQualityScorer,
        auditor: CandidateAuditor | None = None,
        timeout: float | None = None,
    ) -> None:
        self._scorer = scorer
        self._auditor = auditor or CandidateAuditor()
        self._timeout = timeout

    @property
    def scorer(self) -> BaseQualityScorer:
        return self._scorer

    def assess(
        self,
        candidate: Any,
        attempt: int,
        parameters: ResearchParameters,
        context: ResearchContext,
        max_attempts: int = 1,
    ) -> QualityAssessment:
        """Assess *candidate* produced on *attempt* of *max_attempts*."""
        attempts_remain = attempt < max_attempts
        try:
            report = parse_candidate(candidate)
        except CandidateParseError as exc:
            logger.warning("QualityAssessor: candidate parse failed: %s", exc)
            return self.default_assessment(attempt, attempts_remain, str(exc))

        try:
            sheet = self._score_with_timeout(report, context, parameters, attempt)
        except concurrent.futures.TimeoutError:
            logger.warning("QualityAssessor: scorer timed out after %ss", self._timeout)
            return self.default_assessment(
                attempt, attempts_remain, f"scoring timed out after {self._timeout}s"
            )
        except Exception as exc:
            logger.warning("QualityAssessor: scoring failed: %s", exc)
            return self.default_assessment(attempt, attempts_remain, str(exc))

        audit = self._auditor.audit(report, context)
        return self.build_assessment(
            sheet,
            attempt=attempt,
            threshold=parameters.quality_threshold,
            attempts_remain=attempts_remain,
            extra_issues=audit.issues,
        )

    def _score_with_timeout(
        self,
        report: CommercialReport,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
    ) -> ScoreSheet:
        if self._timeout is None:
            return self._scorer.score(report, context, parameters, attempt)
        # Not a with-block: its exit would wait for a scorer that overran.
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(self._scorer.score, report, context, parameters, attempt)
            return future.result(timeout=self._timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def build_assessment(
        sheet: ScoreSheet,
        attempt: int,
        threshold: float,
        attempts_remain: bool = True,
        extra_issues: tuple[CriticalIssue, ...] = (),
    ) -> QualityAssessment:
        """Combine a score sheet and audit findings into an assessment."""
        categories: dict[QualityCategory, CategoryScore] = {}
        for cat in CATEGORY_WEIGHTS:
            entry = sheet.category_scores.get(cat)
            if entry is None:
                entry = CategoryScore(
                    score=0.0,
                    confidence=0.0,
                    reasoning="category not scored",
                    issues=("category not scored",),
                )
            categories[cat] = entry

        issues = _merge_issues(sheet.critical_issues, extra_issues)
        overall = round(weighted_overall(categories), 4)
        confidence = min(entry.confidence for entry in categories.values())
        if sheet.confidence is not None:
            confidence = min(confidence, sheet.confidence)
        improvement = (
            sheet.improvement_potential
            if sheet.improvement_potential is not None
            else max(0.0, threshold * 100.0 - overall)
        )

        retry = needs_retry(overall, categories, issues, confidence, improvement, threshold)
        blocking = any(i.is_blocking for i in issues)
        if blocking or overall < threshold * 100.0 - HIGH_PRIORITY_MARGIN:
            priority = RetryPriority.HIGH
        elif retry:
            priority = RetryPriority.MEDIUM
        else:
            priority = RetryPriority.LOW

        return QualityAssessment(
            overall_score=overall,
            category_scores=categories,
            critical_issues=issues,
            source_validation=sheet.source_validation,
            confidence=confidence,
            retry_recommended=retry and attempts_remain,
            retry_priority=priority,
            corrective_instructions=build_corrective_instructions(
                categories, issues, sheet.source_validation, sheet.corrective_text
            ),
            improvement_potential=improvement,
            attempt=attempt,
        )

    @staticmethod
    def default_assessment(
        attempt: int,
        attempts_remain: bool,
        error: str,
    ) -> QualityAssessment:
        """Stand-in assessment used when a candidate cannot be scored."""
        categories = {
            cat: CategoryScore(
                score=DEFAULT_SCORE,
                confidence=DEFAULT_CONFIDENCE,
                reasoning="Default score due to assessment failure",
            )
            for cat in CATEGORY_WEIGHTS
        }
        issue = CriticalIssue(
            severity=Severity.CRITICAL,
            category="system",
            description="Review process failed",
            impact="Unable to assess quality",
            suggested_fix="Retry with improved error handling",
            evidence=(error,),
        )
        return QualityAssessment(
            overall_score=DEFAULT_SCORE,
            category_scores=categories,
            critical_issues=(issue,),
            source_validation=SourceValidation(),
            confidence=DEFAULT_CONFIDENCE,
            retry_recommended=attempts_remain,
            retry_priority=RetryPriority.HIGH,
            corrective_instructions="Review process failed - retry with improved error handling",
            improvement_potential=DEFAULT_SCORE,
            attempt=attempt,
            scoring_failed=True,
        )


def _merge_issues(
    primary: tuple[CriticalIssue, ...],
    extra: tuple[CriticalIssue, ...],
) -> tuple[CriticalIssue, ...]:
    seen = {(i.severity, i.description) for i in primary}
    merged = list(primary)
    for issue in extra:
        key = (issue.severity, issue.description)
        if key not in seen:
            seen.add(key)
            merged.append(issue)
    return tuple(merged)
