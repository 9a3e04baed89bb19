"""Scoring strategies: rate a report across the eight quality categories.

A scorer produces a ``ScoreSheet`` -- raw per-category scores, issues and
source metrics.  The ``QualityAssessor`` turns a sheet into a
``QualityAssessment`` (weighted overall, confidence, retry decision).

Classes
-------
ScoreSheet
    Raw scorer output.
BaseQualityScorer
    Abstract scoring strategy.
RuleBasedScorer
    Deterministic scorer built on the consistency audit and source
    classification; needs no external capability.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from urllib.parse import urlparse

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory
from pharma_assurance.domain.values import (
    CategoryScore,
    CriticalIssue,
    ResearchContext,
    ResearchParameters,
    SourceValidation,
)
from pharma_assurance.services.consistency import AuditReport, CandidateAuditor

logger = logging.getLogger(__name__)

# Primary regulatory and clinical sources.
PRIMARY_SOURCE_DOMAINS = frozenset({
    "fda.gov",
    "ema.europa.eu",
    "clinicaltrials.gov",
    "pubmed.ncbi.nlm.nih.gov",
})

AUTHORITATIVE_SOURCE_DOMAINS = PRIMARY_SOURCE_DOMAINS | frozenset({
    "sec.gov",
    "who.int",
    "cdc.gov",
    "cancer.gov",
    "nih.gov",
    "cms.gov",
    "nice.org.uk",
})

# Sources a report is expected to cite for regulatory and clinical claims.
CRITICAL_SOURCE_GROUPS: Mapping[str, frozenset[str]] = {
    "FDA.gov or EMA.europa.eu": frozenset({"fda.gov", "ema.europa.eu"}),
    "clinicaltrials.gov": frozenset({"clinicaltrials.gov"}),
}


@dataclass(frozen=True)
class ScoreSheet:
    """Raw output of a scoring strategy.

    ``confidence`` and ``improvement_potential`` are optional; the assessor
    derives them when a scorer leaves them unset.
    """

    category_scores: Mapping[QualityCategory, CategoryScore]
    critical_issues: tuple[CriticalIssue, ...] = ()
    source_validation: SourceValidation = field(default_factory=SourceValidation)
    confidence: float | None = None
    improvement_potential: float | None = None
    corrective_text: str = ""


class BaseQualityScorer(ABC):
    """Abstract scoring strategy.

    Implementations raise ``ScoringError`` when they cannot produce a sheet;
    the assessor maps that to the default assessment.
    """

    @abstractmethod
    def score(
        self,
        report: CommercialReport,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
    ) -> ScoreSheet:
        """Score *report* for *context*."""


def _domain_of(url: str) -> str:
    netloc = urlparse(url if "//" in url else f"//{url}").netloc.lower()
    return netloc[4:] if netloc.startswith("www.") else netloc


def _matches(domain: str, candidates: frozenset[str]) -> bool:
    return any(domain == c or domain.endswith("." + c) for c in candidates)


def classify_sources(urls: Sequence[str], min_source_count: int = 3) -> SourceValidation:
    """Summarize *urls* into a ``SourceValidation``.

    A URL is valid if it has a host; primary and authoritative status come
    from the domain lists above.  The quality score rewards authoritative
    citations and is scaled down when fewer than *min_source_count* valid
    sources are present.
    """
    domains = [_domain_of(u) for u in urls]
    valid = [d for d in domains if d and "." in d]
    primary = [d for d in valid if _matches(d, PRIMARY_SOURCE_DOMAINS)]
    authoritative = [d for d in valid if _matches(d, AUTHORITATIVE_SOURCE_DOMAINS)]

    if valid:
        quality = 100.0 * (len(authoritative) + 0.6 * (len(valid) - len(authoritative))) / len(valid)
        if min_source_count > 0 and len(valid) < min_source_count:
            quality *= len(valid) / min_source_count
    else:
        quality = 0.0

    missing = tuple(
        label for label, group in CRITICAL_SOURCE_GROUPS.items()
        if not any(_matches(d, group) for d in valid)
    )
    gaps: list[str] = []
    if len(valid) < min_source_count:
        gaps.append(f"only {len(valid)} valid source(s); at least {min_source_count} required")
    if len(valid) < len(domains):
        gaps.append(f"{len(domains) - len(valid)} citation(s) are not resolvable URLs")

    return SourceValidation(
        total_sources=len(domains),
        valid_sources=len(valid),
        primary_sources=len(primary),
        recent_sources=0,
        authoritative_sources=len(authoritative),
        source_quality_score=round(min(100.0, quality), 2),
        missing_critical_sources=missing,
        source_gaps=tuple(gaps),
    )


class RuleBasedScorer(BaseQualityScorer):
    """Deterministic scorer derived from the consistency audit.

    Category mapping:

    - factual accuracy: numeric sanity and derived-figure sections
    - scientific coherence: cross-field section
    - source credibility: source classification
    - pharma expertise / competitive analysis: competitor, deal and pricing depth
    - reasoning depth: data completeness
    - regulatory compliance: business-logic section and incentive plausibility
    - market intelligence: presence of core market figures

    Parameters
    ----------
    auditor:
        Optional auditor instance; a fresh ``CandidateAuditor`` by default.
    min_source_count:
        Valid sources needed before source credibility is unpenalized.
    """

    def __init__(
        self,
        auditor: CandidateAuditor | None = None,
        min_source_count: int = 3,
    ) -> None:
        self._auditor = auditor or CandidateAuditor()
        self._min_source_count = min_source_count

    def score(
        self,
        report: CommercialReport,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
    ) -> ScoreSheet:
        audit = self._auditor.audit(report, context)
        sources = classify_sources(report.all_sources(), self._min_source_count)
        sections = audit.section_scores
        present = 1.0 - len(report.missing_fields(
            ("current_market", "peak_revenue_2030", "years_to_peak", "avg_price")
        )) / 4

        def _cat(value: float, confidence: float, reasoning: str) -> CategoryScore:
            return CategoryScore(
                score=round(max(0.0, min(100.0, value)), 2),
                confidence=max(0.0, min(1.0, confidence)),
                reasoning=reasoning,
            )

        data_confidence = 0.5 + 0.5 * sections.get("data_quality", 0.0)
        categories = {
            QualityCategory.FACTUAL_ACCURACY: _cat(
                50.0 * (sections["sanity"] + sections["derived"]),
                data_confidence,
                "numeric sanity and derived-figure agreement",
            ),
            QualityCategory.SCIENTIFIC_COHERENCE: _cat(
                100.0 * sections["cross_field"], data_confidence, "cross-field relationships"
            ),
            QualityCategory.SOURCE_CREDIBILITY: _cat(
                sources.source_quality_score,
                1.0 if sources.valid_sources >= self._min_source_count else 0.6,
                f"{sources.authoritative_sources}/{sources.valid_sources} authoritative sources",
            ),
            QualityCategory.PHARMA_EXPERTISE: _cat(
                self._depth_score(report), data_confidence, "competitive and pricing depth"
            ),
            QualityCategory.REASONING_DEPTH: _cat(
                100.0 * sections["data_quality"], data_confidence, "completeness of the analysis"
            ),
            QualityCategory.REGULATORY_COMPLIANCE: _cat(
                self._regulatory_score(report, context, sections["business"]),
                data_confidence,
                "rare-disease, PRV and review-timeline logic",
            ),
            QualityCategory.MARKET_INTELLIGENCE: _cat(
                100.0 * present, data_confidence, "core market figures present"
            ),
            QualityCategory.COMPETITIVE_ANALYSIS: _cat(
                self._competition_score(report), data_confidence, "competitor and deal coverage"
            ),
        }
        logger.debug(
            "RuleBasedScorer: attempt=%d audit=%.3f sources=%d",
            attempt,
            audit.score,
            sources.valid_sources,
        )
        return ScoreSheet(
            category_scores=categories,
            critical_issues=audit.issues,
            source_validation=sources,
        )

    def audit(self, report: CommercialReport, context: ResearchContext) -> AuditReport:
        return self._auditor.audit(report, context)

    @staticmethod
    def _depth_score(report: CommercialReport) -> float:
        score = 100.0
        if not report.direct_competitors:
            score -= 20
        elif len(report.direct_competitors) < 3:
            score -= 10
        if len(report.pricing_scenarios) < 2:
            score -= 10
        if not report.deal_activity:
            score -= 10
        return score

    @staticmethod
    def _competition_score(report: CommercialReport) -> float:
        score = 100.0
        if not report.direct_competitors:
            score -= 40
        elif len(report.direct_competitors) < 3:
            score -= 20
        if not report.deal_activity:
            score -= 20
        return score

    @staticmethod
    def _regulatory_score(
        report: CommercialReport,
        context: ResearchContext,
        business: float,
    ) -> float:
        score = 100.0 * business
        incentives = report.reg_incentives
        if incentives is None:
            return score
        early = context.phase_key in ("preclinical", "phase1")
        if early and incentives.prv_eligibility is not None and incentives.prv_eligibility.value:
            score -= 10
        timeline = incentives.review_timeline_months
        if timeline is not None and not (6 <= timeline.value <= 18):
            score -= 10
        return score
