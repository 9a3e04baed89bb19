"""Value objects for the pharma-assurance engine.

All types here are frozen dataclasses -- immutable, compared by value.
They represent the request context, the derived research parameters, and
the scores, issues and validation outcomes produced while a request is
being assured.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from .enums import (
    QualityCategory,
    ReasoningEffort,
    RetryPriority,
    SearchContextSize,
    SearchDepth,
    Severity,
    ValidationStrictness,
)

# Weight of each category in the overall score; sums to 1.0.
CATEGORY_WEIGHTS: Mapping[QualityCategory, float] = MappingProxyType({
    QualityCategory.FACTUAL_ACCURACY: 0.20,
    QualityCategory.SCIENTIFIC_COHERENCE: 0.15,
    QualityCategory.SOURCE_CREDIBILITY: 0.15,
    QualityCategory.PHARMA_EXPERTISE: 0.15,
    QualityCategory.REASONING_DEPTH: 0.10,
    QualityCategory.REGULATORY_COMPLIANCE: 0.10,
    QualityCategory.MARKET_INTELLIGENCE: 0.10,
    QualityCategory.COMPETITIVE_ANALYSIS: 0.05,
})

# Allowed drift between a reported overall score and the weighted sum.
OVERALL_SCORE_TOLERANCE = 0.1

_KEY_RE = re.compile(r"[^a-z0-9]")


def normalize_key(value: str) -> str:
    """Lower-case *value* and strip everything but letters and digits.

    ``"Pre-clinical"`` -> ``"preclinical"``, ``"South Korea"`` -> ``"southkorea"``.
    """
    return _KEY_RE.sub("", value.lower())


# ---------------------------------------------------------------------------
# ResearchContext
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResearchContext:
    """Immutable description of the asset a research request is about.

    Attributes
    ----------
    target:
        Molecular target (e.g. ``"IL-23"``).
    indication:
        Disease indication.
    therapeutic_area:
        Therapeutic area name; matched case- and punctuation-insensitively.
    geography:
        Market geography (``"US"``, ``"EU"``, ``"Global"`` ...).
    phase:
        Development phase (``"Pre-clinical"``, ``"Phase 2"``, ``"Approved"`` ...).
    full_research:
        Request full-depth research.
    academic_emphasis:
        Weight academic sources more heavily.
    """

    target: str
    indication: str
    therapeutic_area: str = ""
    geography: str = "Global"
    phase: str = "Phase 2"
    full_research: bool = False
    academic_emphasis: bool = False

    def __post_init__(self) -> None:
        if not self.target.strip():
            raise ValueError("target must not be empty")
        if not self.indication.strip():
            raise ValueError("indication must not be empty")

    @property
    def area_key(self) -> str:
        return normalize_key(self.therapeutic_area)

    @property
    def geography_key(self) -> str:
        return normalize_key(self.geography)

    @property
    def phase_key(self) -> str:
        """Normalized phase; a filed asset is treated as approved."""
        key = normalize_key(self.phase)
        if key in ("filed", "nda", "bla", "marketed"):
            return "approved"
        return key

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "indication": self.indication,
            "therapeutic_area": self.therapeutic_area,
            "geography": self.geography,
            "phase": self.phase,
            "full_research": self.full_research,
            "academic_emphasis": self.academic_emphasis,
        }


# ---------------------------------------------------------------------------
# ResearchParameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldThreshold:
    """Per-field validation requirement."""

    field_name: str
    min_score: float
    regenerate_on_failure: bool = False
    strictness: ValidationStrictness = ValidationStrictness.MEDIUM

    def __post_init__(self) -> None:
        if not (0.0 <= self.min_score <= 1.0):
            raise ValueError(f"min_score must be in [0, 1], got {self.min_score}")


@dataclass(frozen=True)
class ResearchGuidance:
    """Context-specific focus hints passed to the generation capability."""

    focus_areas: tuple[str, ...] = ()
    data_sources: tuple[str, ...] = ()
    phase_requirements: tuple[str, ...] = ()
    validation_criteria: tuple[str, ...] = ()
    geography_requirements: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResearchParameters:
    """Configuration derived from a ``ResearchContext``.

    Produced once per request by ``ParameterSelector`` and read-only
    thereafter.  ``quality_threshold`` is expressed in [0, 1].
    """

    quality_threshold: float = 0.85
    validation_strictness: ValidationStrictness = ValidationStrictness.HIGH
    max_validation_cycles: int = 3
    max_field_retries: int = 2
    search_depth: SearchDepth = SearchDepth.DEEP
    search_context_size: SearchContextSize = SearchContextSize.HIGH
    queries_per_search: int = 4
    reasoning_effort: ReasoningEffort = ReasoningEffort.HIGH
    cost_ceiling: float = 5.0
    cost_allocation: Mapping[str, float] = field(default_factory=dict)
    field_thresholds: Mapping[str, FieldThreshold] = field(default_factory=dict)
    enable_field_level_validation: bool = True
    enable_smart_validation: bool = True
    enable_logic_validation: bool = True
    enable_executive_validation: bool = True
    enable_enhancement: bool = True
    enable_caching: bool = True
    batch_size: int = 6
    rate_limit_delay: float = 2.0
    timeout_seconds: float = 180.0
    guidance: ResearchGuidance = field(default_factory=ResearchGuidance)

    def __post_init__(self) -> None:
        if not (0.0 <= self.quality_threshold <= 1.0):
            raise ValueError(
                f"quality_threshold must be in [0, 1], got {self.quality_threshold}"
            )
        if self.cost_ceiling < 0.0:
            raise ValueError(f"cost_ceiling must be >= 0, got {self.cost_ceiling}")
        object.__setattr__(self, "cost_allocation", MappingProxyType(dict(self.cost_allocation)))
        object.__setattr__(self, "field_thresholds", MappingProxyType(dict(self.field_thresholds)))

    def threshold_for(self, field_name: str) -> FieldThreshold:
        """Return the threshold for *field_name*, or the ``default`` entry."""
        found = self.field_thresholds.get(field_name)
        if found is not None:
            return found
        default = self.field_thresholds.get("default")
        if default is not None:
            return replace(default, field_name=field_name)
        return FieldThreshold(field_name=field_name, min_score=0.6)

    def with_overrides(self, **changes: Any) -> ResearchParameters:
        """Return a copy with *changes* applied."""
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Scores and issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryScore:
    """Score of one quality category (0-100) with its confidence (0-1)."""

    score: float
    confidence: float = 1.0
    reasoning: str = ""
    evidence: tuple[str, ...] = ()
    issues: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not (0.0 <= self.score <= 100.0):
            raise ValueError(f"score must be in [0, 100], got {self.score}")
        if not (0.0 <= self.confidence <= 1.0):
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class CriticalIssue:
    """A defect found in a candidate."""

    severity: Severity
    category: str
    description: str
    impact: str = ""
    suggested_fix: str = ""
    evidence: tuple[str, ...] = ()

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.CRITICAL


@dataclass(frozen=True)
class SourceValidation:
    """Aggregate view of the sources backing a candidate."""

    total_sources: int = 0
    valid_sources: int = 0
    primary_sources: int = 0
    recent_sources: int = 0
    authoritative_sources: int = 0
    source_quality_score: float = 0.0
    missing_critical_sources: tuple[str, ...] = ()
    source_gaps: tuple[str, ...] = ()


def weighted_overall(category_scores: Mapping[QualityCategory, CategoryScore]) -> float:
    """Weight-normalized sum of *category_scores*.

    Categories absent from the mapping contribute zero.
    """
    total_weight = sum(CATEGORY_WEIGHTS.values())
    weighted = sum(
        weight * category_scores[cat].score
        for cat, weight in CATEGORY_WEIGHTS.items()
        if cat in category_scores
    )
    return weighted / total_weight


@dataclass(frozen=True)
class QualityAssessment:
    """Outcome of scoring one candidate.

    ``overall_score`` must equal the weighted sum of ``category_scores``
    within ``OVERALL_SCORE_TOLERANCE``; construction fails otherwise.
    """

    overall_score: float
    category_scores: Mapping[QualityCategory, CategoryScore]
    critical_issues: tuple[CriticalIssue, ...] = ()
    source_validation: SourceValidation = field(default_factory=SourceValidation)
    confidence: float = 0.0
    retry_recommended: bool = True
    retry_priority: RetryPriority = RetryPriority.MEDIUM
    corrective_instructions: str = ""
    improvement_potential: float = 0.0
    attempt: int = 1
    scoring_failed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "category_scores", MappingProxyType(dict(self.category_scores)))
        expected = weighted_overall(self.category_scores)
        if abs(self.overall_score - expected) > OVERALL_SCORE_TOLERANCE:
            raise ValueError(
                f"overall_score {self.overall_score:.3f} does not match the "
                f"weighted category sum {expected:.3f}"
            )

    def score_for(self, category: QualityCategory) -> float:
        entry = self.category_scores.get(category)
        return entry.score if entry is not None else 0.0

    @property
    def blocking_issues(self) -> tuple[CriticalIssue, ...]:
        return tuple(i for i in self.critical_issues if i.is_blocking)

    @property
    def has_blocking_issues(self) -> bool:
        return any(i.is_blocking for i in self.critical_issues)


# ---------------------------------------------------------------------------
# Itemized (deal) validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationResult:
    """Output of one validation layer call."""

    is_valid: bool
    score: float
    issues: tuple[str, ...] = ()
    corrections: tuple[str, ...] = ()
    confidence: float = 0.0
    sources: tuple[str, ...] = ()

    @classmethod
    def failed(cls, message: str) -> ValidationResult:
        """A zero-score, non-valid result carrying *message* as its only issue."""
        return cls(is_valid=False, score=0.0, issues=(message,))


@dataclass(frozen=True)
class PatientPopulation:
    """Epidemiological sizing attached to a deal."""

    total_patients: int
    addressable_market: int
    source: str = ""


@dataclass(frozen=True)
class DealResearchResult:
    """One researched deal and its validation outcome."""

    acquirer: str
    asset: str
    indication: str = ""
    rationale: str = ""
    date: str = ""
    value: str = ""
    stage: str = ""
    sources: tuple[str, ...] = ()
    validation_score: float = 0.0
    validation_notes: tuple[str, ...] = ()
    patient_population: PatientPopulation | None = None

    def with_validation(
        self,
        score: float,
        notes: tuple[str, ...] = (),
        sources: tuple[str, ...] = (),
    ) -> DealResearchResult:
        """Return a copy with *score*, appended *notes* and merged *sources*."""
        merged = tuple(dict.fromkeys((*self.sources, *sources)))
        return replace(
            self,
            validation_score=min(100.0, score),
            validation_notes=(*self.validation_notes, *notes),
            sources=merged,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "acquirer": self.acquirer,
            "asset": self.asset,
            "indication": self.indication,
            "rationale": self.rationale,
            "date": self.date,
            "value": self.value,
            "stage": self.stage,
            "sources": list(self.sources),
            "validation_score": self.validation_score,
            "validation_notes": list(self.validation_notes),
        }
        if self.patient_population is not None:
            data["patient_population"] = {
                "total_patients": self.patient_population.total_patients,
                "addressable_market": self.patient_population.addressable_market,
                "source": self.patient_population.source,
            }
        return data


# ---------------------------------------------------------------------------
# Attempt bookkeeping
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AttemptSummary:
    """Per-attempt review summary returned to the caller."""

    attempt: int
    score: float
    accepted: bool
    retry_priority: RetryPriority | None = None
    critical_issue_count: int = 0
    strictness_threshold: float = 0.0
    error: str | None = None
    elapsed_seconds: float = 0.0
