"""Domain layer for the pharma-assurance engine.

Re-exports all public domain types so that consumers can write::

    from pharma_assurance.domain import ResearchContext, QualityAssessment
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    OrchestratorState,
    QualityCategory,
    ReasoningEffort,
    RetryPriority,
    SearchContextSize,
    SearchDepth,
    Severity,
    StopReason,
    ValidationStrictness,
)

# -- Value Objects ------------------------------------------------------------
from .values import (
    CATEGORY_WEIGHTS,
    AttemptSummary,
    CategoryScore,
    CriticalIssue,
    DealResearchResult,
    FieldThreshold,
    PatientPopulation,
    QualityAssessment,
    ResearchContext,
    ResearchGuidance,
    ResearchParameters,
    SourceValidation,
    ValidationResult,
    weighted_overall,
)

# -- Candidate document -------------------------------------------------------
from .candidate import CommercialReport, DealActivityItem

# -- Domain Events ------------------------------------------------------------
from .events import (
    AttemptCompleted,
    DealSetValidated,
    DomainEvent,
    RetryScheduled,
    RunAccepted,
    RunExhausted,
    RunStarted,
)

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    CalculationError,
    CandidateParseError,
    ConfigurationError,
    GenerationError,
    PharmaAssuranceError,
    ScoringError,
    ValidationLayerError,
)

__all__ = [
    # enums
    "OrchestratorState",
    "QualityCategory",
    "ReasoningEffort",
    "RetryPriority",
    "SearchContextSize",
    "SearchDepth",
    "Severity",
    "StopReason",
    "ValidationStrictness",
    # values
    "CATEGORY_WEIGHTS",
    "AttemptSummary",
    "CategoryScore",
    "CriticalIssue",
    "DealResearchResult",
    "FieldThreshold",
    "PatientPopulation",
    "QualityAssessment",
    "ResearchContext",
    "ResearchGuidance",
    "ResearchParameters",
    "SourceValidation",
    "ValidationResult",
    "weighted_overall",
    # candidate
    "CommercialReport",
    "DealActivityItem",
    # events
    "AttemptCompleted",
    "DealSetValidated",
    "DomainEvent",
    "RetryScheduled",
    "RunAccepted",
    "RunExhausted",
    "RunStarted",
    # exceptions
    "CalculationError",
    "CandidateParseError",
    "ConfigurationError",
    "GenerationError",
    "PharmaAssuranceError",
    "ScoringError",
    "ValidationLayerError",
]
