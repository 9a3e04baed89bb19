"""Service layer for pharma-assurance.

Re-exports public service types for convenient top-level access::

    from pharma_assurance.services import (
        ParameterSelector, QualityAssessor, RuleBasedScorer, LLMQualityScorer,
        DeepValidator, LLMValidationBackend, RetryOrchestrator,
    )
"""

from pharma_assurance.services.assessment import QualityAssessor, is_acceptable
from pharma_assurance.services.consistency import AuditReport, CandidateAuditor
from pharma_assurance.services.cost import CostTracker, price_call
from pharma_assurance.services.deep_validation import (
    DealSetOutcome,
    DeepValidator,
    ValidationBackend,
    search_specificity,
    strictness_threshold,
)
from pharma_assurance.services.generation import (
    BaseCandidateGenerator,
    CallableGenerator,
    GenerationRequest,
    GenerationResponse,
    LLMCandidateGenerator,
)
from pharma_assurance.services.llm_scoring import LLMQualityScorer
from pharma_assurance.services.llm_validation import LLMValidationBackend
from pharma_assurance.services.orchestrator import (
    AttemptStrategy,
    DealValidationStrategy,
    ReportStrategy,
    ResearchRunResult,
    RetryOrchestrator,
)
from pharma_assurance.services.parameters import ParameterSelector
from pharma_assurance.services.parsing import parse_candidate
from pharma_assurance.services.scoring import BaseQualityScorer, RuleBasedScorer, ScoreSheet

__all__ = [
    # Parameters
    "ParameterSelector",
    # Parsing / audit
    "parse_candidate",
    "CandidateAuditor",
    "AuditReport",
    # Scoring
    "BaseQualityScorer",
    "RuleBasedScorer",
    "LLMQualityScorer",
    "ScoreSheet",
    "QualityAssessor",
    "is_acceptable",
    # Generation
    "BaseCandidateGenerator",
    "CallableGenerator",
    "LLMCandidateGenerator",
    "GenerationRequest",
    "GenerationResponse",
    # Deep validation
    "ValidationBackend",
    "LLMValidationBackend",
    "DeepValidator",
    "DealSetOutcome",
    "search_specificity",
    "strictness_threshold",
    # Cost
    "CostTracker",
    "price_call",
    # Orchestration
    "AttemptStrategy",
    "ReportStrategy",
    "DealValidationStrategy",
    "RetryOrchestrator",
    "ResearchRunResult",
]
