"""Domain enumerations for the pharma-assurance engine.

These enums capture the fixed vocabularies used across the domain layer:
validation tiers, search and reasoning tiers, issue severities, retry
priorities, the eight quality categories, and the orchestrator's states.
"""

from enum import Enum


class ValidationStrictness(Enum):
    """How aggressively a candidate is validated."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ULTRA = "ultra"


class SearchDepth(Enum):
    """Depth tier requested from the generation capability."""

    STANDARD = "standard"
    DEEP = "deep"
    COMPREHENSIVE = "comprehensive"


class SearchContextSize(Enum):
    """Amount of retrieved context the generator may consume."""

    MEDIUM = "medium"
    HIGH = "high"
    EXTENSIVE = "extensive"


class ReasoningEffort(Enum):
    """Reasoning-effort tier requested from the generation capability."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    MAXIMUM = "maximum"


class Severity(Enum):
    """Severity of a ``CriticalIssue``."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RetryPriority(Enum):
    """Urgency attached to a retry decision."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class QualityCategory(Enum):
    """The eight weighted dimensions of a quality assessment."""

    FACTUAL_ACCURACY = "factual_accuracy"
    SCIENTIFIC_COHERENCE = "scientific_coherence"
    SOURCE_CREDIBILITY = "source_credibility"
    PHARMA_EXPERTISE = "pharma_expertise"
    REASONING_DEPTH = "reasoning_depth"
    REGULATORY_COMPLIANCE = "regulatory_compliance"
    MARKET_INTELLIGENCE = "market_intelligence"
    COMPETITIVE_ANALYSIS = "competitive_analysis"


class OrchestratorState(Enum):
    """Finite-state-machine states for the retry orchestrator."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    SCORING = "scoring"
    ACCEPTED = "accepted"  # terminal, success
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"  # terminal, best effort

    @property
    def is_terminal(self) -> bool:
        return self in (OrchestratorState.ACCEPTED, OrchestratorState.EXHAUSTED)


class StopReason(Enum):
    """Why an orchestrated run stopped."""

    ACCEPTED = "accepted"
    MAX_ATTEMPTS = "max_attempts"
    BUDGET_EXHAUSTED = "budget_exhausted"
    CACHE_HIT = "cache_hit"
