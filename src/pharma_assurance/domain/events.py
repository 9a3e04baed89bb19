"""Domain events for the pharma-assurance engine.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The
orchestrator emits events as a run moves through its states; listeners
(logging sinks, metrics, audit trails) react without being coupled to it.

All events carry a ``timestamp`` and the ``trace_id`` of the run that
emitted them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from .enums import RetryPriority, StopReason


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    trace_id: str = ""


@dataclass(frozen=True)
class RunStarted(DomainEvent):
    """A research request entered the orchestrator."""

    target: str = ""
    indication: str = ""
    quality_threshold: float = 0.0
    max_attempts: int = 0


@dataclass(frozen=True)
class AttemptCompleted(DomainEvent):
    """One attempt was generated and scored."""

    attempt: int = 0
    score: float = 0.0
    accepted: bool = False
    critical_issue_count: int = 0
    error: str | None = None


@dataclass(frozen=True)
class RetryScheduled(DomainEvent):
    """The orchestrator decided to regenerate."""

    next_attempt: int = 0
    priority: RetryPriority = RetryPriority.MEDIUM
    corrective_instructions: str = ""


@dataclass(frozen=True)
class RunAccepted(DomainEvent):
    """A candidate met every acceptance criterion."""

    attempt: int = 0
    score: float = 0.0


@dataclass(frozen=True)
class RunExhausted(DomainEvent):
    """No candidate was accepted; the best-so-far result is returned."""

    attempts: int = 0
    best_score: float = 0.0
    reason: StopReason = StopReason.MAX_ATTEMPTS


@dataclass(frozen=True)
class DealSetValidated(DomainEvent):
    """One deep-validation attempt finished."""

    attempt: int = 0
    candidates: int = 0
    accepted: int = 0
    average_score: float = 0.0
    strictness_threshold: float = 0.0
