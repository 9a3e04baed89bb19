"""Retry orchestration for research requests.

One explicit state machine drives every escalating-attempt loop::

    IDLE -> ATTEMPTING -> SCORING -> ACCEPTED
                 ^            |
                 |            +-> RETRYING -> ATTEMPTING
                 |            |
                 +------------+-> EXHAUSTED

What an attempt produces and how it is scored is delegated to an
``AttemptStrategy``:

- ``ReportStrategy`` generates a commercial report and assesses it with the
  ``QualityAssessor``; validation strictness escalates one tier per retry.
- ``DealValidationStrategy`` researches deals and runs the
  ``DeepValidator`` layers; search specificity and the per-deal strictness
  threshold escalate with the attempt number.

The orchestrator owns best-of-N retention, the attempt budget, the cost
ceiling, the inter-attempt delay, result caching and event emission.  The
step methods (``start``, ``attempt``, ``score``, ``retry``, ``finalize``)
are public so the LangGraph form in ``pharma_assurance.graph`` can drive the
same machine node by node.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from pharma_assurance.domain.enums import (
    OrchestratorState,
    RetryPriority,
    StopReason,
    ValidationStrictness,
)
from pharma_assurance.domain.events import (
    AttemptCompleted,
    DomainEvent,
    RetryScheduled,
    RunAccepted,
    RunExhausted,
    RunStarted,
)
from pharma_assurance.domain.exceptions import (
    CandidateParseError,
    ConfigurationError,
    GenerationError,
)
from pharma_assurance.domain.values import (
    AttemptSummary,
    QualityAssessment,
    ResearchContext,
    ResearchParameters,
)
from pharma_assurance.infrastructure.config import DeepValidationConfig, EngineConfig
from pharma_assurance.infrastructure.event_bus import EventBus
from pharma_assurance.infrastructure.result_cache import (
    DEFAULT_MAX_ENTRIES,
    ResultCache,
    cache_key,
)
from pharma_assurance.infrastructure.serialization import to_plain
from pharma_assurance.services.assessment import QualityAssessor, is_acceptable
from pharma_assurance.services.consistency import CandidateAuditor
from pharma_assurance.services.cost import CostTracker
from pharma_assurance.services.deep_validation import DeepValidator, ValidationBackend
from pharma_assurance.services.generation import BaseCandidateGenerator, GenerationRequest
from pharma_assurance.services.parameters import ParameterSelector
from pharma_assurance.services.parsing import parse_candidate
from pharma_assurance.services.scoring import BaseQualityScorer

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase

_TRANSITIONS: dict[OrchestratorState, frozenset[OrchestratorState]] = {
    OrchestratorState.IDLE: frozenset({OrchestratorState.ATTEMPTING}),
    OrchestratorState.ATTEMPTING: frozenset(
        {OrchestratorState.SCORING, OrchestratorState.EXHAUSTED}
    ),
    OrchestratorState.SCORING: frozenset(
        {
            OrchestratorState.ACCEPTED,
            OrchestratorState.RETRYING,
            OrchestratorState.EXHAUSTED,
        }
    ),
    OrchestratorState.RETRYING: frozenset({OrchestratorState.ATTEMPTING}),
    OrchestratorState.ACCEPTED: frozenset(),
    OrchestratorState.EXHAUSTED: frozenset(),
}

_STRICTNESS_LADDER = (
    ValidationStrictness.LOW,
    ValidationStrictness.MEDIUM,
    ValidationStrictness.HIGH,
    ValidationStrictness.ULTRA,
)


def new_trace_id() -> str:
    """``pharma_<epoch-ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"pharma_{int(time.time() * 1000)}_{suffix}"


def escalate_strictness(base: ValidationStrictness, steps: int) -> ValidationStrictness:
    """Move *steps* tiers up the strictness ladder, stopping at ``ULTRA``."""
    index = _STRICTNESS_LADDER.index(base) + max(steps, 0)
    return _STRICTNESS_LADDER[min(index, len(_STRICTNESS_LADDER) - 1)]


# ===================================================================== #
#  Attempt records                                                       #
# ===================================================================== #

@dataclass(frozen=True)
class Draft:
    """What one attempt produced before scoring."""

    attempt: int
    payload: Any = None
    sources: tuple[str, ...] = ()
    cost: float = 0.0
    model: str = ""
    error: str | None = None


@dataclass(frozen=True)
class AttemptOutcome:
    """A scored attempt.

    ``score`` is on the 0-100 scale.  ``retainable`` marks outcomes that may
    replace the best-so-far result.
    """

    attempt: int
    score: float
    accepted: bool
    output: Any = None
    assessment: QualityAssessment | None = None
    corrective_instructions: str = ""
    retry_priority: RetryPriority | None = None
    critical_issue_count: int = 0
    strictness_threshold: float = 0.0
    sources: tuple[str, ...] = ()
    error: str | None = None
    retainable: bool = True


# ===================================================================== #
#  Strategies                                                            #
# ===================================================================== #

class AttemptStrategy(ABC):
    """Produce and score one attempt."""

    name: str = "attempt"

    @abstractmethod
    def max_attempts(self, config: EngineConfig) -> int:
        """Attempt budget for one request."""

    @abstractmethod
    def retry_delay(self, config: EngineConfig) -> float:
        """Seconds to wait before each retry."""

    def parameters_for_attempt(
        self, parameters: ResearchParameters, attempt: int
    ) -> ResearchParameters:
        return parameters

    def estimate_cost(
        self, context: ResearchContext, parameters: ResearchParameters, attempt: int
    ) -> float:
        return 0.0

    @abstractmethod
    def produce(
        self,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
        corrective_instructions: str,
    ) -> Draft:
        """Invoke the generation capability once."""

    @abstractmethod
    def evaluate(
        self,
        draft: Draft,
        context: ResearchContext,
        parameters: ResearchParameters,
        max_attempts: int,
        trace_id: str = "",
    ) -> AttemptOutcome:
        """Score *draft* and decide acceptance."""

    def cache_token(self) -> Any:
        """Strategy settings that distinguish cached results."""
        return self.name


class ReportStrategy(AttemptStrategy):
    """Generate a commercial report and assess it.

    Parameters
    ----------
    generator:
        The generation capability.
    assessor:
        The quality assessor.
    """

    name = "report"

    def __init__(self, generator: BaseCandidateGenerator, assessor: QualityAssessor) -> None:
        if generator is None:
            raise ConfigurationError("A generation capability is required", setting="generator")
        if assessor is None:
            raise ConfigurationError("A scoring capability is required", setting="scorer")
        self._generator = generator
        self._assessor = assessor

    def max_attempts(self, config: EngineConfig) -> int:
        return config.max_retry_attempts

    def retry_delay(self, config: EngineConfig) -> float:
        return config.inter_attempt_delay

    def parameters_for_attempt(
        self, parameters: ResearchParameters, attempt: int
    ) -> ResearchParameters:
        if attempt <= 1:
            return parameters
        return parameters.with_overrides(
            validation_strictness=escalate_strictness(
                parameters.validation_strictness, attempt - 1
            )
        )

    def estimate_cost(
        self, context: ResearchContext, parameters: ResearchParameters, attempt: int
    ) -> float:
        return self._generator.estimate_cost(GenerationRequest(context, parameters, attempt))

    def produce(
        self,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
        corrective_instructions: str,
    ) -> Draft:
        request = GenerationRequest(
            context=context,
            parameters=parameters,
            attempt=attempt,
            corrective_instructions=corrective_instructions,
        )
        try:
            response = self._generator.generate(request)
        except GenerationError as exc:
            logger.warning("ReportStrategy: generation failed on attempt %d: %s", attempt, exc)
            return Draft(attempt=attempt, error=str(exc))
        return Draft(
            attempt=attempt,
            payload=response.document,
            sources=response.sources,
            cost=response.cost,
            model=response.model,
        )

    def evaluate(
        self,
        draft: Draft,
        context: ResearchContext,
        parameters: ResearchParameters,
        max_attempts: int,
        trace_id: str = "",
    ) -> AttemptOutcome:
        threshold = parameters.quality_threshold * 100.0
        if draft.error is not None:
            return AttemptOutcome(
                attempt=draft.attempt,
                score=0.0,
                accepted=False,
                corrective_instructions="Previous generation failed; produce a complete report.",
                retry_priority=RetryPriority.HIGH,
                strictness_threshold=threshold,
                error=draft.error,
                retainable=False,
            )

        try:
            report = parse_candidate(draft.payload)
        except CandidateParseError as exc:
            logger.warning("ReportStrategy: candidate parse failed: %s", exc)
            output: Any = draft.payload
            sources = draft.sources
            assessment = self._assessor.default_assessment(
                draft.attempt, draft.attempt < max_attempts, str(exc)
            )
        else:
            output = report.to_document()
            sources = tuple(dict.fromkeys((*report.all_sources(), *draft.sources)))
            assessment = self._assessor.assess(
                report,
                attempt=draft.attempt,
                parameters=parameters,
                context=context,
                max_attempts=max_attempts,
            )
        return AttemptOutcome(
            attempt=draft.attempt,
            score=assessment.overall_score,
            accepted=is_acceptable(assessment, parameters.quality_threshold),
            output=output,
            assessment=assessment,
            corrective_instructions=assessment.corrective_instructions,
            retry_priority=assessment.retry_priority,
            critical_issue_count=len(assessment.critical_issues),
            strictness_threshold=threshold,
            sources=sources,
        )


class DealValidationStrategy(AttemptStrategy):
    """Research deals and keep the ones that survive layered validation."""

    name = "deals"

    def __init__(self, validator: DeepValidator) -> None:
        if validator is None:
            raise ConfigurationError("A validation backend is required", setting="backend")
        self._validator = validator

    @property
    def validator(self) -> DeepValidator:
        return self._validator

    def max_attempts(self, config: EngineConfig) -> int:
        return min(config.max_retry_attempts, self._validator.config.max_retry_attempts)

    def retry_delay(self, config: EngineConfig) -> float:
        return self._validator.config.inter_attempt_delay

    def produce(
        self,
        context: ResearchContext,
        parameters: ResearchParameters,
        attempt: int,
        corrective_instructions: str,
    ) -> Draft:
        deals = self._validator.research(context, attempt)
        return Draft(attempt=attempt, payload=deals)

    def evaluate(
        self,
        draft: Draft,
        context: ResearchContext,
        parameters: ResearchParameters,
        max_attempts: int,
        trace_id: str = "",
    ) -> AttemptOutcome:
        outcome = self._validator.validate(
            draft.payload or [], context, draft.attempt, trace_id=trace_id
        )
        accepted = self._validator.is_acceptable(outcome)
        corrective = ""
        if not accepted:
            corrective = (
                f"{outcome.accepted_count} of {outcome.candidates} deals passed strictness "
                f"{outcome.strictness_threshold:.0f}; widen the search and cite at least "
                f"{self._validator.config.min_source_count} verifiable sources per deal."
            )
        return AttemptOutcome(
            attempt=draft.attempt,
            score=outcome.average_score,
            accepted=accepted,
            output=outcome.deals,
            corrective_instructions=corrective,
            strictness_threshold=outcome.strictness_threshold,
            sources=outcome.sources,
            retainable=outcome.accepted_count > 0,
        )

    def cache_token(self) -> Any:
        return [self.name, self._validator.config.to_dict()]


# ===================================================================== #
#  Run session and result                                                #
# ===================================================================== #

@dataclass
class RunSession:
    """Mutable bookkeeping for one request; owned by one orchestrator call."""

    context: ResearchContext
    parameters: ResearchParameters
    trace_id: str
    max_attempts: int
    cost_tracker: CostTracker
    started_at: float = field(default_factory=time.monotonic)
    state: OrchestratorState = OrchestratorState.IDLE
    attempt: int = 0
    generation_calls: int = 0
    corrective_instructions: str = ""
    draft: Draft | None = None
    outcome: AttemptOutcome | None = None
    best: AttemptOutcome | None = None
    summaries: list[AttemptSummary] = field(default_factory=list)
    stop_reason: StopReason | None = None
    attempt_started_at: float = 0.0


@dataclass(frozen=True)
class ResearchRunResult:
    """Caller-facing outcome of one research request.

    Attributes
    ----------
    output:
        Best result retained across attempts: a report document or a tuple
        of ``DealResearchResult``.  ``None`` if no attempt produced one.
    quality_score:
        Score of ``output`` (0-100).
    retry_count:
        Attempts made minus one.
    below_threshold:
        ``True`` unless the run ended ``ACCEPTED``.
    """

    output: Any
    quality_score: float
    retry_count: int
    elapsed_seconds: float
    sources_used: int
    cache_hit: bool
    trace_id: str
    attempts: tuple[AttemptSummary, ...]
    final_state: OrchestratorState
    below_threshold: bool
    stop_reason: StopReason
    assessment: QualityAssessment | None = None
    parameters: ResearchParameters | None = None
    cost_spent: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.final_state is OrchestratorState.ACCEPTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "output": to_plain(self.output),
            "quality_score": self.quality_score,
            "retry_count": self.retry_count,
            "elapsed_seconds": self.elapsed_seconds,
            "sources_used": self.sources_used,
            "cache_hit": self.cache_hit,
            "trace_id": self.trace_id,
            "attempts": [to_plain(s) for s in self.attempts],
            "final_state": self.final_state.value,
            "below_threshold": self.below_threshold,
            "stop_reason": self.stop_reason.value,
            "cost_spent": self.cost_spent,
        }


# ===================================================================== #
#  Orchestrator                                                          #
# ===================================================================== #

class RetryOrchestrator:
    """Drive attempts until one is accepted or the budget runs out.

    Parameters
    ----------
    strategy:
        How attempts are produced and scored.
    config:
        Engine settings; defaults to ``EngineConfig()``.
    selector:
        Parameter selector; a default one is created if omitted.
    cache:
        Result cache.  Created from ``config`` when caching is enabled and
        none is supplied.
    event_bus:
        Optional bus receiving run events.
    sleep:
        Delay function used between attempts; injectable for tests.
    """

    def __init__(
        self,
        strategy: AttemptStrategy,
        config: EngineConfig | None = None,
        selector: ParameterSelector | None = None,
        cache: ResultCache | None = None,
        event_bus: EventBus | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if strategy is None:
            raise ConfigurationError("An attempt strategy is required", setting="strategy")
        self._strategy = strategy
        self._config = config or EngineConfig()
        self._config.validate()
        self._selector = selector or ParameterSelector()
        if cache is None and self._config.enable_caching:
            cache = ResultCache(
                ttl=self._config.cache_ttl_seconds, max_entries=DEFAULT_MAX_ENTRIES
            )
        self._cache = cache
        self._event_bus = event_bus
        self._sleep = sleep

    # -- construction helpers -----------------------------------------------

    @classmethod
    def for_reports(
        cls,
        generator: BaseCandidateGenerator,
        scorer: BaseQualityScorer,
        config: EngineConfig | None = None,
        auditor: CandidateAuditor | None = None,
        **kwargs: Any,
    ) -> RetryOrchestrator:
        """Orchestrator that generates and assesses commercial reports."""
        if scorer is None:
            raise ConfigurationError("A scoring capability is required", setting="scorer")
        config = config or EngineConfig()
        assessor = QualityAssessor(scorer, auditor=auditor, timeout=config.timeout_seconds)
        return cls(ReportStrategy(generator, assessor), config=config, **kwargs)

    @classmethod
    def for_deals(
        cls,
        validator: DeepValidator | ValidationBackend,
        config: EngineConfig | None = None,
        **kwargs: Any,
    ) -> RetryOrchestrator:
        """Orchestrator that researches and deep-validates deals.

        A bare backend is wrapped in a ``DeepValidator`` that takes its
        attempt budget, retry delay and source minimum from *config*.  A deal
        needs at least one source, so ``min_source_count=0`` is raised to 1.
        A ready ``DeepValidator`` keeps its own settings, but never runs more
        attempts than ``config.max_retry_attempts``.
        """
        if validator is None:
            raise ConfigurationError("A validation backend is required", setting="backend")
        config = config or EngineConfig()
        if isinstance(validator, ValidationBackend):
            validator = DeepValidator(
                validator,
                DeepValidationConfig(
                    max_retry_attempts=config.max_retry_attempts,
                    min_source_count=max(1, config.min_source_count),
                    inter_attempt_delay=config.inter_attempt_delay,
                ),
                event_bus=kwargs.get("event_bus"),
            )
        return cls(DealValidationStrategy(validator), config=config, **kwargs)

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def strategy(self) -> AttemptStrategy:
        return self._strategy

    @property
    def cache(self) -> ResultCache | None:
        return self._cache

    # -- full run -----------------------------------------------------------

    def run(self, context: ResearchContext) -> ResearchRunResult:
        """Run the state machine for *context* to a terminal state."""
        key = self._cache_key(context)
        cached = self._cache.get(key) if key is not None else None
        if cached is not None:
            logger.info(
                "RetryOrchestrator: cache hit for %s / %s", context.target, context.indication
            )
            return replace(
                cached,
                cache_hit=True,
                trace_id=new_trace_id(),
                elapsed_seconds=0.0,
                stop_reason=StopReason.CACHE_HIT,
            )

        session = self.start(context)
        while not session.state.is_terminal:
            if session.state is OrchestratorState.ATTEMPTING:
                self.attempt(session)
            elif session.state is OrchestratorState.SCORING:
                self.score(session)
            elif session.state is OrchestratorState.RETRYING:
                self.retry(session)
            else:
                raise RuntimeError(f"Unexpected orchestrator state {session.state}")
        result = self.finalize(session)
        if key is not None and session.parameters.enable_caching:
            self._cache.put(key, result)
        return result

    # -- steps --------------------------------------------------------------

    def start(self, context: ResearchContext, trace_id: str | None = None) -> RunSession:
        """Select parameters and enter ``ATTEMPTING``."""
        parameters = self._selector.select(context)
        if not self._config.use_selected_threshold:
            parameters = parameters.with_overrides(
                quality_threshold=self._config.quality_threshold
            )
        session = RunSession(
            context=context,
            parameters=parameters,
            trace_id=trace_id or new_trace_id(),
            max_attempts=self._strategy.max_attempts(self._config),
            cost_tracker=CostTracker(
                parameters.cost_ceiling, enabled=self._config.enforce_cost_ceiling
            ),
        )
        logger.info(
            "[%s] RetryOrchestrator: start %s / %s (%s, threshold %.2f, %d attempts)",
            session.trace_id,
            context.target,
            context.indication,
            self._strategy.name,
            parameters.quality_threshold,
            session.max_attempts,
        )
        self._publish(
            RunStarted(
                trace_id=session.trace_id,
                target=context.target,
                indication=context.indication,
                quality_threshold=parameters.quality_threshold,
                max_attempts=session.max_attempts,
            )
        )
        self._transition(session, OrchestratorState.ATTEMPTING)
        return session

    def attempt(self, session: RunSession) -> RunSession:
        """Invoke generation once and enter ``SCORING``.

        Enters ``EXHAUSTED`` instead when the attempt budget is spent or the
        next call would exceed the cost ceiling.
        """
        self._require(session, OrchestratorState.ATTEMPTING)
        if session.generation_calls >= session.max_attempts:
            session.stop_reason = StopReason.MAX_ATTEMPTS
            self._transition(session, OrchestratorState.EXHAUSTED)
            return session

        next_attempt = session.attempt + 1
        params = self._strategy.parameters_for_attempt(session.parameters, next_attempt)
        estimate = self._strategy.estimate_cost(session.context, params, next_attempt)
        if not session.cost_tracker.can_afford(estimate):
            logger.warning(
                "[%s] RetryOrchestrator: attempt %d needs $%.2f but only $%.2f of the "
                "$%.2f ceiling remains",
                session.trace_id,
                next_attempt,
                estimate,
                session.cost_tracker.remaining(),
                session.cost_tracker.ceiling,
            )
            session.stop_reason = StopReason.BUDGET_EXHAUSTED
            self._transition(session, OrchestratorState.EXHAUSTED)
            return session

        session.attempt = next_attempt
        session.attempt_started_at = time.monotonic()
        session.generation_calls += 1
        draft = self._strategy.produce(
            session.context, params, next_attempt, session.corrective_instructions
        )
        if draft.cost:
            session.cost_tracker.record(draft.cost, draft.model)
        session.draft = draft
        logger.debug(
            "[%s] RetryOrchestrator: attempt %d produced (error=%s)",
            session.trace_id,
            next_attempt,
            draft.error,
        )
        self._transition(session, OrchestratorState.SCORING)
        return session

    def score(self, session: RunSession) -> RunSession:
        """Score the current draft and enter a deciding state."""
        self._require(session, OrchestratorState.SCORING)
        draft = session.draft
        if draft is None:
            raise RuntimeError("score() called without a draft")
        params = self._strategy.parameters_for_attempt(session.parameters, draft.attempt)
        outcome = self._strategy.evaluate(
            draft, session.context, params, session.max_attempts, trace_id=session.trace_id
        )
        session.outcome = outcome
        session.draft = None

        best = session.best
        if best is None or (
            outcome.retainable and (not best.retainable or outcome.score > best.score)
        ):
            session.best = outcome

        summary = AttemptSummary(
            attempt=outcome.attempt,
            score=outcome.score,
            accepted=outcome.accepted,
            retry_priority=outcome.retry_priority,
            critical_issue_count=outcome.critical_issue_count,
            strictness_threshold=outcome.strictness_threshold,
            error=outcome.error,
            elapsed_seconds=time.monotonic() - session.attempt_started_at,
        )
        session.summaries.append(summary)
        logger.info(
            "[%s] RetryOrchestrator: attempt %d/%d scored %.1f (accepted=%s)",
            session.trace_id,
            outcome.attempt,
            session.max_attempts,
            outcome.score,
            outcome.accepted,
        )
        self._publish(
            AttemptCompleted(
                trace_id=session.trace_id,
                attempt=outcome.attempt,
                score=outcome.score,
                accepted=outcome.accepted,
                critical_issue_count=outcome.critical_issue_count,
                error=outcome.error,
            )
        )

        if outcome.accepted:
            session.best = outcome
            session.stop_reason = StopReason.ACCEPTED
            self._transition(session, OrchestratorState.ACCEPTED)
            self._publish(
                RunAccepted(trace_id=session.trace_id, attempt=outcome.attempt, score=outcome.score)
            )
        elif session.attempt < session.max_attempts:
            session.corrective_instructions = outcome.corrective_instructions
            self._transition(session, OrchestratorState.RETRYING)
        else:
            session.stop_reason = StopReason.MAX_ATTEMPTS
            self._transition(session, OrchestratorState.EXHAUSTED)
        return session

    def retry(self, session: RunSession) -> RunSession:
        """Apply the inter-attempt delay and loop back to ``ATTEMPTING``."""
        self._require(session, OrchestratorState.RETRYING)
        priority = (
            session.outcome.retry_priority
            if session.outcome is not None and session.outcome.retry_priority is not None
            else RetryPriority.MEDIUM
        )
        self._publish(
            RetryScheduled(
                trace_id=session.trace_id,
                next_attempt=session.attempt + 1,
                priority=priority,
                corrective_instructions=session.corrective_instructions,
            )
        )
        delay = self._strategy.retry_delay(self._config)
        if delay > 0:
            logger.debug("[%s] RetryOrchestrator: waiting %.1fs", session.trace_id, delay)
            self._sleep(delay)
        self._transition(session, OrchestratorState.ATTEMPTING)
        return session

    def finalize(self, session: RunSession) -> ResearchRunResult:
        """Build the caller-facing result from a terminal session."""
        if not session.state.is_terminal:
            raise RuntimeError(f"finalize() called in non-terminal state {session.state}")
        best = session.best
        stop_reason = session.stop_reason or StopReason.MAX_ATTEMPTS
        if session.state is OrchestratorState.EXHAUSTED:
            logger.warning(
                "[%s] RetryOrchestrator: exhausted after %d attempts (%s), best %.1f",
                session.trace_id,
                len(session.summaries),
                stop_reason.value,
                best.score if best is not None else 0.0,
            )
            self._publish(
                RunExhausted(
                    trace_id=session.trace_id,
                    attempts=len(session.summaries),
                    best_score=best.score if best is not None else 0.0,
                    reason=stop_reason,
                )
            )
        spend = session.cost_tracker.metrics()
        logger.debug(
            "[%s] RetryOrchestrator: spent $%.4f over %d priced calls",
            session.trace_id,
            spend.total_cost,
            spend.api_calls,
        )
        return ResearchRunResult(
            output=best.output if best is not None else None,
            quality_score=best.score if best is not None else 0.0,
            retry_count=max(0, len(session.summaries) - 1),
            elapsed_seconds=time.monotonic() - session.started_at,
            sources_used=len(best.sources) if best is not None else 0,
            cache_hit=False,
            trace_id=session.trace_id,
            attempts=tuple(session.summaries),
            final_state=session.state,
            below_threshold=session.state is not OrchestratorState.ACCEPTED,
            stop_reason=stop_reason,
            assessment=best.assessment if best is not None else None,
            parameters=session.parameters,
            cost_spent=session.cost_tracker.spent,
        )

    # -- internals ----------------------------------------------------------

    def _cache_key(self, context: ResearchContext) -> str | None:
        if self._cache is None or not self._config.enable_caching:
            return None
        return cache_key(
            context.to_dict(), self._config.to_dict(), self._strategy.cache_token()
        )

    @staticmethod
    def _require(session: RunSession, state: OrchestratorState) -> None:
        if session.state is not state:
            raise RuntimeError(f"expected state {state.value}, got {session.state.value}")

    @staticmethod
    def _transition(session: RunSession, new_state: OrchestratorState) -> None:
        if new_state not in _TRANSITIONS[session.state]:
            raise RuntimeError(
                f"illegal transition {session.state.value} -> {new_state.value}"
            )
        logger.debug(
            "[%s] RetryOrchestrator: %s -> %s",
            session.trace_id,
            session.state.value,
            new_state.value,
        )
        session.state = new_state

    def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
