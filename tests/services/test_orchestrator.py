"""Tests for RetryOrchestrator and its attempt strategies."""

from __future__ import annotations

import dataclasses
import json
import re
from typing import Any

import pytest

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import (
    OrchestratorState,
    StopReason,
    ValidationStrictness,
)
from pharma_assurance.domain.events import (
    AttemptCompleted,
    RetryScheduled,
    RunAccepted,
    RunExhausted,
    RunStarted,
)
from pharma_assurance.domain.exceptions import ConfigurationError
from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.infrastructure.config import DeepValidationConfig, EngineConfig
from pharma_assurance.infrastructure.event_bus import EventBus, EventStore
from pharma_assurance.infrastructure.result_cache import DEFAULT_MAX_ENTRIES, ResultCache
from pharma_assurance.services import assessment as assessment_module
from pharma_assurance.services import orchestrator as orchestrator_module
from pharma_assurance.services import parsing
from pharma_assurance.services.deep_validation import DeepValidator
from pharma_assurance.services.orchestrator import (
    RetryOrchestrator,
    escalate_strictness,
    new_trace_id,
)
from pharma_assurance.services.scoring import RuleBasedScorer
from pharma_assurance.testing import (
    ScriptedGenerator,
    ScriptedScorer,
    ScriptedValidationBackend,
    make_score_sheet,
)
from tests.helpers.factories import make_deal


def _no_sleep(seconds: float) -> None:
    return None


def _orchestrator(
    documents: list[Any],
    scores: list[float],
    config: EngineConfig,
    **kwargs: Any,
) -> tuple[RetryOrchestrator, ScriptedGenerator, ScriptedScorer]:
    generator = ScriptedGenerator(documents, cost_per_call=kwargs.pop("cost_per_call", 0.0))
    scorer = ScriptedScorer([make_score_sheet(score=s) for s in scores])
    kwargs.setdefault("sleep", _no_sleep)
    return RetryOrchestrator.for_reports(generator, scorer, config, **kwargs), generator, scorer


class TestHelpers:
    def test_trace_id_format(self) -> None:
        assert re.fullmatch(r"pharma_\d+_[0-9a-z]{9}", new_trace_id())

    def test_trace_ids_unique(self) -> None:
        assert len({new_trace_id() for _ in range(50)}) == 50

    def test_escalate_strictness(self) -> None:
        assert escalate_strictness(ValidationStrictness.LOW, 1) is ValidationStrictness.MEDIUM
        assert escalate_strictness(ValidationStrictness.HIGH, 5) is ValidationStrictness.ULTRA
        assert escalate_strictness(ValidationStrictness.MEDIUM, 0) is ValidationStrictness.MEDIUM


class TestConstruction:
    def test_missing_strategy(self) -> None:
        with pytest.raises(ConfigurationError):
            RetryOrchestrator(None)  # type: ignore[arg-type]

    def test_missing_generator(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            RetryOrchestrator.for_reports(None, RuleBasedScorer())  # type: ignore[arg-type]
        assert exc_info.value.setting == "generator"

    def test_missing_scorer(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            RetryOrchestrator.for_reports(ScriptedGenerator(["{}"]), None)  # type: ignore[arg-type]
        assert exc_info.value.setting == "scorer"

    def test_missing_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            RetryOrchestrator.for_deals(None)  # type: ignore[arg-type]

    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigurationError):
            _orchestrator(["{}"], [90], EngineConfig(max_retry_attempts=0))


class TestReportRuns:
    def test_accepted_first_attempt(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, generator, _ = _orchestrator([report_data], [88], engine_config)
        result = orch.run(context)

        assert result.accepted
        assert result.final_state is OrchestratorState.ACCEPTED
        assert result.stop_reason is StopReason.ACCEPTED
        assert not result.below_threshold
        assert result.retry_count == 0
        assert result.quality_score == pytest.approx(88.0)
        assert result.output["cagr"] == pytest.approx(0.3195)
        assert result.sources_used == 6
        assert not result.cache_hit
        assert generator.call_count == 1
        assert result.attempts[0].strictness_threshold == pytest.approx(85.0)

    def test_retry_then_accept(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, generator, _ = _orchestrator([report_data], [70, 90], engine_config)
        result = orch.run(context)

        assert result.accepted
        assert result.retry_count == 1
        assert [a.accepted for a in result.attempts] == [False, True]
        first, second = generator.requests
        assert first.corrective_instructions == ""
        assert "CATEGORIES BELOW TARGET" in second.corrective_instructions
        assert first.parameters.validation_strictness is ValidationStrictness.HIGH
        assert second.parameters.validation_strictness is ValidationStrictness.ULTRA

    def test_exhausted_keeps_best(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        documents = []
        for label in ("first", "second", "third"):
            doc = dict(report_data, market_size=label)
            documents.append(doc)
        orch, generator, _ = _orchestrator(documents, [70, 82, 75], engine_config)
        result = orch.run(context)

        assert result.final_state is OrchestratorState.EXHAUSTED
        assert result.below_threshold
        assert result.stop_reason is StopReason.MAX_ATTEMPTS
        assert result.quality_score == pytest.approx(82.0)
        assert result.output["market_size"] == "second"
        assert result.assessment is not None
        assert result.assessment.attempt == 2
        assert generator.call_count == 3
        assert result.retry_count == 2

    @pytest.mark.parametrize("max_attempts", [1, 2, 4])
    def test_generation_calls_bounded(
        self, report_data: dict[str, Any], context: ResearchContext, max_attempts: int
    ) -> None:
        config = EngineConfig(
            max_retry_attempts=max_attempts,
            inter_attempt_delay=0.0,
            enable_caching=False,
            use_selected_threshold=False,
        )
        orch, generator, _ = _orchestrator([report_data], [60], config)
        result = orch.run(context)
        assert generator.call_count == max_attempts
        assert len(result.attempts) == max_attempts

    def test_generation_failure_then_success(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, generator, scorer = _orchestrator(
            [RuntimeError("gateway timeout"), report_data], [90], engine_config
        )
        result = orch.run(context)

        assert result.accepted
        assert result.attempts[0].error is not None
        assert "gateway timeout" in result.attempts[0].error
        assert result.attempts[0].score == 0.0
        assert len(scorer.calls) == 1

    def test_failed_attempt_never_displaces_scored_one(
        self, report_data: dict[str, Any], context: ResearchContext
    ) -> None:
        config = EngineConfig(
            max_retry_attempts=2,
            inter_attempt_delay=0.0,
            enable_caching=False,
            use_selected_threshold=False,
        )
        orch, _, _ = _orchestrator([RuntimeError("down"), report_data], [70], config)
        result = orch.run(context)
        assert result.quality_score == pytest.approx(70.0)
        assert result.output is not None

    def test_every_generation_fails(
        self, context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, _, _ = _orchestrator([RuntimeError("down")], [90], engine_config)
        result = orch.run(context)
        assert result.final_state is OrchestratorState.EXHAUSTED
        assert result.output is None
        assert result.quality_score == 0.0

    @pytest.mark.parametrize("parseable", [True, False])
    def test_candidate_deserialized_once(
        self,
        report_data: dict[str, Any],
        context: ResearchContext,
        monkeypatch: pytest.MonkeyPatch,
        parseable: bool,
    ) -> None:
        raw_inputs: list[Any] = []

        def counting_parse(raw: Any) -> CommercialReport:
            if not isinstance(raw, CommercialReport):
                raw_inputs.append(raw)
            return parsing.parse_candidate(raw)

        monkeypatch.setattr(orchestrator_module, "parse_candidate", counting_parse)
        monkeypatch.setattr(assessment_module, "parse_candidate", counting_parse)
        document = json.dumps(report_data) if parseable else "<html>rate limited</html>"
        config = EngineConfig(max_retry_attempts=1, inter_attempt_delay=0.0, enable_caching=False)
        orch, _, _ = _orchestrator([document], [90], config)
        orch.run(context)
        assert raw_inputs == [document]

    def test_unparseable_candidate(
        self, context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, _, scorer = _orchestrator(["<html>rate limited</html>"], [95], engine_config)
        result = orch.run(context)
        assert result.below_threshold
        assert result.quality_score == pytest.approx(50.0)
        assert result.assessment is not None
        assert result.assessment.scoring_failed
        assert scorer.calls == []

    def test_audit_blocks_high_scores(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        report_data["cagr"] = 0.9
        orch, _, _ = _orchestrator([report_data], [95], engine_config)
        result = orch.run(context)
        assert result.below_threshold
        assert all(a.critical_issue_count >= 1 for a in result.attempts)

    def test_negative_base_figures_are_scored(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        report_data["peak_revenue_2030"] = -1e9
        orch, _, scorer = _orchestrator([report_data], [95], engine_config)
        result = orch.run(context)

        assert result.final_state is OrchestratorState.EXHAUSTED
        assert len(scorer.calls) == engine_config.max_retry_attempts
        assert result.assessment is not None
        assert not result.assessment.scoring_failed
        assert any(
            "Cannot derive cagr" in issue.description
            for issue in result.assessment.critical_issues
        )

    def test_selected_threshold(
        self, report_data: dict[str, Any], context: ResearchContext
    ) -> None:
        approved = dataclasses.replace(context, phase="Approved")
        config = EngineConfig(inter_attempt_delay=0.0, enable_caching=False, max_retry_attempts=1)
        orch, _, _ = _orchestrator([report_data], [88], config)
        result = orch.run(approved)
        assert result.parameters is not None
        assert result.parameters.quality_threshold == pytest.approx(0.90)
        assert not result.accepted

    def test_rule_based_scorer_accepts_consistent_report(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch = RetryOrchestrator.for_reports(
            ScriptedGenerator([report_data]), RuleBasedScorer(), engine_config, sleep=_no_sleep
        )
        result = orch.run(context)
        assert result.accepted
        assert result.quality_score == pytest.approx(100.0)


class TestBudgetAndDelay:
    def test_cost_ceiling_stops_run(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, generator, _ = _orchestrator([report_data], [70], engine_config, cost_per_call=3.0)
        result = orch.run(context)
        assert result.stop_reason is StopReason.BUDGET_EXHAUSTED
        assert result.final_state is OrchestratorState.EXHAUSTED
        assert generator.call_count == 1
        assert result.cost_spent == pytest.approx(3.0)
        assert result.output is not None

    def test_cost_ceiling_not_enforced(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        config = dataclasses.replace(engine_config, enforce_cost_ceiling=False)
        orch, generator, _ = _orchestrator([report_data], [70], config, cost_per_call=3.0)
        result = orch.run(context)
        assert result.stop_reason is StopReason.MAX_ATTEMPTS
        assert generator.call_count == 3

    def test_inter_attempt_delay(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        sleeps: list[float] = []
        config = dataclasses.replace(engine_config, inter_attempt_delay=1.5)
        orch, _, _ = _orchestrator([report_data], [70], config, sleep=sleeps.append)
        orch.run(context)
        assert sleeps == [1.5, 1.5]


class TestEventsAndCache:
    def test_event_sequence(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        bus = EventBus()
        store = EventStore()
        bus.subscribe_all(store.append)
        orch, _, _ = _orchestrator([report_data], [70, 90], engine_config, event_bus=bus)
        result = orch.run(context)

        kinds = [type(e) for e in store.query(trace_id=result.trace_id)]
        assert kinds == [RunStarted, AttemptCompleted, RetryScheduled, AttemptCompleted, RunAccepted]

    def test_exhausted_event(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        bus = EventBus()
        store = EventStore()
        bus.subscribe_all(store.append)
        orch, _, _ = _orchestrator([report_data], [70], engine_config, event_bus=bus)
        orch.run(context)
        (event,) = store.query(RunExhausted)
        assert event.attempts == 3
        assert event.best_score == pytest.approx(70.0)

    def test_cache_hit(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        config = dataclasses.replace(engine_config, enable_caching=True)
        orch, generator, _ = _orchestrator([report_data], [90], config)
        first = orch.run(context)
        second = orch.run(context)

        assert not first.cache_hit
        assert second.cache_hit
        assert second.stop_reason is StopReason.CACHE_HIT
        assert second.trace_id != first.trace_id
        assert second.output == first.output
        assert generator.call_count == 1

    def test_default_cache_is_bounded(self, engine_config: EngineConfig) -> None:
        config = dataclasses.replace(engine_config, enable_caching=True)
        orch, _, _ = _orchestrator([{}], [90], config)
        assert orch.cache is not None
        assert orch.cache.max_entries == DEFAULT_MAX_ENTRIES

    def test_cache_distinguishes_contexts(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        config = dataclasses.replace(engine_config, enable_caching=True)
        orch, generator, _ = _orchestrator([report_data], [90], config, cache=ResultCache())
        orch.run(context)
        orch.run(dataclasses.replace(context, geography="EU"))
        assert generator.call_count == 2

    def test_result_to_dict(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, _, _ = _orchestrator([report_data], [90], engine_config)
        data = orch.run(context).to_dict()
        assert data["final_state"] == "accepted"
        assert data["stop_reason"] == "accepted"
        assert data["attempts"][0]["attempt"] == 1
        assert data["output"]["total_assets"] == 25


class TestStepMethods:
    def test_steps_drive_state_machine(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, _, _ = _orchestrator([report_data], [90], engine_config)
        session = orch.start(context, trace_id="pharma_1_abcdefghi")
        assert session.state is OrchestratorState.ATTEMPTING
        orch.attempt(session)
        assert session.state is OrchestratorState.SCORING
        orch.score(session)
        assert session.state is OrchestratorState.ACCEPTED
        result = orch.finalize(session)
        assert result.trace_id == "pharma_1_abcdefghi"

    def test_out_of_order_step_rejected(
        self, report_data: dict[str, Any], context: ResearchContext, engine_config: EngineConfig
    ) -> None:
        orch, _, _ = _orchestrator([report_data], [90], engine_config)
        session = orch.start(context)
        with pytest.raises(RuntimeError, match="expected state scoring"):
            orch.score(session)
        with pytest.raises(RuntimeError, match="non-terminal"):
            orch.finalize(session)


class TestDealRuns:
    def _config(self) -> EngineConfig:
        return EngineConfig(enable_caching=False, inter_attempt_delay=0.0)

    def test_accepted_deal_set(self, context: ResearchContext) -> None:
        backend = ScriptedValidationBackend([[make_deal("A-1"), make_deal("B-2")]])
        orch = RetryOrchestrator.for_deals(backend, self._config(), sleep=_no_sleep)
        result = orch.run(context)

        assert result.accepted
        assert [d.asset for d in result.output] == ["A-1", "B-2"]
        assert result.quality_score == pytest.approx(100.0)
        assert result.sources_used == 6
        assert backend.research_calls == [("broad", 1)]

    def test_exhausts_with_best_set(self, context: ResearchContext) -> None:
        backend = ScriptedValidationBackend([[make_deal("A-1")], []])
        config = dataclasses.replace(self._config(), max_retry_attempts=5)
        orch = RetryOrchestrator.for_deals(backend, config, sleep=_no_sleep)
        result = orch.run(context)

        assert result.final_state is OrchestratorState.EXHAUSTED
        assert [d.asset for d in result.output] == ["A-1"]
        assert len(backend.research_calls) == 5
        assert [c[0] for c in backend.research_calls] == [
            "broad", "moderate", "specific", "very specific", "ultra-specific",
        ]
        assert [a.strictness_threshold for a in result.attempts] == [92, 94, 96, 98, 98]

    def test_nothing_found(self, context: ResearchContext) -> None:
        backend = ScriptedValidationBackend([[make_deal("THIN", n_sources=2)]])
        validator = DeepValidator(backend, DeepValidationConfig(max_retry_attempts=2))
        result = RetryOrchestrator.for_deals(validator, self._config(), sleep=_no_sleep).run(
            context
        )
        assert result.output == ()
        assert result.below_threshold
        assert backend.layer_calls == []

    def test_deal_retry_delay_from_validator_config(self, context: ResearchContext) -> None:
        sleeps: list[float] = []
        backend = ScriptedValidationBackend([[]])
        validator = DeepValidator(
            backend, DeepValidationConfig(max_retry_attempts=3, inter_attempt_delay=0.5)
        )
        RetryOrchestrator.for_deals(validator, self._config(), sleep=sleeps.append).run(context)
        assert sleeps == [0.5, 0.5]

    def test_backend_follows_engine_attempt_budget(self, context: ResearchContext) -> None:
        sleeps: list[float] = []
        backend = ScriptedValidationBackend([[]])
        config = EngineConfig(
            enable_caching=False, max_retry_attempts=2, inter_attempt_delay=0.25
        )
        result = RetryOrchestrator.for_deals(backend, config, sleep=sleeps.append).run(context)

        assert backend.research_calls == [("broad", 1), ("moderate", 2)]
        assert len(result.attempts) == 2
        assert sleeps == [0.25]

    def test_validator_budget_capped_by_engine(self, context: ResearchContext) -> None:
        backend = ScriptedValidationBackend([[]])
        validator = DeepValidator(
            backend, DeepValidationConfig(max_retry_attempts=5, inter_attempt_delay=0.0)
        )
        config = dataclasses.replace(self._config(), max_retry_attempts=2)
        RetryOrchestrator.for_deals(validator, config, sleep=_no_sleep).run(context)
        assert len(backend.research_calls) == 2

    def test_zero_min_source_count_is_accepted(self, context: ResearchContext) -> None:
        backend = ScriptedValidationBackend([[make_deal("A-1"), make_deal("B-2")]])
        config = dataclasses.replace(self._config(), min_source_count=0)
        orch = RetryOrchestrator.for_deals(backend, config, sleep=_no_sleep)
        assert orch.strategy.validator.config.min_source_count == 1
        assert orch.run(context).accepted
