"""LangGraph node factories for the research graph.

Each factory closes over a ``RetryOrchestrator`` and returns a node that
takes a ``ResearchRunState`` and returns a partial update dict.  Nodes only
delegate to the orchestrator's step methods; they hold no logic of their own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from pharma_assurance.services.orchestrator import RetryOrchestrator

logger = logging.getLogger(__name__)

Node = Callable[[dict[str, Any]], dict[str, Any]]


def _event(kind: str, session: Any, **extra: Any) -> dict[str, Any]:
    return {
        "type": kind,
        "trace_id": session.trace_id,
        "attempt": session.attempt,
        "state": session.state.value,
        "timestamp": time.time(),
        **extra,
    }


def make_select_parameters_node(orchestrator: RetryOrchestrator) -> Node:
    """Select parameters for ``context`` and open a run session."""

    def select_parameters_node(state: dict[str, Any]) -> dict[str, Any]:
        session = orchestrator.start(state["context"], trace_id=state.get("trace_id"))
        logger.debug("select_parameters_node: trace %s", session.trace_id)
        return {
            "session": session,
            "trace_id": session.trace_id,
            "phase": session.state.value,
            "events": [
                _event(
                    "parameters_selected",
                    session,
                    quality_threshold=session.parameters.quality_threshold,
                )
            ],
        }

    return select_parameters_node


def make_attempt_node(orchestrator: RetryOrchestrator) -> Node:
    """Invoke generation once."""

    def attempt_node(state: dict[str, Any]) -> dict[str, Any]:
        session = orchestrator.attempt(state["session"])
        return {
            "session": session,
            "phase": session.state.value,
            "events": [_event("attempt_generated", session)],
        }

    return attempt_node


def make_score_node(orchestrator: RetryOrchestrator) -> Node:
    """Score the latest attempt and decide the next state."""

    def score_node(state: dict[str, Any]) -> dict[str, Any]:
        session = orchestrator.score(state["session"])
        summary = session.summaries[-1]
        logger.debug("score_node: attempt %d scored %.1f", summary.attempt, summary.score)
        return {
            "session": session,
            "phase": session.state.value,
            "attempt_summaries": [summary],
            "events": [
                _event("attempt_scored", session, score=summary.score, accepted=summary.accepted)
            ],
        }

    return score_node


def make_retry_node(orchestrator: RetryOrchestrator) -> Node:
    """Wait out the inter-attempt delay and return to attempting."""

    def retry_node(state: dict[str, Any]) -> dict[str, Any]:
        session = orchestrator.retry(state["session"])
        return {
            "session": session,
            "phase": session.state.value,
            "events": [_event("retry_scheduled", session)],
        }

    return retry_node


def make_finalize_node(orchestrator: RetryOrchestrator) -> Node:
    """Build the caller-facing result."""

    def finalize_node(state: dict[str, Any]) -> dict[str, Any]:
        session = state["session"]
        result = orchestrator.finalize(session)
        return {
            "result": result,
            "phase": session.state.value,
            "events": [
                _event(
                    "run_finalized",
                    session,
                    quality_score=result.quality_score,
                    stop_reason=result.stop_reason.value,
                )
            ],
        }

    return finalize_node
