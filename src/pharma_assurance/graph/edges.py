"""Conditional edge functions for the research graph.

Routing mirrors ``OrchestratorState``: the ``phase`` channel holds the
session state value written by the previous node.
"""

from __future__ import annotations

from typing import Any, Literal

from pharma_assurance.domain.enums import OrchestratorState


def route_after_attempt(state: dict[str, Any]) -> Literal["score", "finalize"]:
    """After an attempt, score it unless the run was exhausted before generating."""
    if state.get("phase") == OrchestratorState.SCORING.value:
        return "score"
    return "finalize"


def route_after_score(state: dict[str, Any]) -> Literal["retry", "finalize"]:
    """After scoring, loop back through ``retry`` or finish."""
    if state.get("phase") == OrchestratorState.RETRYING.value:
        return "retry"
    return "finalize"
