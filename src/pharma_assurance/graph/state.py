"""LangGraph state definition for the research retry loop.

``ResearchRunState`` is the ``TypedDict`` flowing through the
``StateGraph``.  The ``RunSession`` carries the orchestrator's bookkeeping;
``attempt_summaries`` and ``events`` are append-only channels.

Note: this module does NOT use ``from __future__ import annotations`` because
LangGraph resolves type hints at runtime via ``get_type_hints()``.
"""

import operator
from typing import Annotated, Any, TypedDict

from pharma_assurance.domain.values import AttemptSummary, ResearchContext
from pharma_assurance.services.orchestrator import ResearchRunResult, RunSession


class ResearchRunState(TypedDict, total=False):
    """State of one research request moving through the graph.

    Input: ``context``.  Output: ``result``.
    """

    context: ResearchContext
    trace_id: str
    session: RunSession
    phase: str
    attempt_summaries: Annotated[list[AttemptSummary], operator.add]
    events: Annotated[list[dict[str, Any]], operator.add]
    result: ResearchRunResult
