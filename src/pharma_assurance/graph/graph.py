"""Build the research StateGraph.

``build_research_graph()`` wires the orchestrator's step methods into a
compiled LangGraph::

    select_parameters -> attempt -> score -> (retry -> attempt | finalize)

``attempt`` routes straight to ``finalize`` when the run is exhausted
before generating (attempt or cost budget spent).
"""

from typing import Any

from langgraph.graph import END, START, StateGraph

from pharma_assurance.graph.edges import route_after_attempt, route_after_score
from pharma_assurance.graph.nodes import (
    make_attempt_node,
    make_finalize_node,
    make_retry_node,
    make_score_node,
    make_select_parameters_node,
)
from pharma_assurance.graph.state import ResearchRunState
from pharma_assurance.services.orchestrator import RetryOrchestrator


def build_research_graph(
    orchestrator: RetryOrchestrator,
    checkpointer: Any | None = None,
    interrupt_before: list[str] | None = None,
    interrupt_after: list[str] | None = None,
) -> Any:
    """Build and compile the research StateGraph.

    Parameters
    ----------
    orchestrator:
        The orchestrator whose step methods the nodes delegate to.
    checkpointer:
        Optional LangGraph checkpointer for persistence.
    interrupt_before:
        Node names to interrupt before (human-in-the-loop review).
    interrupt_after:
        Node names to interrupt after.

    Returns
    -------
    CompiledStateGraph
        Invoke with ``{"context": ResearchContext(...)}``; the final state
        holds ``result``.  The cyclic path needs a recursion limit of at
        least ``4 * max_attempts + 2``.
    """
    graph = StateGraph(ResearchRunState)

    graph.add_node("select_parameters", make_select_parameters_node(orchestrator))
    graph.add_node("attempt", make_attempt_node(orchestrator))
    graph.add_node("score", make_score_node(orchestrator))
    graph.add_node("retry", make_retry_node(orchestrator))
    graph.add_node("finalize", make_finalize_node(orchestrator))

    graph.add_edge(START, "select_parameters")
    graph.add_edge("select_parameters", "attempt")
    graph.add_conditional_edges(
        "attempt",
        route_after_attempt,
        {"score": "score", "finalize": "finalize"},
    )
    graph.add_conditional_edges(
        "score",
        route_after_score,
        {"retry": "retry", "finalize": "finalize"},
    )
    graph.add_edge("retry", "attempt")
    graph.add_edge("finalize", END)

    compile_kwargs: dict[str, Any] = {}
    if checkpointer is not None:
        compile_kwargs["checkpointer"] = checkpointer
    if interrupt_before:
        compile_kwargs["interrupt_before"] = interrupt_before
    if interrupt_after:
        compile_kwargs["interrupt_after"] = interrupt_after

    return graph.compile(**compile_kwargs)
