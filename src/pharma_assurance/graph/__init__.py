"""LangGraph form of the research retry loop.

Public API
----------
build_research_graph
    Compile the select_parameters / attempt / score / retry / finalize graph.
ResearchRunState
    The TypedDict state flowing through the graph.
route_after_attempt, route_after_score
    Edge functions.
"""

from pharma_assurance.graph.edges import route_after_attempt, route_after_score
from pharma_assurance.graph.graph import build_research_graph
from pharma_assurance.graph.nodes import (
    make_attempt_node,
    make_finalize_node,
    make_retry_node,
    make_score_node,
    make_select_parameters_node,
)
from pharma_assurance.graph.state import ResearchRunState

__all__ = [
    "build_research_graph",
    "ResearchRunState",
    "route_after_attempt",
    "route_after_score",
    "make_select_parameters_node",
    "make_attempt_node",
    "make_score_node",
    "make_retry_node",
    "make_finalize_node",
]
