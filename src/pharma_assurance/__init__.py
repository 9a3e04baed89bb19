"""pharma-assurance.

Adaptive quality assurance and retry orchestration for AI-generated
pharmaceutical commercial intelligence: context-aware parameter selection,
multi-category quality scoring, layered deal validation and a best-of-N
retry state machine, with a LangGraph form of the loop.
"""

__version__ = "0.1.0"

from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.graph import ResearchRunState, build_research_graph
from pharma_assurance.services.orchestrator import ResearchRunResult, RetryOrchestrator

__all__ = [
    "ResearchContext",
    "RetryOrchestrator",
    "ResearchRunResult",
    "build_research_graph",
    "ResearchRunState",
]
