#!/usr/bin/env python3
"""Example 03: The retry loop as a LangGraph StateGraph.

Demonstrates:
- Building the graph from an orchestrator with build_research_graph()
- Invoking it with a ResearchContext
- Reading the append-only attempt_summaries and events channels

Run:
    PYTHONPATH=src python examples/03_research_graph.py
"""

from __future__ import annotations

from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.graph import build_research_graph
from pharma_assurance.infrastructure.config import EngineConfig
from pharma_assurance.services.orchestrator import RetryOrchestrator
from pharma_assurance.testing import ScriptedGenerator, ScriptedScorer, make_score_sheet


def main() -> None:
    generator = ScriptedGenerator([{"marketSize": "USD 1.1B", "sources": ["https://www.fda.gov"]}])
    scorer = ScriptedScorer([make_score_sheet(score=s) for s in (72.0, 81.0, 91.0)])
    orchestrator = RetryOrchestrator.for_reports(
        generator,
        scorer,
        EngineConfig(
            use_selected_threshold=False,
            inter_attempt_delay=0.0,
            enable_caching=False,
        ),
    )
    app = build_research_graph(orchestrator)

    context = ResearchContext(
        target="KRAS G12C", indication="non-small cell lung cancer", therapeutic_area="Oncology"
    )

    print("=== Research Graph ===")
    state = app.invoke({"context": context})

    result = state["result"]
    print(f"Trace: {state['trace_id']}")
    print(f"Final: {result.final_state.value}, quality {result.quality_score:.1f}")
    for summary in state["attempt_summaries"]:
        print(f"  attempt {summary.attempt}: {summary.score:.1f}")
    print()
    print("Node events:")
    for event in state["events"]:
        print(f"  {event['type']:<20} state={event['state']}")


if __name__ == "__main__":
    main()
