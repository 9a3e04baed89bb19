#!/usr/bin/env python3
"""Example 01: Report research with retries, fully offline.

Demonstrates:
- A scripted generator whose first report contradicts its own figures
- The deterministic RuleBasedScorer plus the consistency audit
- Corrective instructions flowing into the second attempt
- Inspecting the ResearchRunResult and the recorded run events

Run:
    PYTHONPATH=src python examples/01_report_run.py
"""

from __future__ import annotations

import copy
import logging

from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.infrastructure.config import EngineConfig
from pharma_assurance.infrastructure.event_bus import EventBus, EventStore
from pharma_assurance.services.orchestrator import RetryOrchestrator
from pharma_assurance.services.scoring import RuleBasedScorer
from pharma_assurance.testing import ScriptedGenerator

SOURCES = [
    "https://www.fda.gov/drugs/development-approval-process-drugs",
    "https://clinicaltrials.gov/study/NCT04012345",
    "https://pubmed.ncbi.nlm.nih.gov/31234567/",
    "https://www.sec.gov/Archives/edgar/data/0001/10k.htm",
]


REPORT = {
    "current_market": 500_000_000,
    "peak_revenue_2030": 2_000_000_000,
    "years_to_peak": 5,
    "cagr": 0.3195,
    "avg_price": 45_000,
    "persistence_rate": 0.75,
    "peak_patients_2030": 33_333,
    "same_target_assets": 3,
    "total_assets": 25,
    "pipeline_density": 12.0,
    "vector_a": [0.8, 0.6, 0.9],
    "vector_b": [0.8, 0.6, 0.9],
    "strategic_fit": 1.0,
    "market_size": "USD 500M (2024)",
    "direct_competitors": ["Nintedanib", "Pirfenidone", "BI 1015550"],
    "deal_activity": [
        {
            "asset": "BMS-986278",
            "acquirer": "Bristol Myers Squibb",
            "stage": "Phase 2",
            "price_usd": 1_100_000_000,
            "date_iso": "2024-03-01",
            "sources": ["https://www.sec.gov/Archives/edgar/data/0002/8k.htm"],
        }
    ],
    "pricing_scenarios": [
        {"scenario": "base", "price_usd": 45_000},
        {"scenario": "premium", "price_usd": 60_000},
    ],
    "key_market_assumptions": {
        "avg_selling_price_usd": 45_000,
        "persistence_rate": 0.75,
        "geographic_split": {"us": 0.6, "eu": 0.3, "row": 0.1},
    },
    "reg_incentives": {
        "rare_disease": {"value": True, "sources": ["https://www.fda.gov/orphan"]},
        "prv_eligibility": {"value": True},
    },
    "financial_forecast": {
        "total_ten_year_revenue_usd": {"value": 12_000_000_000},
    },
    "sources": list(SOURCES),
}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # -- First draft reports a CAGR its own base figures do not support -------
    flawed = copy.deepcopy(REPORT)
    flawed["cagr"] = 0.55

    generator = ScriptedGenerator([flawed, REPORT])
    bus = EventBus()
    store = EventStore()
    bus.subscribe_all(store.append)

    orchestrator = RetryOrchestrator.for_reports(
        generator,
        RuleBasedScorer(),
        EngineConfig(inter_attempt_delay=0.0, enable_caching=False),
        event_bus=bus,
    )
    context = ResearchContext(
        target="LPA1",
        indication="idiopathic pulmonary fibrosis",
        therapeutic_area="Respiratory",
        geography="US",
        phase="Phase 3",
    )

    print("=== Report Research Run ===")
    result = orchestrator.run(context)

    print(f"Trace:       {result.trace_id}")
    print(f"Final state: {result.final_state.value} ({result.stop_reason.value})")
    print(f"Quality:     {result.quality_score:.1f}")
    print(f"Retries:     {result.retry_count}")
    print(f"Sources:     {result.sources_used}")
    print()
    for summary in result.attempts:
        print(
            f"  attempt {summary.attempt}: score={summary.score:.1f} "
            f"accepted={summary.accepted} critical={summary.critical_issue_count}"
        )
    print()
    print("Corrective instructions sent with attempt 2:")
    print(generator.requests[1].corrective_instructions)
    print()
    print(f"Events recorded: {[type(e).__name__ for e in store.query()]}")


if __name__ == "__main__":
    main()
