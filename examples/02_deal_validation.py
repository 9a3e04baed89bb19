#!/usr/bin/env python3
"""Example 02: Layered deal validation with escalating strictness.

Demonstrates:
- A scripted validation backend returning candidate deals per attempt
- Source-count filtering, the three weighted layers and the bonuses
- Search specificity and strictness escalating across attempts
- Population enrichment of the accepted deal set

Run:
    PYTHONPATH=src python examples/02_deal_validation.py
"""

from __future__ import annotations

from pharma_assurance.domain.values import DealResearchResult, ResearchContext
from pharma_assurance.infrastructure.config import DeepValidationConfig, EngineConfig
from pharma_assurance.services.deep_validation import DeepValidator
from pharma_assurance.services.orchestrator import RetryOrchestrator
from pharma_assurance.testing import ScriptedValidationBackend


def _deal(asset: str, acquirer: str, n_sources: int) -> DealResearchResult:
    return DealResearchResult(
        acquirer=acquirer,
        asset=asset,
        indication="idiopathic pulmonary fibrosis",
        rationale="Fibrosis franchise extension",
        date="2024-03-01",
        value="USD 1.2B",
        stage="Phase 2",
        sources=tuple(f"https://www.sec.gov/{asset.lower()}/{i}" for i in range(n_sources)),
    )


def main() -> None:
    # Attempt 1 finds one well-sourced deal and one thinly sourced one;
    # attempt 2 finds two well-sourced deals.
    backend = ScriptedValidationBackend(
        [
            [_deal("ABC-101", "Acme Pharma", 3), _deal("THIN-1", "Beta Bio", 1)],
            [_deal("ABC-101", "Acme Pharma", 3), _deal("XYZ-202", "Gamma Therapeutics", 4)],
        ],
        layer_scores={"XYZ-202": (97.0, 92.0, 96.0)},
    )
    validator = DeepValidator(
        backend, DeepValidationConfig(max_retry_attempts=3, inter_attempt_delay=0.0)
    )
    orchestrator = RetryOrchestrator.for_deals(
        validator, EngineConfig(enable_caching=False)
    )

    context = ResearchContext(target="LPA1", indication="idiopathic pulmonary fibrosis")

    print("=== Deal Validation Run ===")
    result = orchestrator.run(context)

    print(f"Final state: {result.final_state.value}")
    print(f"Set score:   {result.quality_score:.1f}")
    for specificity, attempt in backend.research_calls:
        print(f"  attempt {attempt}: search '{specificity}'")
    for summary in result.attempts:
        print(
            f"  attempt {summary.attempt}: strictness {summary.strictness_threshold:.0f}, "
            f"set score {summary.score:.1f}"
        )
    print()
    for deal in result.output:
        population = deal.patient_population
        print(f"{deal.acquirer} / {deal.asset}: {deal.validation_score:.1f}")
        print(f"  notes: {', '.join(deal.validation_notes)}")
        if population is not None:
            print(f"  patients: {population.total_patients:,} (addressable {population.addressable_market:,})")


if __name__ == "__main__":
    main()
