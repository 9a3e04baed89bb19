"""Shared fixtures for the pharma-assurance test suite."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.infrastructure.config import DeepValidationConfig, EngineConfig
from pharma_assurance.infrastructure.event_bus import EventBus

# ---------------------------------------------------------------------------
# Report fixtures
# ---------------------------------------------------------------------------

SOURCES = [
    "https://www.fda.gov/drugs/development-approval-process-drugs",
    "https://clinicaltrials.gov/study/NCT04012345",
    "https://pubmed.ncbi.nlm.nih.gov/31234567/",
    "https://www.sec.gov/Archives/edgar/data/0001/10k.htm",
]

# Every derived figure agrees with its base figures and every cross-field
# rule holds, so the audit of this report finds nothing.
CONSISTENT_REPORT: dict[str, Any] = {
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


@pytest.fixture
def report_data() -> dict[str, Any]:
    """A deep copy of the consistent report, safe to mutate."""
    return copy.deepcopy(CONSISTENT_REPORT)


@pytest.fixture
def report(report_data: dict[str, Any]) -> CommercialReport:
    return CommercialReport.model_validate(report_data)


# ---------------------------------------------------------------------------
# Context fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def context() -> ResearchContext:
    """A Phase 3 respiratory asset; no indication keyword rules apply."""
    return ResearchContext(
        target="LPA1",
        indication="idiopathic pulmonary fibrosis",
        therapeutic_area="Respiratory",
        geography="US",
        phase="Phase 3",
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Fixed 0.85 threshold, no delay, no caching."""
    return EngineConfig(
        quality_threshold=0.85,
        max_retry_attempts=3,
        inter_attempt_delay=0.0,
        enable_caching=False,
        use_selected_threshold=False,
    )


@pytest.fixture
def deep_config() -> DeepValidationConfig:
    return DeepValidationConfig(max_retry_attempts=3, inter_attempt_delay=0.0)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()

