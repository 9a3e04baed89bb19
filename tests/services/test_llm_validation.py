"""Tests for LLMValidationBackend."""

from __future__ import annotations

import pytest

from pharma_assurance.domain.exceptions import ValidationLayerError
from pharma_assurance.domain.values import ResearchContext
from pharma_assurance.services.deep_validation import DeepValidator
from pharma_assurance.services.llm_validation import (
    DealListOutput,
    DealOutput,
    LayerOutput,
    LLMValidationBackend,
    PopulationOutput,
)
from tests.helpers.factories import make_deal
from tests.helpers.mock_llm import MockStructuredChatModel

_SOURCES = ["https://www.sec.gov/a", "https://www.businesswire.com/b", "https://fiercebiotech.com/c"]


def _deals() -> DealListOutput:
    return DealListOutput(
        deals=[
            DealOutput(acquirer="Acme", asset="A-1", sources=_SOURCES + [_SOURCES[0]]),
            DealOutput(acquirer="Beta", asset="B-2", indication="IPF", sources=_SOURCES[:2]),
        ]
    )


class TestLLMValidationBackend:
    def test_research_deals(self, context: ResearchContext) -> None:
        model = MockStructuredChatModel(structured_responses=[_deals()])
        deals = LLMValidationBackend(model).research_deals(context, "broad", 1)
        assert [d.asset for d in deals] == ["A-1", "B-2"]
        assert deals[0].sources == tuple(_SOURCES)
        assert deals[0].indication == context.indication
        assert deals[1].indication == "IPF"

    def test_layer_pass_score_applied(self) -> None:
        model = MockStructuredChatModel(
            structured_responses=[LayerOutput(is_valid=True, score=88, confidence=0.9)]
        )
        backend = LLMValidationBackend(model)
        assert backend.logic_check(make_deal(), 1).is_valid
        assert not backend.fact_check(make_deal(), 1).is_valid

    def test_population(self) -> None:
        model = MockStructuredChatModel(
            structured_responses=[
                PopulationOutput(total_patients=100_000, addressable_market=40_000,
                                 source="https://www.cdc.gov")
            ]
        )
        population = LLMValidationBackend(model).population_data("IPF")
        assert population.total_patients == 100_000
        assert population.addressable_market == 40_000

    def test_failure_wrapped(self) -> None:
        model = MockStructuredChatModel(structured_responses=[RuntimeError("quota")])
        with pytest.raises(ValidationLayerError) as exc_info:
            LLMValidationBackend(model).cross_reference(make_deal(), 1)
        assert exc_info.value.layer == "cross_reference"

    def test_wrong_output_type(self) -> None:
        model = MockStructuredChatModel(structured_responses=[_deals()])
        with pytest.raises(ValidationLayerError, match="expected LayerOutput"):
            LLMValidationBackend(model).fact_check(make_deal(), 1)

    def test_with_validator(self, context: ResearchContext) -> None:
        model = MockStructuredChatModel(
            structured_responses=[
                _deals(),
                LayerOutput(is_valid=True, score=96, confidence=0.95, sources=["https://sec.gov"]),
                PopulationOutput(total_patients=100_000, addressable_market=40_000),
            ]
        )
        validator = DeepValidator(LLMValidationBackend(model, timeout=5.0))
        outcome = validator.run_attempt(context, attempt=1)
        assert [d.asset for d in outcome.deals] == ["A-1"]
        assert outcome.deals[0].validation_score == 100.0
        assert outcome.deals[0].patient_population is not None
