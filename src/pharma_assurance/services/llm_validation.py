"""LLM-backed ``ValidationBackend`` using LangChain structured output.

Every backend call is one ``prompt | model.with_structured_output(Schema)``
chain.  Failures propagate as ``ValidationLayerError``; ``DeepValidator``
isolates them per call.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from pharma_assurance.domain.exceptions import ValidationLayerError
from pharma_assurance.domain.values import (
    DealResearchResult,
    PatientPopulation,
    ResearchContext,
    ValidationResult,
)
from pharma_assurance.services.deep_validation import LAYER_PASS_SCORES, ValidationBackend

logger = logging.getLogger(__name__)

# -- Structured output schemas -----------------------------------------------


class DealOutput(BaseModel):
    acquirer: str
    asset: str
    indication: str = ""
    rationale: str = ""
    date: str = Field(default="", description="YYYY-MM-DD")
    value: str = Field(default="", description="Deal value with currency")
    stage: str = ""
    sources: list[str] = Field(default_factory=list)


class DealListOutput(BaseModel):
    """Structured output schema for deal research."""

    deals: list[DealOutput] = Field(default_factory=list)


class LayerOutput(BaseModel):
    """Structured output schema for one validation pass."""

    is_valid: bool
    score: float = Field(ge=0, le=100)
    issues: list[str] = Field(default_factory=list)
    corrections: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0, le=1)
    sources: list[str] = Field(default_factory=list)


class PopulationOutput(BaseModel):
    total_patients: int = Field(ge=0)
    addressable_market: int = Field(ge=0)
    source: str = ""


# -- Prompts -----------------------------------------------------------------

_RESEARCH_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a pharmaceutical deal analyst. Report only publicly "
            "announced deals from the last 18 months, each with at least "
            "{min_sources} source URLs. Return an empty list if none exist.",
        ),
        (
            "human",
            "Target: {target}\nIndication: {indication}\n"
            "Search specificity: {specificity} (attempt {attempt})",
        ),
    ]
)

_LAYER_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a pharmaceutical deal auditor performing a {layer}. "
            "Score 0-100; scores below {pass_score} mean the deal is not valid. "
            "This is attempt {attempt}; be strict.\n\n{instructions}",
        ),
        ("human", "Deal:\n{deal}"),
    ]
)

_LAYER_INSTRUCTIONS = {
    "fact_check": "Verify company names, asset, date, value and stage against primary sources.",
    "logic_check": "Check that the rationale, valuation and timing make business sense.",
    "cross_reference": "Confirm the deal appears consistently in independent databases.",
    "cross_verification": "Confirm the deal in at least two independent deal databases.",
}

_SOURCE_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "Verify that the source exists, is credible and supports the deal. "
            "Mark it valid only if all three hold.",
        ),
        ("human", "Source: {source}\nDeal:\n{deal}"),
    ]
)

_POPULATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "Give the validated global patient population and the addressable "
            "market for the indication, citing an epidemiological source.",
        ),
        ("human", "Indication: {indication}"),
    ]
)


# -- LLMValidationBackend ----------------------------------------------------


class LLMValidationBackend(ValidationBackend):
    """Deep-validation calls answered by a LangChain chat model.

    Parameters
    ----------
    model:
        A LangChain chat model supporting ``with_structured_output``.
    min_source_count:
        Source minimum quoted in the research prompt.
    timeout:
        Optional per-call timeout in seconds.
    """

    def __init__(
        self,
        model: BaseChatModel,
        min_source_count: int = 3,
        timeout: float | None = None,
    ) -> None:
        self.model = model
        self._min_sources = min_source_count
        self._timeout = timeout
        self._research_chain = _RESEARCH_PROMPT | model.with_structured_output(DealListOutput)
        self._layer_chain = _LAYER_PROMPT | model.with_structured_output(LayerOutput)
        self._source_chain = _SOURCE_PROMPT | model.with_structured_output(LayerOutput)
        self._population_chain = _POPULATION_PROMPT | model.with_structured_output(
            PopulationOutput
        )

    def _invoke(self, chain: Any, inputs: dict[str, Any], layer: str, expected: type) -> Any:
        try:
            if self._timeout is None:
                result = chain.invoke(inputs)
            else:
                pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
                try:
                    result = pool.submit(chain.invoke, inputs).result(timeout=self._timeout)
                finally:
                    pool.shutdown(wait=False, cancel_futures=True)
        except concurrent.futures.TimeoutError as exc:
            raise ValidationLayerError(
                f"{layer} timed out after {self._timeout}s", layer=layer
            ) from exc
        except Exception as exc:
            raise ValidationLayerError(f"{layer} failed: {exc}", layer=layer) from exc
        if not isinstance(result, expected):
            raise ValidationLayerError(
                f"{layer} returned {type(result).__name__}, expected {expected.__name__}",
                layer=layer,
            )
        return result

    # -- research -----------------------------------------------------------

    def research_deals(
        self,
        context: ResearchContext,
        specificity: str,
        attempt: int,
    ) -> list[DealResearchResult]:
        output: DealListOutput = self._invoke(
            self._research_chain,
            {
                "min_sources": self._min_sources,
                "target": context.target,
                "indication": context.indication,
                "specificity": specificity,
                "attempt": attempt,
            },
            "research",
            DealListOutput,
        )
        return [
            DealResearchResult(
                acquirer=d.acquirer,
                asset=d.asset,
                indication=d.indication or context.indication,
                rationale=d.rationale,
                date=d.date,
                value=d.value,
                stage=d.stage,
                sources=tuple(dict.fromkeys(d.sources)),
            )
            for d in output.deals
        ]

    # -- layers -------------------------------------------------------------

    def _layer(self, layer: str, deal: DealResearchResult, attempt: int) -> ValidationResult:
        pass_score = LAYER_PASS_SCORES.get(layer, 90.0)
        output: LayerOutput = self._invoke(
            self._layer_chain,
            {
                "layer": layer.replace("_", " "),
                "pass_score": pass_score,
                "attempt": attempt,
                "instructions": _LAYER_INSTRUCTIONS[layer],
                "deal": _deal_text(deal),
            },
            layer,
            LayerOutput,
        )
        return _to_result(output, pass_score)

    def fact_check(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        return self._layer("fact_check", deal, attempt)

    def logic_check(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        return self._layer("logic_check", deal, attempt)

    def cross_reference(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        return self._layer("cross_reference", deal, attempt)

    def cross_verify(self, deal: DealResearchResult) -> ValidationResult:
        return self._layer("cross_verification", deal, 0)

    def validate_source(self, source: str, deal: DealResearchResult) -> ValidationResult:
        output: LayerOutput = self._invoke(
            self._source_chain,
            {"source": source, "deal": _deal_text(deal)},
            "source_validation",
            LayerOutput,
        )
        return _to_result(output, 0.0)

    def population_data(self, indication: str) -> PatientPopulation:
        output: PopulationOutput = self._invoke(
            self._population_chain,
            {"indication": indication},
            "population",
            PopulationOutput,
        )
        return PatientPopulation(
            total_patients=output.total_patients,
            addressable_market=output.addressable_market,
            source=output.source,
        )


def _deal_text(deal: DealResearchResult) -> str:
    return json.dumps(deal.to_dict(), indent=2, default=str)


def _to_result(output: LayerOutput, pass_score: float) -> ValidationResult:
    return ValidationResult(
        is_valid=output.is_valid and output.score >= pass_score,
        score=output.score,
        issues=tuple(output.issues),
        corrections=tuple(output.corrections),
        confidence=output.confidence,
        sources=tuple(output.sources),
    )
