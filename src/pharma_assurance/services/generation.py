"""Candidate generation strategies.

The generation capability is external and non-deterministic: it may fail,
time out, or return text that is not a valid report.  Strategies here wrap
it behind one interface; parsing is left to ``parse_candidate``.

Classes
-------
GenerationRequest / GenerationResponse
    What a strategy receives and returns.
BaseCandidateGenerator
    Abstract strategy.
CallableGenerator
    Adapts a plain function.
LLMCandidateGenerator
    Generates with a LangChain chat model.
"""

from __future__ import annotations

import concurrent.futures
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.prompts import ChatPromptTemplate

from pharma_assurance.domain.exceptions import GenerationError
from pharma_assurance.domain.values import ResearchContext, ResearchParameters
from pharma_assurance.services.cost import price_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """Inputs for one generation attempt."""

    context: ResearchContext
    parameters: ResearchParameters
    attempt: int = 1
    corrective_instructions: str = ""


@dataclass(frozen=True)
class GenerationResponse:
    """Raw output of one generation attempt.

    ``document`` is whatever the capability produced (text, mapping or
    model); ``cost`` is its estimated spend in USD.
    """

    document: Any
    sources: tuple[str, ...] = ()
    cost: float = 0.0
    model: str = ""


class BaseCandidateGenerator(ABC):
    """Abstract generation strategy.

    Implementations raise ``GenerationError`` on failure.
    """

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Produce one candidate for *request*."""

    def estimate_cost(self, request: GenerationRequest) -> float:
        """Expected spend of one call; ``0.0`` when unknown."""
        return 0.0


class CallableGenerator(BaseCandidateGenerator):
    """Wrap ``fn(request) -> document | GenerationResponse``.

    Exceptions raised by *fn* are re-raised as ``GenerationError``.
    """

    def __init__(
        self,
        fn: Callable[[GenerationRequest], Any],
        cost_per_call: float = 0.0,
        name: str = "callable",
    ) -> None:
        self._fn = fn
        self._cost = cost_per_call
        self._name = name

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        try:
            result = self._fn(request)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(
                f"{self._name} generator failed: {exc}",
                attempt=request.attempt,
                generator=self._name,
            ) from exc
        if isinstance(result, GenerationResponse):
            return result
        return GenerationResponse(document=result, cost=self._cost, model=self._name)

    def estimate_cost(self, request: GenerationRequest) -> float:
        return self._cost


_GENERATION_PROMPT = ChatPromptTemplate.from_messages(
    [
        (
            "system",
            "You are a pharmaceutical commercial-intelligence analyst. Return a "
            "single JSON object with the market figures, derived figures, "
            "competitors, deals, pricing scenarios, regulatory incentives and a "
            "source for every figure.\n\n"
            "Search depth: {search_depth}. Reasoning effort: {reasoning_effort}.\n"
            "Focus areas: {focus_areas}\n"
            "Preferred sources: {data_sources}",
        ),
        (
            "human",
            "Target: {target}\nIndication: {indication}\n"
            "Therapeutic area: {therapeutic_area}\nGeography: {geography}\n"
            "Phase: {phase}\n\n{corrective}",
        ),
    ]
)


class LLMCandidateGenerator(BaseCandidateGenerator):
    """Generate report text with a LangChain chat model.

    Parameters
    ----------
    model:
        A LangChain chat model.
    model_name:
        Price-table key used for cost estimation (see ``cost.MODEL_PRICES``).
    prompt:
        Optional custom ``ChatPromptTemplate``.
    timeout:
        Optional per-call timeout in seconds.
    expected_tokens:
        ``(input, output)`` token estimate used before a call is made.
    """

    def __init__(
        self,
        model: BaseChatModel,
        model_name: str = "sonar-pro",
        prompt: ChatPromptTemplate | None = None,
        timeout: float | None = None,
        expected_tokens: tuple[int, int] = (2_000, 4_000),
    ) -> None:
        self.model = model
        self.model_name = model_name
        self._prompt = prompt or _GENERATION_PROMPT
        self._timeout = timeout
        self._expected_tokens = expected_tokens
        self._chain = self._prompt | self.model

    def _invoke_with_timeout(self, inputs: dict[str, Any]) -> Any:
        """Invoke the chain with optional timeout."""
        if self._timeout is None:
            return self._chain.invoke(inputs)
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = pool.submit(self._chain.invoke, inputs)
            return future.result(timeout=self._timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def estimate_cost(self, request: GenerationRequest) -> float:
        return price_call(self.model_name, *self._expected_tokens)

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        ctx, params = request.context, request.parameters
        corrective = (
            f"Previous attempt was rejected. Fix the following:\n{request.corrective_instructions}"
            if request.corrective_instructions
            else ""
        )
        try:
            message = self._invoke_with_timeout(
                {
                    "search_depth": params.search_depth.value,
                    "reasoning_effort": params.reasoning_effort.value,
                    "focus_areas": ", ".join(params.guidance.focus_areas) or "N/A",
                    "data_sources": ", ".join(params.guidance.data_sources) or "N/A",
                    "target": ctx.target,
                    "indication": ctx.indication,
                    "therapeutic_area": ctx.therapeutic_area or "N/A",
                    "geography": ctx.geography,
                    "phase": ctx.phase,
                    "corrective": corrective,
                }
            )
        except concurrent.futures.TimeoutError as exc:
            raise GenerationError(
                f"generation timed out after {self._timeout}s",
                attempt=request.attempt,
                generator=self.model_name,
            ) from exc
        except Exception as exc:
            raise GenerationError(
                f"generation failed: {exc}",
                attempt=request.attempt,
                generator=self.model_name,
            ) from exc

        content = getattr(message, "content", message)
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        usage = getattr(message, "usage_metadata", None) or {}
        if usage:
            cost = price_call(
                self.model_name,
                int(usage.get("input_tokens", 0)),
                int(usage.get("output_tokens", 0)),
            )
        else:
            cost = self.estimate_cost(request)
        citations = getattr(message, "additional_kwargs", {}).get("citations", ()) or ()
        return GenerationResponse(
            document=content,
            sources=tuple(str(c) for c in citations),
            cost=cost,
            model=self.model_name,
        )
