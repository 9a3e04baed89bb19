"""Per-request spend tracking against the cost ceiling.

One ``CostTracker`` is created per request; it is owned by the orchestrator
and never shared between requests.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPrice:
    """USD per 1K tokens."""

    input_per_1k: float
    output_per_1k: float


DEFAULT_MODEL = "sonar-pro"

MODEL_PRICES: Mapping[str, ModelPrice] = MappingProxyType({
    "sonar-pro": ModelPrice(0.20, 0.20),
    "sonar-deep-research": ModelPrice(0.50, 0.50),
    "gpt-4o": ModelPrice(0.005, 0.015),
    "gpt-4o-mini": ModelPrice(0.005, 0.015),
})


def price_call(
    model: str,
    input_tokens: int,
    output_tokens: int = 0,
    prices: Mapping[str, ModelPrice] = MODEL_PRICES,
) -> float:
    """USD cost of a call to *model*; unknown models are priced as ``DEFAULT_MODEL``."""
    price = prices.get(model) or prices.get(DEFAULT_MODEL) or ModelPrice(0.0, 0.0)
    return (input_tokens / 1000) * price.input_per_1k + (output_tokens / 1000) * price.output_per_1k


@dataclass
class CostMetrics:
    """Running totals for one request."""

    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    api_calls: int = 0
    by_model: dict[str, float] = field(default_factory=dict)


class CostTracker:
    """Track spend for one request against *ceiling* (USD).

    Parameters
    ----------
    ceiling:
        Maximum spend for the request.
    enabled:
        If ``False``, every call is affordable and nothing is recorded.
    """

    def __init__(
        self,
        ceiling: float,
        enabled: bool = True,
    ) -> None:
        if ceiling < 0:
            raise ValueError(f"ceiling must be >= 0, got {ceiling}")
        self._ceiling = ceiling
        self._enabled = enabled
        self._lock = threading.Lock()
        self._metrics = CostMetrics()

    @property
    def ceiling(self) -> float:
        return self._ceiling

    @property
    def spent(self) -> float:
        return self._metrics.total_cost

    def can_afford(self, cost: float) -> bool:
        """Whether spending *cost* more stays within the ceiling."""
        if not self._enabled:
            return True
        return self._metrics.total_cost + cost <= self._ceiling + 1e-12

    def record(self, cost: float, model: str = "", input_tokens: int = 0, output_tokens: int = 0) -> None:
        """Record a completed call that cost *cost* USD."""
        if not self._enabled:
            return
        with self._lock:
            m = self._metrics
            m.total_cost += cost
            m.input_tokens += input_tokens
            m.output_tokens += output_tokens
            m.api_calls += 1
            if model:
                m.by_model[model] = m.by_model.get(model, 0.0) + cost
        logger.debug(
            "CostTracker: +$%.4f (%s) total $%.4f / $%.2f",
            cost,
            model or "unknown",
            self._metrics.total_cost,
            self._ceiling,
        )

    def remaining(self) -> float:
        return max(0.0, self._ceiling - self._metrics.total_cost)

    def metrics(self) -> CostMetrics:
        with self._lock:
            m = self._metrics
            return CostMetrics(
                total_cost=m.total_cost,
                input_tokens=m.input_tokens,
                output_tokens=m.output_tokens,
                api_calls=m.api_calls,
                by_model=dict(m.by_model),
            )
