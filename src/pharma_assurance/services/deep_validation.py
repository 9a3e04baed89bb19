"""Itemized (deal) validation.

Each attempt researches candidate deals with a search specificity that
escalates with the attempt number, discards candidates citing too few
sources, and scores every survivor with three independent layers:

- fact check (weight 0.5)
- logic / business-rationale check (weight 0.3)
- cross-reference across independent databases (weight 0.2)

A deal is accepted when its weighted score reaches the attempt's strictness
threshold ``min(90 + 2 x attempt, 98)``.  Accepted deals then have every
source verified individually (bonus +5) and are cross-verified (bonus +3);
a deal failing either check is dropped.  Finally the surviving set is
enriched with patient-population data.

The attempt loop (best-of-N retention, early stop, delay) is driven by
``RetryOrchestrator``; this module only implements one attempt.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from types import MappingProxyType

from pharma_assurance.domain.events import DealSetValidated
from pharma_assurance.domain.values import (
    DealResearchResult,
    PatientPopulation,
    ResearchContext,
    ValidationResult,
)
from pharma_assurance.infrastructure.config import DeepValidationConfig
from pharma_assurance.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)

SPECIFICITY_LADDER: tuple[str, ...] = (
    "broad",
    "moderate",
    "specific",
    "very specific",
    "ultra-specific",
)

LAYER_WEIGHTS = MappingProxyType({
    "fact_check": 0.5,
    "logic_check": 0.3,
    "cross_reference": 0.2,
})

# Minimum layer score for a backend to report the layer as valid.
LAYER_PASS_SCORES = MappingProxyType({
    "fact_check": 90.0,
    "logic_check": 85.0,
    "cross_reference": 90.0,
})

BASE_STRICTNESS = 90.0
STRICTNESS_STEP = 2.0
MAX_STRICTNESS = 98.0


def search_specificity(attempt: int) -> str:
    """Specificity label for *attempt* (1-based), clamped at the last rung."""
    index = min(max(attempt, 1) - 1, len(SPECIFICITY_LADDER) - 1)
    return SPECIFICITY_LADDER[index]


def strictness_threshold(attempt: int) -> float:
    """Per-deal acceptance threshold: ``min(90 + 2 x attempt, 98)``."""
    return min(BASE_STRICTNESS + STRICTNESS_STEP * attempt, MAX_STRICTNESS)


# ===================================================================== #
#  Backend                                                               #
# ===================================================================== #

class ValidationBackend(ABC):
    """External calls the deep validator depends on.

    Every method may raise; the validator isolates failures per call.
    """

    @abstractmethod
    def research_deals(
        self,
        context: ResearchContext,
        specificity: str,
        attempt: int,
    ) -> list[DealResearchResult]:
        """Research candidate deals for *context*."""

    @abstractmethod
    def fact_check(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        """Verify names, dates, values and stage against primary sources."""

    @abstractmethod
    def logic_check(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        """Check the business rationale and valuation for plausibility."""

    @abstractmethod
    def cross_reference(self, deal: DealResearchResult, attempt: int) -> ValidationResult:
        """Confirm the deal appears consistently in independent databases."""

    @abstractmethod
    def validate_source(self, source: str, deal: DealResearchResult) -> ValidationResult:
        """Verify that *source* exists and supports *deal*."""

    @abstractmethod
    def cross_verify(self, deal: DealResearchResult) -> ValidationResult:
        """Final cross-database verification of an accepted deal."""

    @abstractmethod
    def population_data(self, indication: str) -> PatientPopulation:
        """Validated patient-population figures for *indication*."""


# ===================================================================== #
#  Attempt outcome                                                       #
# ===================================================================== #

@dataclass(frozen=True)
class DealSetOutcome:
    """Result of one research-and-validate attempt."""

    attempt: int
    deals: tuple[DealResearchResult, ...]
    candidates: int
    strictness_threshold: float
    specificity: str

    @property
    def accepted_count(self) -> int:
        return len(self.deals)

    @property
    def average_score(self) -> float:
        """Mean retained validation score; 0 for an empty set."""
        if not self.deals:
            return 0.0
        return sum(d.validation_score for d in self.deals) / len(self.deals)

    @property
    def sources(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(s for d in self.deals for s in d.sources))


# ===================================================================== #
#  Validator                                                             #
# ===================================================================== #

class DeepValidator:
    """Run one layered validation attempt over researched deals.

    Parameters
    ----------
    backend:
        The external research / verification calls.
    config:
        Thresholds, bonuses and stage toggles.
    event_bus:
        Optional bus receiving a ``DealSetValidated`` event per attempt.
    """

    def __init__(
        self,
        backend: ValidationBackend,
        config: DeepValidationConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._backend = backend
        self._config = config or DeepValidationConfig()
        self._config.validate()
        self._event_bus = event_bus

    @property
    def config(self) -> DeepValidationConfig:
        return self._config

    # -- acceptance ---------------------------------------------------------

    def is_acceptable(self, outcome: DealSetOutcome) -> bool:
        """Whether *outcome* is good enough to stop retrying."""
        return (
            outcome.accepted_count >= self._config.min_accepted_deals
            and outcome.average_score >= self._config.validation_threshold * 100.0
        )

    # -- attempt ------------------------------------------------------------

    def run_attempt(
        self,
        context: ResearchContext,
        attempt: int,
        trace_id: str = "",
    ) -> DealSetOutcome:
        """Research and validate one deal set."""
        candidates = self.research(context, attempt)
        return self.validate(candidates, context, attempt, trace_id=trace_id)

    def research(self, context: ResearchContext, attempt: int) -> list[DealResearchResult]:
        """Research candidates and drop those citing too few sources."""
        specificity = search_specificity(attempt)
        try:
            found = self._backend.research_deals(context, specificity, attempt)
        except Exception as exc:
            logger.warning("DeepValidator: deal research failed on attempt %d: %s", attempt, exc)
            return []
        kept = self.filter_by_source_count(found)
        logger.info(
            "DeepValidator: attempt %d (%s) found %d deals, %d meet the %d-source minimum",
            attempt,
            specificity,
            len(found),
            len(kept),
            self._config.min_source_count,
        )
        return kept

    def filter_by_source_count(
        self, deals: Sequence[DealResearchResult]
    ) -> list[DealResearchResult]:
        minimum = self._config.min_source_count
        return [d for d in deals if len(d.sources) >= minimum]

    def validate(
        self,
        candidates: Sequence[DealResearchResult],
        context: ResearchContext,
        attempt: int,
        trace_id: str = "",
    ) -> DealSetOutcome:
        """Score, verify and enrich *candidates* for *attempt*."""
        threshold = strictness_threshold(attempt)
        eligible = self.filter_by_source_count(candidates)

        accepted = []
        for deal in eligible:
            scored = self.score_deal(deal, attempt, threshold)
            if scored is not None:
                accepted.append(scored)

        if self._config.enable_deep_source_validation:
            accepted = [d for d in (self._verify_sources(d) for d in accepted) if d is not None]
        if self._config.enable_cross_verification:
            accepted = [d for d in (self._cross_verify(d) for d in accepted) if d is not None]
        if self._config.enable_population_enrichment and accepted:
            accepted = self.enrich(accepted, context.indication)

        outcome = DealSetOutcome(
            attempt=attempt,
            deals=tuple(accepted),
            candidates=len(eligible),
            strictness_threshold=threshold,
            specificity=search_specificity(attempt),
        )
        logger.info(
            "DeepValidator: attempt %d accepted %d/%d deals (avg %.1f, strictness %.0f)",
            attempt,
            outcome.accepted_count,
            outcome.candidates,
            outcome.average_score,
            threshold,
        )
        if self._event_bus is not None:
            self._event_bus.publish(
                DealSetValidated(
                    trace_id=trace_id,
                    attempt=attempt,
                    candidates=outcome.candidates,
                    accepted=outcome.accepted_count,
                    average_score=outcome.average_score,
                    strictness_threshold=threshold,
                )
            )
        return outcome

    # -- layers -------------------------------------------------------------

    def score_deal(
        self,
        deal: DealResearchResult,
        attempt: int,
        threshold: float | None = None,
    ) -> DealResearchResult | None:
        """Run the three layers; return the annotated deal or ``None`` if rejected."""
        if threshold is None:
            threshold = strictness_threshold(attempt)
        layers = {
            "fact_check": self._layer("fact_check", self._backend.fact_check, deal, attempt),
            "logic_check": self._layer("logic_check", self._backend.logic_check, deal, attempt),
            "cross_reference": self._layer(
                "cross_reference", self._backend.cross_reference, deal, attempt
            ),
        }
        weighted = sum(LAYER_WEIGHTS[name] * result.score for name, result in layers.items())
        if weighted < threshold:
            logger.debug(
                "DeepValidator: rejected %s/%s (%.1f < %.0f)",
                deal.acquirer,
                deal.asset,
                weighted,
                threshold,
            )
            return None
        notes = tuple(issue for result in layers.values() for issue in result.issues)
        sources = tuple(s for result in layers.values() for s in result.sources)
        return deal.with_validation(weighted, notes, sources)

    @staticmethod
    def _layer(
        name: str,
        call: Callable[[DealResearchResult, int], ValidationResult],
        deal: DealResearchResult,
        attempt: int,
    ) -> ValidationResult:
        try:
            return call(deal, attempt)
        except Exception as exc:
            logger.warning("DeepValidator: %s failed for %s: %s", name, deal.asset, exc)
            return ValidationResult.failed(f"{name} failed: {exc}")

    def validate_sources(self, deal: DealResearchResult) -> ValidationResult:
        """Verify every source of *deal* individually.

        Valid when at least ``source_pass_ratio`` of the sources verify and
        the verified count meets ``min_source_count``.
        """
        if not deal.sources:
            return ValidationResult.failed("No sources to validate")
        valid: list[str] = []
        issues: list[str] = []
        for source in deal.sources:
            try:
                result = self._backend.validate_source(source, deal)
            except Exception as exc:
                logger.warning("DeepValidator: source check failed for %s: %s", source, exc)
                issues.append(f"{source}: Validation failed")
                continue
            if result.is_valid:
                valid.append(source)
            else:
                issues.extend(f"{source}: {issue}" for issue in result.issues)
        score = len(valid) / len(deal.sources) * 100.0
        is_valid = (
            score >= self._config.source_pass_ratio * 100.0
            and len(valid) >= self._config.min_source_count
        )
        return ValidationResult(
            is_valid=is_valid,
            score=score,
            issues=tuple(issues),
            confidence=score / 100.0,
            sources=tuple(valid),
        )

    def _verify_sources(self, deal: DealResearchResult) -> DealResearchResult | None:
        result = self.validate_sources(deal)
        if not result.is_valid:
            logger.debug("DeepValidator: %s dropped by source validation", deal.asset)
            return None
        return deal.with_validation(
            deal.validation_score + self._config.source_validation_bonus,
            ("Deep source validation passed",),
        )

    def _cross_verify(self, deal: DealResearchResult) -> DealResearchResult | None:
        try:
            result = self._backend.cross_verify(deal)
        except Exception as exc:
            logger.warning("DeepValidator: cross verification failed for %s: %s", deal.asset, exc)
            return None
        if not result.is_valid:
            logger.debug("DeepValidator: %s dropped by cross verification", deal.asset)
            return None
        return deal.with_validation(
            deal.validation_score + self._config.cross_verification_bonus,
            ("Cross-verification passed",),
            result.sources,
        )

    def enrich(
        self,
        deals: Sequence[DealResearchResult],
        indication: str,
    ) -> list[DealResearchResult]:
        """Attach population data to every deal; unchanged on failure."""
        try:
            population = self._backend.population_data(indication)
        except Exception as exc:
            logger.warning("DeepValidator: population data failed for %s: %s", indication, exc)
            return list(deals)
        return [replace(d, patient_population=population) for d in deals]
