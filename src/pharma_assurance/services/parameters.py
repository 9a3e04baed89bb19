"""Parameter selection: map a research context to tuned research parameters.

``ParameterSelector.select`` is a pure function of the context.  It starts
from a fixed default configuration and adjusts it using per-area,
per-phase and per-geography profiles.  Unknown context values leave the
defaults untouched; selection never raises.

Classes
-------
AreaProfile, PhaseProfile, GeographyProfile
    Static profiles the rules read from.
ParameterSelector
    Builds ``ResearchParameters`` (thresholds, tiers, field thresholds,
    cost ceiling, guidance) for one request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType

from pharma_assurance.domain.enums import (
    ReasoningEffort,
    SearchContextSize,
    SearchDepth,
    ValidationStrictness,
)
from pharma_assurance.domain.values import (
    FieldThreshold,
    ResearchContext,
    ResearchGuidance,
    ResearchParameters,
)

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Profiles                                                              #
# ===================================================================== #

@dataclass(frozen=True)
class AreaProfile:
    """Therapeutic-area complexity on a 1-10 scale."""

    competitor_depth: int
    pricing_sensitivity: int
    regulatory_complexity: int
    market_maturity: int


@dataclass(frozen=True)
class PhaseProfile:
    """Development-phase limits.

    ``revenue_limit`` is the plausible peak revenue ceiling in USD billions;
    ``share_limit`` the plausible peak market share in percent.
    """

    revenue_limit: float
    share_limit: float
    competitor_depth: int
    regulatory_focus: tuple[str, ...]


@dataclass(frozen=True)
class GeographyProfile:
    """Market-access complexity on a 1-10 scale."""

    pricing_depth: int
    regulatory_depth: int
    access_complexity: int
    competitor_focus: tuple[str, ...]


AREA_PROFILES: Mapping[str, AreaProfile] = MappingProxyType({
    "dermatology": AreaProfile(8, 7, 5, 8),
    "ophthalmology": AreaProfile(9, 8, 7, 7),
    "psychiatry": AreaProfile(7, 6, 8, 6),
    "urology": AreaProfile(6, 5, 4, 7),
    "vaccines": AreaProfile(9, 9, 9, 8),
})

PHASE_PROFILES: Mapping[str, PhaseProfile] = MappingProxyType({
    "preclinical": PhaseProfile(0.1, 5, 5, ("safety", "mechanism")),
    "phase1": PhaseProfile(0.5, 10, 6, ("safety", "dosing", "mechanism")),
    "phase2": PhaseProfile(1.0, 15, 7, ("efficacy", "safety", "dosing")),
    "phase3": PhaseProfile(2.0, 25, 8, ("efficacy", "safety", "labeling")),
    "approved": PhaseProfile(5.0, 40, 9, ("labeling", "post-marketing", "lifecycle")),
})

GEOGRAPHY_PROFILES: Mapping[str, GeographyProfile] = MappingProxyType({
    "us": GeographyProfile(9, 9, 8, ("top10", "emerging", "biosimilars")),
    "eu": GeographyProfile(8, 8, 7, ("top10", "emerging", "biosimilars")),
    "global": GeographyProfile(7, 6, 6, ("top10", "emerging", "regional")),
    "southkorea": GeographyProfile(6, 7, 5, ("domestic", "top10", "emerging")),
    "brazil": GeographyProfile(5, 6, 4, ("domestic", "top10", "emerging")),
})

BASE_FIELD_THRESHOLDS: Mapping[str, FieldThreshold] = MappingProxyType({
    "market_size": FieldThreshold("market_size", 0.7, True, ValidationStrictness.HIGH),
    "peak_revenue_2030": FieldThreshold("peak_revenue_2030", 0.8, True, ValidationStrictness.HIGH),
    "cagr": FieldThreshold("cagr", 0.8, True, ValidationStrictness.HIGH),
    "direct_competitors": FieldThreshold(
        "direct_competitors", 0.6, False, ValidationStrictness.MEDIUM
    ),
    "avg_selling_price": FieldThreshold("avg_selling_price", 0.7, True, ValidationStrictness.HIGH),
    "geographic_split": FieldThreshold("geographic_split", 0.8, True, ValidationStrictness.HIGH),
    "pricing_scenarios": FieldThreshold(
        "pricing_scenarios", 0.6, False, ValidationStrictness.MEDIUM
    ),
    "strategic_tailwind_data": FieldThreshold(
        "strategic_tailwind_data", 0.5, False, ValidationStrictness.LOW
    ),
    "default": FieldThreshold("default", 0.6, False, ValidationStrictness.MEDIUM),
})

PHASE_FIELD_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "preclinical": 0.8,
    "approved": 1.1,
})

# Areas whose field checks are always run at high strictness.
STRICT_FIELD_AREAS = frozenset({"vaccines", "psychiatry"})

BASE_COST_CEILING = 5.0
AREA_COST_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "vaccines": 1.2,
    "psychiatry": 1.1,
    "urology": 0.9,
})
PHASE_COST_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "preclinical": 0.8,
    "approved": 1.1,
})
GEOGRAPHY_COST_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "global": 1.2,
    "southkorea": 0.9,
    "brazil": 0.9,
})
COST_ALLOCATION: Mapping[str, float] = MappingProxyType({
    "research": 0.4,
    "validation": 0.4,
    "enhancement": 0.2,
})

_AREA_GUIDANCE: Mapping[str, tuple[tuple[str, ...], tuple[str, ...]]] = MappingProxyType({
    "dermatology": (
        ("biologic vs small molecule landscape", "patient access patterns",
         "dermatologist prescribing behavior"),
        ("IQVIA dermatology reports", "Dermatology Times", "American Academy of Dermatology"),
    ),
    "ophthalmology": (
        ("retinal specialist network", "injection frequency patterns",
         "anti-VEGF market dynamics"),
        ("Retina Today", "American Academy of Ophthalmology", "Ophthalmology Times"),
    ),
    "psychiatry": (
        ("mental health access barriers", "psychiatrist prescribing patterns",
         "insurance coverage trends"),
        ("Psychiatric Times", "American Psychiatric Association", "Mental Health America"),
    ),
    "urology": (
        ("urologist practice patterns", "patient persistence rates", "generic erosion patterns"),
        ("Urology Times", "American Urological Association", "Urology Practice"),
    ),
    "vaccines": (
        ("public health infrastructure", "vaccination rates", "government procurement patterns"),
        ("CDC vaccine reports", "WHO immunization data", "Vaccine journal"),
    ),
})

_PHASE_GUIDANCE: Mapping[str, tuple[tuple[str, ...], tuple[str, ...]]] = MappingProxyType({
    "preclinical": (
        ("Focus on mechanism of action validation", "Include preclinical safety data",
         "Consider regulatory pathway requirements"),
        ("Mechanism plausibility", "Preclinical safety profile", "Regulatory pathway clarity"),
    ),
    "phase1": (
        ("Include Phase 1 safety data", "Consider dose-ranging studies",
         "Evaluate PK/PD relationships"),
        ("Safety profile assessment", "Dose-response relationships", "PK/PD modeling"),
    ),
    "phase2": (
        ("Include efficacy signals", "Consider biomarker data",
         "Evaluate patient selection criteria"),
        ("Efficacy signal strength", "Biomarker validation", "Patient population definition"),
    ),
    "phase3": (
        ("Include pivotal trial design", "Consider regulatory endpoints",
         "Evaluate competitive positioning"),
        ("Trial design adequacy", "Endpoint validation", "Competitive differentiation"),
    ),
    "approved": (
        ("Include post-marketing data", "Consider real-world evidence",
         "Evaluate lifecycle management"),
        ("Post-marketing safety", "Real-world effectiveness", "Lifecycle opportunities"),
    ),
})

_GEOGRAPHY_GUIDANCE: Mapping[str, tuple[tuple[str, ...], tuple[str, ...]]] = MappingProxyType({
    "us": (
        ("FDA regulatory pathway", "Medicare/Medicaid coverage",
         "commercial insurance landscape"),
        ("FDA databases", "CMS data", "Kaiser Family Foundation"),
    ),
    "eu": (
        ("EMA regulatory pathway", "HTA requirements", "national reimbursement systems"),
        ("EMA databases", "EUnetHTA", "national HTA agencies"),
    ),
    "global": (
        ("WHO guidelines", "regional regulatory differences", "access programs"),
        ("WHO databases", "regional regulatory agencies", "access program reports"),
    ),
})


# ===================================================================== #
#  Selector                                                              #
# ===================================================================== #

class ParameterSelector:
    """Derive ``ResearchParameters`` from a ``ResearchContext``.

    Each request gets its own, freshly built parameter value; the selector
    holds no per-request state and may be shared freely.

    Parameters
    ----------
    defaults:
        Starting configuration.  Defaults to ``ResearchParameters()``.
    """

    def __init__(self, defaults: ResearchParameters | None = None) -> None:
        self._defaults = defaults or ResearchParameters()

    @property
    def defaults(self) -> ResearchParameters:
        return self._defaults

    def select(self, context: ResearchContext) -> ResearchParameters:
        """Return the parameters tuned for *context*."""
        params = self._defaults
        area = AREA_PROFILES.get(context.area_key)
        phase = PHASE_PROFILES.get(context.phase_key)
        geo = GEOGRAPHY_PROFILES.get(context.geography_key)

        if area is not None:
            if area.competitor_depth >= 8:
                params = replace(
                    params, search_depth=SearchDepth.COMPREHENSIVE, queries_per_search=5
                )
            elif area.competitor_depth >= 6:
                params = replace(params, search_depth=SearchDepth.DEEP, queries_per_search=4)

            if area.regulatory_complexity >= 8:
                params = replace(
                    params,
                    validation_strictness=ValidationStrictness.ULTRA,
                    max_validation_cycles=4,
                )
            elif area.regulatory_complexity >= 6:
                params = replace(
                    params,
                    validation_strictness=ValidationStrictness.HIGH,
                    max_validation_cycles=3,
                )

        if phase is not None:
            if context.phase_key == "preclinical":
                params = replace(params, quality_threshold=0.75, enable_enhancement=False)
            elif context.phase_key == "approved":
                params = replace(
                    params, quality_threshold=0.90, enable_executive_validation=True
                )

            if phase.competitor_depth >= 8:
                params = replace(params, reasoning_effort=ReasoningEffort.MAXIMUM)
            elif phase.competitor_depth >= 6:
                params = replace(params, reasoning_effort=ReasoningEffort.HIGH)

        if geo is not None:
            if geo.access_complexity >= 8:
                params = replace(
                    params,
                    search_context_size=SearchContextSize.EXTENSIVE,
                    queries_per_search=max(params.queries_per_search, 5),
                )
            if geo.pricing_depth >= 8:
                params = replace(
                    params,
                    enable_field_level_validation=True,
                    enable_smart_validation=True,
                )

        params = replace(
            params,
            field_thresholds=self.field_thresholds(context),
            cost_ceiling=self.cost_ceiling(context),
            cost_allocation=dict(COST_ALLOCATION),
            guidance=self.guidance(context),
        )
        logger.debug(
            "ParameterSelector: %s/%s/%s -> threshold=%.2f strictness=%s depth=%s",
            context.area_key or "-",
            context.phase_key or "-",
            context.geography_key or "-",
            params.quality_threshold,
            params.validation_strictness.value,
            params.search_depth.value,
        )
        return params

    # -- components --------------------------------------------------------

    @staticmethod
    def field_threshold(field_name: str, context: ResearchContext) -> FieldThreshold:
        """Threshold for one field, scaled for phase and area.

        Unknown field names use the ``default`` entry.
        """
        base = BASE_FIELD_THRESHOLDS.get(field_name) or replace(
            BASE_FIELD_THRESHOLDS["default"], field_name=field_name
        )
        multiplier = PHASE_FIELD_MULTIPLIERS.get(context.phase_key, 1.0)
        strictness = base.strictness
        if context.area_key in STRICT_FIELD_AREAS:
            strictness = ValidationStrictness.HIGH
        return replace(
            base,
            min_score=min(1.0, base.min_score * multiplier),
            strictness=strictness,
        )

    @classmethod
    def field_thresholds(cls, context: ResearchContext) -> dict[str, FieldThreshold]:
        return {name: cls.field_threshold(name, context) for name in BASE_FIELD_THRESHOLDS}

    @staticmethod
    def cost_ceiling(context: ResearchContext) -> float:
        """Per-request budget: the base ceiling scaled by area, phase and geography."""
        budget = BASE_COST_CEILING
        budget *= AREA_COST_MULTIPLIERS.get(context.area_key, 1.0)
        budget *= PHASE_COST_MULTIPLIERS.get(context.phase_key, 1.0)
        budget *= GEOGRAPHY_COST_MULTIPLIERS.get(context.geography_key, 1.0)
        return round(budget, 6)

    @staticmethod
    def guidance(context: ResearchContext) -> ResearchGuidance:
        focus: tuple[str, ...] = ()
        sources: tuple[str, ...] = ()
        requirements: tuple[str, ...] = ()
        criteria: tuple[str, ...] = ()
        geo_requirements: tuple[str, ...] = ()

        if context.area_key in _AREA_GUIDANCE:
            area_focus, area_sources = _AREA_GUIDANCE[context.area_key]
            focus += area_focus
            sources += area_sources
        if context.phase_key in _PHASE_GUIDANCE:
            requirements, criteria = _PHASE_GUIDANCE[context.phase_key]
        if context.geography_key in _GEOGRAPHY_GUIDANCE:
            geo_requirements, geo_sources = _GEOGRAPHY_GUIDANCE[context.geography_key]
            focus += geo_requirements
            sources += geo_sources

        return ResearchGuidance(
            focus_areas=focus,
            data_sources=sources,
            phase_requirements=requirements,
            validation_criteria=criteria,
            geography_requirements=geo_requirements,
        )
