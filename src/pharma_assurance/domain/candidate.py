"""Typed model of one generated commercial-intelligence report.

A ``CommercialReport`` is the candidate a single generation attempt
produces.  Every field is optional so that a partial report still parses;
missing content is reported by the consistency audit rather than rejected
here.  Keys are accepted in snake_case or in the camelCase used by the
generation capability (``peakRevenue2030``, ``avgSellingPriceUSD`` ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="allow",
)


class _ReportModel(BaseModel):
    model_config = _MODEL_CONFIG


class SourcedNumber(_ReportModel):
    value: float
    rationale: str = ""
    sources: list[str] = Field(default_factory=list)


class SourcedFlag(_ReportModel):
    value: bool
    rationale: str = ""
    sources: list[str] = Field(default_factory=list)


class SourcedText(_ReportModel):
    value: str
    rationale: str = ""
    sources: list[str] = Field(default_factory=list)


class DealActivityItem(_ReportModel):
    """A transaction involving a comparable asset."""

    asset: str
    acquirer: str = ""
    stage: str = ""
    price_usd: float | None = Field(default=None, alias="priceUSD")
    date_iso: str = Field(default="", alias="dateISO")
    rationale: str = ""
    sources: list[str] = Field(default_factory=list)


class GeographicSplit(_ReportModel):
    """Revenue split by region, as fractions of 1."""

    us: float = 0.0
    eu: float = 0.0
    row: float = 0.0

    @property
    def total(self) -> float:
        return self.us + self.eu + self.row


class KeyMarketAssumptions(_ReportModel):
    avg_selling_price_usd: float | None = Field(default=None, alias="avgSellingPriceUSD")
    persistence_rate: float | None = None
    treatment_duration_months: float | None = None
    geographic_split: GeographicSplit | None = None
    rationale: str = ""
    sources: list[str] = Field(default_factory=list)


class RegulatoryIncentives(_ReportModel):
    prv_eligibility: SourcedFlag | None = None
    rare_disease: SourcedFlag | None = None
    national_priority: SourcedText | None = None
    review_timeline_months: SourcedNumber | None = None


class IpStrength(_ReportModel):
    exclusivity_years: SourcedNumber | None = None
    generic_entry_risk_percent: SourcedNumber | None = None
    core_ip_position: SourcedText | None = None


class FinancialForecast(_ReportModel):
    total_ten_year_revenue_usd: SourcedNumber | None = Field(
        default=None, alias="totalTenYearRevenueUSD"
    )
    peak_market_share_percent: SourcedNumber | None = None
    peak_patients_count: SourcedNumber | None = None


class PricingScenario(_ReportModel):
    scenario: str
    price_usd: float | None = Field(default=None, alias="priceUSD")
    access_assumption: str = ""
    sources: list[str] = Field(default_factory=list)


class CommercialReport(_ReportModel):
    """One candidate report: base figures, derived figures and evidence.

    Base figures (``current_market``, ``peak_revenue_2030`` ...) come from
    sources; derived figures (``cagr``, ``peak_patients_2030``,
    ``pipeline_density``, ``strategic_fit``) must agree with what the
    deterministic calculator computes from them.
    """

    # base figures
    current_market: float | None = None
    peak_revenue_2030: float | None = None
    years_to_peak: float | None = None
    avg_price: float | None = None
    persistence_rate: float | None = None
    same_target_assets: float | None = None
    total_assets: float | None = None
    vector_a: list[float] | None = None
    vector_b: list[float] | None = None

    # derived figures
    cagr: float | None = None
    peak_patients_2030: float | None = None
    pipeline_density: float | None = None
    strategic_fit: float | None = None
    strategic_fit_subscores: dict[str, float] = Field(default_factory=dict)

    # structured sections
    market_size: str | None = None
    direct_competitors: list[str] = Field(default_factory=list)
    deal_activity: list[DealActivityItem] = Field(default_factory=list)
    pricing_scenarios: list[PricingScenario] = Field(default_factory=list)
    key_market_assumptions: KeyMarketAssumptions | None = None
    reg_incentives: RegulatoryIncentives | None = None
    ip_strength: IpStrength | None = None
    financial_forecast: FinancialForecast | None = None

    # evidence
    sources: list[str] = Field(default_factory=list)
    source_map: dict[str, list[str]] = Field(default_factory=dict)

    def all_sources(self) -> list[str]:
        """Every cited URL, de-duplicated, in first-seen order."""
        seen: dict[str, None] = {}

        def _add(urls: list[str]) -> None:
            for url in urls:
                if url:
                    seen.setdefault(url, None)

        _add(self.sources)
        for urls in self.source_map.values():
            _add(urls)
        for deal in self.deal_activity:
            _add(deal.sources)
        for scenario in self.pricing_scenarios:
            _add(scenario.sources)
        if self.key_market_assumptions is not None:
            _add(self.key_market_assumptions.sources)
        for section in (self.reg_incentives, self.ip_strength, self.financial_forecast):
            if section is None:
                continue
            for name in type(section).model_fields:
                entry = getattr(section, name)
                if entry is not None:
                    _add(entry.sources)
        return list(seen)

    def missing_fields(self, required: tuple[str, ...]) -> list[str]:
        """Names in *required* whose value is ``None`` or empty."""
        missing = []
        for name in required:
            value = getattr(self, name, None)
            if value is None or value == [] or value == {}:
                missing.append(name)
        return missing

    def to_document(self) -> dict[str, Any]:
        """Plain-dict form (snake_case keys, unset sections omitted)."""
        return self.model_dump(exclude_none=True)
