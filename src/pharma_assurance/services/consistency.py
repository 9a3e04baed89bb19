"""Deterministic consistency audit of a commercial report.

The auditor runs five groups of checks over a parsed ``CommercialReport``
and reports what it finds as ``CriticalIssue`` objects:

1. numeric sanity (ranges, signs, impossible magnitudes)
2. derived figures, recomputed with the calculator and compared
3. business logic (rare-disease and PRV rules)
4. cross-field relationships (geographic split, revenue ratios, phase limits)
5. data completeness

Each group yields a score in [0, 1]; the audit score is their weighted
mean.  No external calls are made.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.enums import QualityCategory, Severity
from pharma_assurance.domain.exceptions import CalculationError
from pharma_assurance.domain.values import CriticalIssue, ResearchContext
from pharma_assurance.services import calculator
from pharma_assurance.services.parameters import PHASE_PROFILES

logger = logging.getLogger(__name__)

RARE_DISEASE_PATIENT_LIMIT = 200_000
MAX_MAGNITUDE_GAP = 2.0  # orders of magnitude
MAX_YEARS_TO_PEAK = 20.0

CAGR_TOLERANCE = 0.02
PEAK_PATIENTS_REL_TOLERANCE = 0.10
PIPELINE_DENSITY_TOLERANCE = 0.5
STRATEGIC_FIT_TOLERANCE = 0.05

SECTION_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "sanity": 0.30,
    "derived": 0.25,
    "business": 0.25,
    "cross_field": 0.10,
    "data_quality": 0.10,
})

CORE_FIELDS = ("current_market", "peak_revenue_2030", "years_to_peak", "avg_price",
               "persistence_rate")
DERIVED_FIELDS = ("cagr", "peak_patients_2030", "pipeline_density", "strategic_fit")
EVIDENCE_FIELDS = ("deal_activity", "direct_competitors")


@dataclass(frozen=True)
class AuditReport:
    """Outcome of auditing one report.

    Attributes
    ----------
    issues:
        Every finding, most severe first.
    score:
        Weighted audit score in [0, 1].
    section_scores:
        Score of each check group.
    computed:
        Derived figures recomputed from the report's base figures.
    """

    issues: tuple[CriticalIssue, ...] = ()
    score: float = 1.0
    section_scores: Mapping[str, float] = field(default_factory=dict)
    computed: Mapping[str, float] = field(default_factory=dict)

    @property
    def blocking_issues(self) -> tuple[CriticalIssue, ...]:
        return tuple(i for i in self.issues if i.is_blocking)


class _Section:
    """Collects findings for one check group."""

    def __init__(self, name: str, category: QualityCategory) -> None:
        self.name = name
        self.category = category.value
        self.checks = 0
        self.failed = 0
        self.issues: list[CriticalIssue] = []

    def check(
        self,
        ok: bool,
        severity: Severity,
        description: str,
        impact: str = "",
        fix: str = "",
        evidence: tuple[str, ...] = (),
    ) -> bool:
        self.checks += 1
        if not ok:
            self.failed += 1
            self.issues.append(
                CriticalIssue(
                    severity=severity,
                    category=self.category,
                    description=description,
                    impact=impact,
                    suggested_fix=fix,
                    evidence=evidence,
                )
            )
        return ok

    @property
    def score(self) -> float:
        if self.checks == 0:
            return 1.0
        return (self.checks - self.failed) / self.checks


_SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.HIGH: 1, Severity.MEDIUM: 2, Severity.LOW: 3}


class CandidateAuditor:
    """Run the deterministic checks over a report."""

    def audit(
        self,
        report: CommercialReport,
        context: ResearchContext | None = None,
    ) -> AuditReport:
        """Audit *report*; *context* enables indication- and phase-aware checks."""
        sanity = _Section("sanity", QualityCategory.FACTUAL_ACCURACY)
        derived = _Section("derived", QualityCategory.FACTUAL_ACCURACY)
        business = _Section("business", QualityCategory.REGULATORY_COMPLIANCE)
        cross = _Section("cross_field", QualityCategory.MARKET_INTELLIGENCE)
        quality = _Section("data_quality", QualityCategory.SOURCE_CREDIBILITY)

        self._check_sanity(report, sanity)
        computed = self._check_derived(report, derived)
        self._check_business(report, context, business)
        self._check_cross_field(report, context, cross)
        completeness = self._check_completeness(report, quality)

        sections = {s.name: s for s in (sanity, derived, business, cross, quality)}
        section_scores = {name: s.score for name, s in sections.items()}
        section_scores["data_quality"] = min(section_scores["data_quality"], completeness)
        score = sum(SECTION_WEIGHTS[name] * section_scores[name] for name in SECTION_WEIGHTS)

        issues = [i for s in sections.values() for i in s.issues]
        issues.sort(key=lambda i: _SEVERITY_ORDER[i.severity])
        logger.debug(
            "CandidateAuditor: score=%.3f issues=%d (blocking=%d)",
            score,
            len(issues),
            sum(1 for i in issues if i.is_blocking),
        )
        return AuditReport(
            issues=tuple(issues),
            score=score,
            section_scores=MappingProxyType(section_scores),
            computed=MappingProxyType(computed),
        )

    # -- 1. numeric sanity ---------------------------------------------------

    @staticmethod
    def _check_sanity(report: CommercialReport, s: _Section) -> None:
        crit = Severity.CRITICAL
        if report.pipeline_density is not None:
            s.check(
                0.0 <= report.pipeline_density <= 100.0,
                crit,
                f"pipeline_density out of 0-100 range: {report.pipeline_density}",
                fix="Report pipeline density as a percentage of total assets",
            )

        peak, current = report.peak_revenue_2030, report.current_market
        if peak is not None and current is not None and peak > 0 and current > 0:
            gap = abs(math.log10(peak) - math.log10(current))
            s.check(
                gap <= MAX_MAGNITUDE_GAP,
                crit,
                f"Peak revenue differs by >{MAX_MAGNITUDE_GAP:g} orders of magnitude "
                f"from current market: {peak} vs {current}",
                impact="Impossible magnitude; projection is not credible",
                fix="Re-derive current market and peak revenue in the same unit (USD)",
            )

        for name in ("current_market", "peak_revenue_2030", "avg_price", "total_assets"):
            value = getattr(report, name)
            if value is not None:
                s.check(value >= 0, crit, f"{name} cannot be negative: {value}")
        for name in ("current_market", "avg_price", "total_assets"):
            value = getattr(report, name)
            if value is not None:
                s.check(value != 0, crit, f"{name} cannot be zero")

        if report.persistence_rate is not None:
            s.check(
                0.0 <= report.persistence_rate <= 1.0,
                crit,
                f"persistence_rate must be between 0 and 1: {report.persistence_rate}",
            )
        if report.years_to_peak is not None:
            s.check(
                0.0 < report.years_to_peak <= MAX_YEARS_TO_PEAK,
                crit,
                f"years_to_peak must be in (0, {MAX_YEARS_TO_PEAK:g}]: {report.years_to_peak}",
            )
        if report.vector_a is not None and report.vector_b is not None:
            s.check(
                len(report.vector_a) == len(report.vector_b),
                crit,
                f"Strategic-fit vector lengths must match: "
                f"{len(report.vector_a)} vs {len(report.vector_b)}",
            )
            s.check(len(report.vector_a) > 0, crit, "Strategic-fit vectors cannot be empty")

    # -- 2. derived figures --------------------------------------------------

    @staticmethod
    def _check_derived(report: CommercialReport, s: _Section) -> dict[str, float]:
        computed: dict[str, float] = {}
        crit = Severity.CRITICAL

        def _oracle(name: str, fn, *args: float | list[float]) -> float | None:
            try:
                value = fn(*args)
            except (CalculationError, ArithmeticError) as exc:
                s.check(
                    False,
                    crit,
                    f"Cannot derive {name} from reported inputs: {exc}",
                    impact="Base figures are invalid; derived figure is unsupported",
                    fix="Correct the base figures the derived value depends on",
                )
                return None
            computed[name] = value
            return value

        if None not in (report.peak_revenue_2030, report.current_market, report.years_to_peak):
            value = _oracle(
                "cagr", calculator.cagr,
                report.peak_revenue_2030, report.current_market, report.years_to_peak,
            )
            if value is not None and report.cagr is not None:
                s.check(
                    abs(report.cagr - value) <= CAGR_TOLERANCE,
                    crit,
                    f"Reported CAGR {report.cagr:.4f} contradicts computed {value:.4f}",
                    fix=f"Use CAGR = {value:.4f}",
                    evidence=(f"computed_cagr={value:.6f}",),
                )

        if None not in (report.peak_revenue_2030, report.avg_price, report.persistence_rate):
            value = _oracle(
                "peak_patients_2030", calculator.peak_patients,
                report.peak_revenue_2030, report.avg_price, report.persistence_rate,
            )
            if value is not None and report.peak_patients_2030 is not None:
                denom = max(abs(value), 1.0)
                s.check(
                    abs(report.peak_patients_2030 - value) / denom <= PEAK_PATIENTS_REL_TOLERANCE,
                    crit,
                    f"Reported peak patients {report.peak_patients_2030:.0f} contradicts "
                    f"computed {value:.0f}",
                    fix=f"Use peak patients = {value:.0f}",
                    evidence=(f"computed_peak_patients={value:.2f}",),
                )

        if None not in (report.same_target_assets, report.total_assets):
            value = _oracle(
                "pipeline_density", calculator.pipeline_density,
                report.same_target_assets, report.total_assets,
            )
            if value is not None and report.pipeline_density is not None:
                s.check(
                    abs(report.pipeline_density - value) <= PIPELINE_DENSITY_TOLERANCE,
                    crit,
                    f"Reported pipeline density {report.pipeline_density:.2f} contradicts "
                    f"computed {value:.2f}",
                    fix=f"Use pipeline density = {value:.2f}",
                    evidence=(f"computed_pipeline_density={value:.4f}",),
                )

        if report.vector_a is not None and report.vector_b is not None:
            value = _oracle(
                "strategic_fit", calculator.strategic_fit, report.vector_a, report.vector_b
            )
            if value is not None and report.strategic_fit is not None:
                s.check(
                    abs(report.strategic_fit - value) <= STRATEGIC_FIT_TOLERANCE,
                    crit,
                    f"Reported strategic fit {report.strategic_fit:.3f} contradicts "
                    f"computed {value:.3f}",
                    fix=f"Use strategic fit = {value:.3f}",
                    evidence=(f"computed_strategic_fit={value:.6f}",),
                )
        return computed

    # -- 3. business logic ---------------------------------------------------

    @staticmethod
    def _check_business(
        report: CommercialReport,
        context: ResearchContext | None,
        s: _Section,
    ) -> None:
        patients = report.peak_patients_2030
        if patients is None and report.financial_forecast is not None:
            count = report.financial_forecast.peak_patients_count
            patients = count.value if count is not None else None
        if patients is None:
            return

        is_rare = patients < RARE_DISEASE_PATIENT_LIMIT
        incentives = report.reg_incentives
        if incentives is not None and incentives.rare_disease is not None:
            s.check(
                incentives.rare_disease.value == is_rare,
                Severity.CRITICAL,
                f"Rare disease logic error: {patients:.0f} patients but rare-disease "
                f"eligibility is {incentives.rare_disease.value}",
                fix=f"Rare-disease eligibility must be {is_rare} "
                    f"(threshold {RARE_DISEASE_PATIENT_LIMIT:,} patients)",
            )
        if incentives is not None and incentives.prv_eligibility is not None:
            s.check(
                incentives.prv_eligibility.value == is_rare,
                Severity.CRITICAL,
                f"PRV logic error: {patients:.0f} patients but PRV eligibility is "
                f"{incentives.prv_eligibility.value}",
                fix="PRV eligibility must follow the rare-disease status",
            )

        indication = context.indication.lower() if context is not None else ""
        if "rare" in indication or "orphan" in indication:
            s.check(
                is_rare,
                Severity.CRITICAL,
                f"Patient count {patients:.0f} exceeds the rare disease threshold "
                f"for a rare indication",
            )
        elif "cancer" in indication or "oncology" in indication:
            s.check(
                patients <= 500_000,
                Severity.MEDIUM,
                f"Patient count {patients:.0f} seems high for an oncology indication",
            )
            if report.avg_price is not None:
                s.check(
                    report.avg_price >= 50_000,
                    Severity.LOW,
                    f"Pricing {report.avg_price:.0f} seems low for an oncology indication",
                )

    # -- 4. cross-field ------------------------------------------------------

    @staticmethod
    def _check_cross_field(
        report: CommercialReport,
        context: ResearchContext | None,
        s: _Section,
    ) -> None:
        assumptions = report.key_market_assumptions
        if assumptions is not None and assumptions.geographic_split is not None:
            total = assumptions.geographic_split.total
            s.check(
                math.isclose(total, 1.0, abs_tol=0.001) or math.isclose(total, 100.0, abs_tol=0.1),
                Severity.CRITICAL,
                f"Geographic split does not sum to 100%: {total}",
                fix="Make the regional split add up to 100%",
            )

        forecast = report.financial_forecast
        total_revenue = (
            forecast.total_ten_year_revenue_usd
            if forecast is not None
            else None
        )
        peak = report.peak_revenue_2030
        if total_revenue is not None and peak:
            ratio = total_revenue.value / peak
            s.check(
                ratio >= 3.0,
                Severity.CRITICAL,
                f"Ten-year revenue is only {ratio:.1f}x peak revenue (expected 5-8x)",
            )
            s.check(
                ratio <= 12.0,
                Severity.MEDIUM,
                f"Ten-year revenue is {ratio:.1f}x peak revenue; verify the forecast",
            )

        profile = PHASE_PROFILES.get(context.phase_key) if context is not None else None
        if profile is not None:
            if peak is not None:
                limit = profile.revenue_limit * 1e9
                s.check(
                    peak <= limit,
                    Severity.MEDIUM,
                    f"Peak revenue {peak:.3g} exceeds the plausible {limit:.3g} "
                    f"for phase '{context.phase}'",
                )
            share = forecast.peak_market_share_percent if forecast is not None else None
            if share is not None:
                s.check(
                    share.value <= profile.share_limit,
                    Severity.MEDIUM,
                    f"Peak market share {share.value:g}% exceeds the plausible "
                    f"{profile.share_limit:g}% for phase '{context.phase}'",
                )

    # -- 5. data completeness ------------------------------------------------

    @staticmethod
    def _check_completeness(report: CommercialReport, s: _Section) -> float:
        missing_core = report.missing_fields(CORE_FIELDS)
        missing_derived = report.missing_fields(DERIVED_FIELDS)
        missing_evidence = report.missing_fields(EVIDENCE_FIELDS)
        has_sources = bool(report.all_sources())

        s.check(
            not missing_core,
            Severity.HIGH,
            f"Missing core market figures: {', '.join(missing_core)}",
            fix="Provide every base market figure with a source",
        )
        s.check(
            not missing_derived,
            Severity.MEDIUM,
            f"Missing derived figures: {', '.join(missing_derived)}",
        )
        s.check(
            has_sources,
            Severity.HIGH,
            "Report cites no sources",
            impact="No claim can be verified",
            fix="Cite a primary source for each figure",
        )

        core = 1 - len(missing_core) / len(CORE_FIELDS)
        derived = 1 - len(missing_derived) / len(DERIVED_FIELDS)
        evidence_parts = len(EVIDENCE_FIELDS) + 1
        evidence = (evidence_parts - len(missing_evidence) - (0 if has_sources else 1)) / evidence_parts
        return 0.5 * core + 0.3 * derived + 0.2 * evidence
