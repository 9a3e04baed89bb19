"""Deterministic calculator for derived commercial figures.

Pure, stateless functions.  They are used directly to compute derived
figures and, inside validation, as oracles that check a candidate's
reported derived figures against its reported base figures.

Invalid input always raises ``CalculationError``; nothing is clamped or
coerced, since bad input signals an upstream data defect.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from pharma_assurance.domain.exceptions import CalculationError


def cagr(peak: float, current: float, years: float) -> float:
    """Compound annual growth rate from *current* to *peak* over *years*.

    Returns a fraction (``0.3195`` for 31.95%).

    Raises
    ------
    CalculationError
        If ``current <= 0``, ``years <= 0`` or ``peak < 0``.
    """
    inputs = {"peak": peak, "current": current, "years": years}
    if current <= 0 or years <= 0:
        raise CalculationError("current and years must be positive", function="cagr", inputs=inputs)
    if peak < 0:
        raise CalculationError("peak must not be negative", function="cagr", inputs=inputs)
    try:
        return float((peak / current) ** (1.0 / years) - 1.0)
    except OverflowError as exc:
        raise CalculationError(
            "growth rate overflows a float", function="cagr", inputs=inputs
        ) from exc


def peak_patients(peak_revenue: float, avg_price: float, persistence_rate: float) -> float:
    """Patients implied by *peak_revenue* at *avg_price* and *persistence_rate*.

    Raises
    ------
    CalculationError
        If ``avg_price <= 0`` or ``persistence_rate`` is outside ``[0, 1]``.
    """
    inputs = {
        "peak_revenue": peak_revenue,
        "avg_price": avg_price,
        "persistence_rate": persistence_rate,
    }
    if avg_price <= 0:
        raise CalculationError("avg_price must be positive", function="peak_patients", inputs=inputs)
    if not (0.0 <= persistence_rate <= 1.0):
        raise CalculationError(
            "persistence_rate must be in [0, 1]", function="peak_patients", inputs=inputs
        )
    return (peak_revenue / avg_price) * persistence_rate


def pipeline_density(same_target_assets: float, total_assets: float) -> float:
    """Share of *total_assets* aimed at the same target, in percent.

    Raises
    ------
    CalculationError
        If ``total_assets <= 0`` or ``same_target_assets < 0``.
    """
    inputs = {"same_target_assets": same_target_assets, "total_assets": total_assets}
    if total_assets <= 0:
        raise CalculationError(
            "total_assets must be positive", function="pipeline_density", inputs=inputs
        )
    if same_target_assets < 0:
        raise CalculationError(
            "same_target_assets must not be negative", function="pipeline_density", inputs=inputs
        )
    return (same_target_assets / total_assets) * 100.0


def strategic_fit(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """Cosine similarity of two strategic-fit vectors.

    A zero-magnitude vector yields ``0.0`` rather than an error.

    Raises
    ------
    CalculationError
        If the vectors differ in length or are empty.
    """
    a = np.asarray(vector_a, dtype=float)
    b = np.asarray(vector_b, dtype=float)
    if a.shape != b.shape:
        raise CalculationError(
            f"vector lengths differ: {a.size} vs {b.size}",
            function="strategic_fit",
            inputs={"len_a": a.size, "len_b": b.size},
        )
    if a.size == 0:
        raise CalculationError("vectors must not be empty", function="strategic_fit")
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))
