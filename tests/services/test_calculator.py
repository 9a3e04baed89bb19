"""Tests for the deterministic calculator."""

from __future__ import annotations

import pytest

from pharma_assurance.domain.exceptions import CalculationError
from pharma_assurance.services import calculator


class TestCagr:
    def test_known_value(self) -> None:
        assert calculator.cagr(2_000_000_000, 500_000_000, 5) == pytest.approx(0.3195, abs=1e-4)

    def test_flat_growth(self) -> None:
        assert calculator.cagr(1e9, 1e9, 3) == pytest.approx(0.0)

    def test_decline_is_negative(self) -> None:
        assert calculator.cagr(5e8, 1e9, 2) < 0

    def test_zero_current_raises(self) -> None:
        with pytest.raises(CalculationError) as exc_info:
            calculator.cagr(1e9, 0, 5)
        assert exc_info.value.function == "cagr"
        assert exc_info.value.inputs["current"] == 0

    def test_zero_years_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.cagr(1e9, 1e8, 0)

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            calculator.cagr(1e9, -1, 5)

    def test_negative_peak_raises(self) -> None:
        with pytest.raises(CalculationError, match="peak must not be negative") as exc_info:
            calculator.cagr(-1e9, 5e8, 5)
        assert exc_info.value.inputs["peak"] == -1e9

    def test_zero_peak_is_total_decline(self) -> None:
        assert calculator.cagr(0, 5e8, 5) == pytest.approx(-1.0)

    def test_overflow_raises(self) -> None:
        with pytest.raises(CalculationError, match="overflows"):
            calculator.cagr(1e300, 1e-300, 0.001)


class TestPeakPatients:
    def test_known_value(self) -> None:
        assert calculator.peak_patients(1_800_000_000, 45_000, 0.75) == pytest.approx(30_000)

    def test_zero_price_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.peak_patients(1e9, 0, 0.5)

    def test_persistence_above_one_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.peak_patients(1e9, 10_000, 1.5)

    def test_persistence_bounds_inclusive(self) -> None:
        assert calculator.peak_patients(1e9, 10_000, 0.0) == 0.0
        assert calculator.peak_patients(1e9, 10_000, 1.0) == pytest.approx(100_000)


class TestPipelineDensity:
    def test_known_value(self) -> None:
        assert calculator.pipeline_density(3, 25) == pytest.approx(12.0)

    def test_zero_total_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.pipeline_density(3, 0)

    def test_negative_same_target_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.pipeline_density(-1, 10)


class TestStrategicFit:
    def test_identical(self) -> None:
        assert calculator.strategic_fit([1, 0], [1, 0]) == pytest.approx(1.0)

    def test_orthogonal(self) -> None:
        assert calculator.strategic_fit([1, 0], [0, 1]) == pytest.approx(0.0)

    def test_mismatched_lengths_raise(self) -> None:
        with pytest.raises(CalculationError, match="lengths differ"):
            calculator.strategic_fit([1, 0, 1], [1, 0])

    def test_zero_vector_returns_zero(self) -> None:
        assert calculator.strategic_fit([0, 0], [1, 1]) == 0.0

    def test_empty_raises(self) -> None:
        with pytest.raises(CalculationError):
            calculator.strategic_fit([], [])

    def test_returns_builtin_float(self) -> None:
        assert type(calculator.strategic_fit([1, 2], [2, 1])) is float
