"""Domain exceptions for the pharma-assurance engine.

All domain-specific exceptions inherit from ``PharmaAssuranceError`` so
callers can catch the full family with a single ``except`` clause when needed.
"""

from __future__ import annotations

from typing import Any


class PharmaAssuranceError(Exception):
    """Base exception for all pharma-assurance errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class ConfigurationError(PharmaAssuranceError, ValueError):
    """Raised when configuration is invalid or a required capability is missing.

    Always fatal: surfaced immediately, never retried.
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        setting: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.setting = setting


class CandidateParseError(PharmaAssuranceError):
    """Raised when generated content cannot be read as a commercial report."""

    def __init__(
        self,
        message: str = "Candidate could not be parsed",
        raw_excerpt: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.raw_excerpt = raw_excerpt


class GenerationError(PharmaAssuranceError):
    """Raised when the generation capability fails or times out."""

    def __init__(
        self,
        message: str = "Generation failed",
        attempt: int = 0,
        generator: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.attempt = attempt
        self.generator = generator


class ScoringError(PharmaAssuranceError):
    """Raised when the scoring capability fails or returns unusable output."""

    def __init__(
        self,
        message: str = "Scoring failed",
        scorer: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.scorer = scorer


class ValidationLayerError(PharmaAssuranceError):
    """Raised by a validation backend when one layer call fails."""

    def __init__(
        self,
        message: str = "Validation layer failed",
        layer: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.layer = layer


class CalculationError(PharmaAssuranceError, ValueError):
    """Raised when a deterministic calculation receives invalid input.

    Never coerced: invalid input indicates an upstream data defect.
    """

    def __init__(
        self,
        message: str = "Invalid calculation input",
        function: str = "",
        inputs: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.function = function
        self.inputs: dict[str, Any] = inputs or {}
