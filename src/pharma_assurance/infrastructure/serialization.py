"""Serialization utilities for the pharma-assurance engine.

Converts the engine's value objects (parameters, assessments, attempt
summaries, run results) into JSON-ready dicts.  Every ``*_to_dict`` output is
JSON-serializable: enums become their values, mapping proxies become dicts,
tuples become lists.

``canonical_json`` produces the stable encoding used for cache keys.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from pharma_assurance.domain.values import (
    AttemptSummary,
    QualityAssessment,
    ResearchParameters,
)

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Generic helpers                                                             #
# =========================================================================== #

def to_plain(obj: Any) -> Any:
    """Recursively convert *obj* into JSON-compatible builtins."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", exclude_none=True)
    if is_dataclass(obj) and not isinstance(obj, type):
        to_dict = getattr(obj, "to_dict", None)
        if callable(to_dict):
            return to_plain(to_dict())
        return {f.name: to_plain(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {str(to_plain(k)): to_plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_plain(v) for v in obj]
    return obj


def canonical_json(obj: Any) -> str:
    """Stable JSON encoding (sorted keys, no whitespace) of *obj*."""
    return json.dumps(to_plain(obj), sort_keys=True, separators=(",", ":"), default=str)


# =========================================================================== #
#  Value objects                                                               #
# =========================================================================== #

def parameters_to_dict(params: ResearchParameters) -> dict[str, Any]:
    data = to_plain({f.name: getattr(params, f.name) for f in fields(params)})
    data["field_thresholds"] = {
        name: {
            "min_score": t.min_score,
            "regenerate_on_failure": t.regenerate_on_failure,
            "strictness": t.strictness.value,
        }
        for name, t in params.field_thresholds.items()
    }
    return data


def assessment_to_dict(assessment: QualityAssessment) -> dict[str, Any]:
    return {
        "overall_score": assessment.overall_score,
        "category_scores": {
            cat.value: {
                "score": entry.score,
                "confidence": entry.confidence,
                "reasoning": entry.reasoning,
                "evidence": list(entry.evidence),
                "issues": list(entry.issues),
            }
            for cat, entry in assessment.category_scores.items()
        },
        "critical_issues": [to_plain(issue) for issue in assessment.critical_issues],
        "source_validation": to_plain(assessment.source_validation),
        "confidence": assessment.confidence,
        "retry_recommended": assessment.retry_recommended,
        "retry_priority": assessment.retry_priority.value,
        "corrective_instructions": assessment.corrective_instructions,
        "improvement_potential": assessment.improvement_potential,
        "attempt": assessment.attempt,
        "scoring_failed": assessment.scoring_failed,
    }


def attempt_summary_to_dict(summary: AttemptSummary) -> dict[str, Any]:
    return to_plain(summary)


def to_json(obj: Any, *, indent: int | None = 2) -> str:
    """Serialize any supported object to a JSON string."""
    if isinstance(obj, ResearchParameters):
        data: Any = parameters_to_dict(obj)
    elif isinstance(obj, QualityAssessment):
        data = assessment_to_dict(obj)
    else:
        data = to_plain(obj)
    return json.dumps(data, indent=indent, default=str)
