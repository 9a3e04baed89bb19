"""Public testing utilities for pharma-assurance.

Mock chat models and scripted capabilities for self-contained tests and
demos that need no API keys.
"""

from pharma_assurance.testing.fakes import (
    ScriptedGenerator,
    ScriptedScorer,
    ScriptedValidationBackend,
    make_score_sheet,
)
from pharma_assurance.testing.mock_llm import MockStructuredChatModel

__all__ = [
    "MockStructuredChatModel",
    "ScriptedGenerator",
    "ScriptedScorer",
    "ScriptedValidationBackend",
    "make_score_sheet",
]
