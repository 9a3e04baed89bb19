"""The single deserialization boundary for generated candidates.

``parse_candidate`` turns whatever the generation capability returned into
a ``CommercialReport`` or raises ``CandidateParseError``.  Recovery from a
parse failure always ends in the same place: the quality assessor's
default assessment.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from pharma_assurance.domain.candidate import CommercialReport
from pharma_assurance.domain.exceptions import CandidateParseError

logger = logging.getLogger(__name__)

_EXCERPT_CHARS = 200


def parse_candidate(raw: Any) -> CommercialReport:
    """Interpret *raw* as a ``CommercialReport``.

    Parameters
    ----------
    raw:
        A ``CommercialReport``, another pydantic model, a mapping, or text.
        Text is read as JSON; failing that, the first balanced ``{...}``
        block inside it that decodes (e.g. in a fenced code block) is read.

    Returns
    -------
    CommercialReport

    Raises
    ------
    CandidateParseError
        If no JSON object can be recovered or it fails schema validation.
    """
    if isinstance(raw, CommercialReport):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True)
    if isinstance(raw, (str, bytes)):
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        raw = _load_json_object(text)
    if not isinstance(raw, Mapping):
        raise CandidateParseError(
            f"Expected a JSON object, got {type(raw).__name__}",
            raw_excerpt=str(raw)[:_EXCERPT_CHARS],
        )
    try:
        return CommercialReport.model_validate(dict(raw))
    except ValidationError as exc:
        raise CandidateParseError(
            f"Candidate failed schema validation: {exc.error_count()} error(s)",
            raw_excerpt=json.dumps(dict(raw), default=str)[:_EXCERPT_CHARS],
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def _load_json_object(text: str) -> Any:
    stripped = text.strip()
    if not stripped:
        raise CandidateParseError("Candidate is empty")
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("parse_candidate: direct JSON parse failed, extracting object")

    block = extract_json_block(stripped)
    if block is None:
        raise CandidateParseError(
            "No well-formed JSON object found in candidate text",
            raw_excerpt=stripped[:_EXCERPT_CHARS],
        )
    return json.loads(block)


def extract_json_block(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of *text* that is valid JSON.

    Balanced blocks that fail to decode are skipped, so prose such as
    ``{draft}`` ahead of the real object does not hide it.  Returns ``None``
    if no block decodes.
    """
    for block in _balanced_blocks(text):
        try:
            json.loads(block)
        except json.JSONDecodeError:
            logger.debug("extract_json_block: skipping malformed block at %r", block[:40])
            continue
        return block
    return None


def _balanced_blocks(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` substring, ignoring braces in strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            ch = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    yield text[start:idx + 1]
                    break
        start = text.find("{", start + 1)
