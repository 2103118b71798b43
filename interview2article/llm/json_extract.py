"""Tolerant JSON extraction from free-form model output.

Models asked for JSON often wrap it in prose or a fenced code block. The
extraction order is fixed:

1. interior of a ```json fenced block
2. greedy outermost {...} span across the whole text
3. greedy outermost [...] span across the whole text

When nothing parses the result is an unparsed extraction carrying the raw
text. extract_json() never raises; callers decide on a fallback object.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```json\s*(.*?)```", re.DOTALL | re.IGNORECASE)
OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)
ARRAY_PATTERN = re.compile(r"\[.*\]", re.DOTALL)

ExtractionStrategy = Literal["fenced", "object", "array"]


@dataclass(frozen=True)
class JsonExtraction:
    """Outcome of a tolerant JSON extraction.

    `strategy` is None for the unparsed (degraded) case, in which `value` is
    None and `raw` holds the original text.
    """

    raw: str
    value: Any = None
    strategy: Optional[ExtractionStrategy] = None

    @property
    def parsed(self) -> bool:
        return self.strategy is not None

    def as_object(self) -> Optional[dict[str, Any]]:
        """Return the value if it is a JSON object, else None."""
        if self.parsed and isinstance(self.value, dict):
            return self.value
        return None

    def as_array(self) -> Optional[list[Any]]:
        """Return the value if it is a JSON array, else None."""
        if self.parsed and isinstance(self.value, list):
            return self.value
        return None


def _try_parse(candidate: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return False, None


def extract_json(text: Optional[str]) -> JsonExtraction:
    """Extract a JSON value from model text.

    Args:
        text: Raw model output, possibly None or empty.

    Returns:
        A parsed JsonExtraction, or an unparsed one carrying the raw text.
    """
    raw = text or ""

    fenced = FENCED_JSON_PATTERN.search(raw)
    if fenced:
        ok, value = _try_parse(fenced.group(1).strip())
        if ok:
            return JsonExtraction(raw=raw, value=value, strategy="fenced")

    match = OBJECT_PATTERN.search(raw)
    if match:
        ok, value = _try_parse(match.group(0))
        if ok:
            return JsonExtraction(raw=raw, value=value, strategy="object")

    match = ARRAY_PATTERN.search(raw)
    if match:
        ok, value = _try_parse(match.group(0))
        if ok:
            return JsonExtraction(raw=raw, value=value, strategy="array")

    logger.debug("No parseable JSON in model output (%d chars)", len(raw))
    return JsonExtraction(raw=raw)
