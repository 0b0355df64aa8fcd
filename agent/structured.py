"""
agent/structured.py — Parsing JSON out of model text, as a tagged result.

Models asked for "ONLY valid JSON" still wrap it in ```json fences, add
a sentence before it, or return nothing useful at all. Malformed output
is expected, not exceptional, so parsing never raises. It returns:

  Parsed(value)     — a JSON object was recovered
  Fallback(reason)  — it wasn't, and why

Each caller decides what a Fallback means for it (the Planner forces a
first search, intent inference derives an intent from the page title).
There is no generic "catch everything" around the parse.

USAGE:
  result = parse_json_object(text)
  if isinstance(result, Parsed):
      data = result.value
  else:
      log(result.reason)
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T


@dataclass(frozen=True)
class Fallback:
    reason: str


StructuredResult = Union[Parsed[T], Fallback]


_FENCE_OPEN = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```\s*$")


def parse_json_object(text: str) -> "StructuredResult[dict[str, Any]]":
    """
    Recover one JSON object from model output.

    Tries the fence-stripped text as-is, then the outermost {...} span.
    """
    if not text or not text.strip():
        return Fallback("empty response")

    cleaned = _FENCE_OPEN.sub("", text).strip()
    cleaned = _FENCE_CLOSE.sub("", cleaned).strip()

    candidates = [cleaned]
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if 0 <= start < end:
        candidates.append(cleaned[start:end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return Parsed(data)
        return Fallback(f"expected a JSON object, got {type(data).__name__}")

    return Fallback("invalid JSON")


def coerce_bool(value: Any) -> bool | None:
    """Accept true/false and their common string spellings; None otherwise."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None
