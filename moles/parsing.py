"""Extraction of JSON verdicts from free-text model output.

Models wrap JSON in Markdown fences or chatty preambles no matter how firmly
the prompt asks them not to. ``extract_json_object`` is a pure function that
finds the first brace-delimited object and decodes it; each caller decides
what a failure means (fatal for the planner, safe default for the reflector).
"""

import json
import re
from typing import Any, Dict, Optional

from moles.errors import ResponseParseError

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_OBJECT = re.compile(r"\{[\s\S]*\}")


def strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN.sub("", text)
        text = _FENCE_CLOSE.sub("", text)
    return text.strip()


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Return the first JSON object found in ``text``.

    The widest ``{...}`` span is tried first so nested objects survive;
    when trailing prose contains stray braces, decoding restarts at the
    first ``{`` and stops at the end of the first complete object.

    Raises:
        ResponseParseError: empty text, no object, or undecodable object.
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty response")

    cleaned = strip_fences(text)
    match = _OBJECT.search(cleaned)
    if not match:
        raise ResponseParseError("No JSON object found in response")

    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError:
        try:
            value, _ = json.JSONDecoder().raw_decode(cleaned, match.start())
        except json.JSONDecodeError as exc:
            raise ResponseParseError(f"Malformed JSON in response: {exc}") from exc

    if not isinstance(value, dict):
        raise ResponseParseError("Response JSON is not an object")
    return value
