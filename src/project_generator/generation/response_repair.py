"""Recovery of JSON payloads from raw LLM output.

LLMs often wrap JSON in markdown code blocks, surround it with prose, or stop
mid-object when they run out of tokens. The functions here narrow a response to
its JSON object and, when decoding still fails, make a bounded best-effort
structural repair. A repaired payload is only ever returned if it decodes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from .exceptions import MalformedResponseError

logger = logging.getLogger(__name__)

LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
TRAILING_FENCE = re.compile(r"\s*```$")
TRAILING_COMMA = re.compile(r",\s*$")
STRUCTURAL_CHAR = re.compile(r"[,\]}]")
STARTS_STRUCTURAL = re.compile(r"^\s*[,\]}]")

# Characters of head/tail excerpt kept in decode diagnostics
EXCERPT_LENGTH = 200

_CLOSERS = {"{": "}", "[": "]"}


def _strip_fences(text: str) -> str:
    """Strip whitespace and code fences until nothing changes."""
    previous = None
    cleaned = text
    while cleaned != previous:
        previous = cleaned
        cleaned = cleaned.strip()
        if cleaned.startswith("```"):
            cleaned = LEADING_FENCE.sub("", cleaned, count=1)
            cleaned = TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned


def clean_response(raw: str) -> str:
    """Remove code fences and prose around the JSON object in a response.

    Narrows the text to the span between the first "{" and the last "}".
    Applying this to its own output returns the output unchanged.

    Args:
        raw: Raw response text from an LLM.

    Returns:
        The cleaned text, which may still be invalid JSON.
    """
    cleaned = _strip_fences(raw)

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1 and start < end:
        cleaned = cleaned[start : end + 1]

    return cleaned


def _decodes(text: str) -> bool:
    try:
        json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return False
    return True


def _close_unterminated_string(text: str) -> str:
    """Close a string left open by truncation.

    Only acts when the quote count is odd and the last quote opens a string
    followed by non-structural content. The closing quote goes right before the
    next ",", "]" or "}", or at the end when there is none.
    """
    if text.count('"') % 2 == 0:
        return text

    last_quote = text.rfind('"')
    if text[:last_quote].count('"') % 2 != 0:
        return text

    after = text[last_quote + 1 :]
    if not after or STARTS_STRUCTURAL.match(after):
        return text

    match = STRUCTURAL_CHAR.search(after)
    if match is None:
        return text + '"'
    return text[: last_quote + 1] + after[: match.start()] + '"' + after[match.start() :]


def _closers_by_stack(text: str) -> str:
    """Closing sequence for unmatched openers, innermost first, ignoring strings."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(char)
        elif char in ("}", "]") and stack and _CLOSERS[stack[-1]] == char:
            stack.pop()

    closers = "".join(_CLOSERS[opener] for opener in reversed(stack))
    return ('"' if in_string else "") + closers


def _closers_by_count(text: str) -> str:
    """Missing brackets first, then missing braces, from raw character counts."""
    brackets = max(0, text.count("[") - text.count("]"))
    braces = max(0, text.count("{") - text.count("}"))
    return "]" * brackets + "}" * braces


def attempt_repair(text: str) -> str | None:
    """Attempt to repair truncated or malformed JSON.

    Steps:
    1. Close an unterminated trailing string.
    2. Drop a dangling trailing comma.
    3. Append the missing closing brackets and braces.

    Args:
        text: Cleaned response text that failed to decode.

    Returns:
        Repaired JSON text that decodes successfully, or None if the text
        could not be repaired.
    """
    if not isinstance(text, str):
        return None

    fixed = text.strip()
    if not fixed:
        return None

    fixed = _close_unterminated_string(fixed)
    fixed = TRAILING_COMMA.sub("", fixed)

    candidates = [fixed + _closers_by_stack(fixed), fixed + _closers_by_count(fixed)]
    for candidate in dict.fromkeys(candidates):
        if _decodes(candidate):
            return candidate

    return None


def _diagnostics(raw: str, cleaned: str, error: Exception) -> dict[str, Any]:
    return {
        "original_length": len(raw),
        "cleaned_length": len(cleaned),
        "error": str(error),
        "head": raw[:EXCERPT_LENGTH],
        "tail": raw[max(0, len(raw) - EXCERPT_LENGTH) :],
    }


def decode_response(raw: str) -> Any:
    """Decode the JSON payload of a raw LLM response.

    Cleans the response, decodes it and falls back to attempt_repair() when
    decoding fails.

    Args:
        raw: Raw response text from an LLM.

    Returns:
        The decoded JSON value.

    Raises:
        MalformedResponseError: If the payload is empty or cannot be decoded
            even after repair. Carries length and excerpt diagnostics.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise MalformedResponseError("Invalid AI response received: empty response")

    cleaned = clean_response(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        diagnostics = _diagnostics(raw, cleaned, e)
        logger.error("JSON parse error in AI response: %s", diagnostics)

        repaired = attempt_repair(cleaned)
        if repaired is None:
            raise MalformedResponseError(
                f"Failed to parse AI response as JSON: {e}. "
                f"Response length: {len(raw)} characters",
                diagnostics,
            ) from e

        logger.info("Successfully repaired JSON response (%d -> %d chars)", len(cleaned), len(repaired))
        return json.loads(repaired)
