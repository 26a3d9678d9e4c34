"""Parse and validate raw backend output into a TranslationResult."""

import json
import re
from typing import Any

from kubesafe.errors import TranslationMalformed
from kubesafe.kubectl.types import TOOL_PREFIX, TranslationResult

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _strip_fences(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


def _extract_object(text: str) -> str:
    """Take the outermost {...} span, tolerating prose around it."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise TranslationMalformed("Response contains no JSON object", raw=text)
    return text[start:end + 1]


def _coerce_confidence(value: Any, raw: str) -> int:
    # bool is an int subclass
    if isinstance(value, bool):
        raise TranslationMalformed("Confidence must be a number", raw=raw)
    if isinstance(value, float):
        if not value.is_integer():
            raise TranslationMalformed(f"Confidence must be an integer, got {value}", raw=raw)
        value = int(value)
    if not isinstance(value, int):
        raise TranslationMalformed("Confidence must be a number", raw=raw)
    if not 0 <= value <= 100:
        raise TranslationMalformed(f"Confidence {value} is outside 0-100", raw=raw)
    return value


def parse_translation(raw: str) -> TranslationResult:
    """
    Turn backend text into a validated TranslationResult.

    Accepts bare JSON, JSON wrapped in a markdown code fence, or JSON with
    surrounding prose. "reasoning" is accepted in place of "rationale".

    Raises:
        TranslationMalformed: On any structural or semantic violation. The
            rationale (when present) or the raw text is attached for display.
    """
    text = _strip_fences(raw or "")
    if not text:
        raise TranslationMalformed("Empty response from translation backend", raw=raw or "")

    try:
        data = json.loads(_extract_object(text))
    except json.JSONDecodeError as e:
        raise TranslationMalformed(f"Response is not valid JSON: {e.msg}", raw=text) from e

    if not isinstance(data, dict):
        raise TranslationMalformed("Response is not a JSON object", raw=text)

    rationale = data.get("rationale", data.get("reasoning", ""))
    if rationale is None:
        rationale = ""
    if not isinstance(rationale, str):
        raise TranslationMalformed("Rationale must be a string", raw=text)
    shown = rationale or text

    command = data.get("command")
    if not isinstance(command, str):
        raise TranslationMalformed("Response has no command", raw=shown)
    command = command.strip()
    if not command:
        raise TranslationMalformed("Response has an empty command", raw=shown)
    if not command.startswith(TOOL_PREFIX):
        raise TranslationMalformed(
            f"Command must start with '{TOOL_PREFIX.strip()}': {command}", raw=shown
        )

    if "confidence" not in data:
        raise TranslationMalformed("Response has no confidence", raw=shown)
    confidence = _coerce_confidence(data["confidence"], shown)

    return TranslationResult(command=command, confidence=confidence, rationale=rationale.strip())
