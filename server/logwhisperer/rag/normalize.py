"""
Coerce raw model output into validated pydantic records.

Inference backends hand back many shapes: a bare string, an OpenAI-style
``choices`` payload, or an envelope with the real payload under ``response``,
``output`` or ``result``. The text inside may be fenced, wrapped in prose or
truncated. Every failure ends in a typed fallback, never an exception.
"""
import json
import logging
from typing import Any, Callable, Type, TypeVar

from pydantic import BaseModel

from logwhisperer.schemas.models import AnalysisResult, SuggestionEnvelope

log = logging.getLogger("normalize")

T = TypeVar("T", bound=BaseModel)

ENVELOPE_KEYS = ("response", "output", "result")

ANALYSIS_UNAVAILABLE = "Analysis service unavailable."


def analysis_fallback() -> AnalysisResult:
    return AnalysisResult(summary=ANALYSIS_UNAVAILABLE, anomalies=[], evidence={}, assumptions=[])


def suggestions_fallback() -> SuggestionEnvelope:
    return SuggestionEnvelope(suggested_commands=[])


def _choices_content(raw: dict) -> Any:
    choices = raw.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if isinstance(message, dict) and isinstance(message.get("content"), str):
        return message["content"]
    if isinstance(first.get("text"), str):
        return first["text"]
    return None


def unwrap_envelope(raw: Any) -> Any:
    """Peel one known envelope off ``raw``; anything unrecognised passes through."""
    if not isinstance(raw, dict):
        return raw
    content = _choices_content(raw)
    if content is not None:
        return content
    for key in ENVELOPE_KEYS:
        value = raw.get(key)
        if isinstance(value, (str, dict)):
            return value
    return raw


def strip_fence(text: str) -> str:
    t = text.strip()
    if not (t.startswith("```") and t.endswith("```") and len(t) >= 6):
        return t
    body = t[3:-3]
    # drop the language tag on the opening fence line
    first_line, sep, rest = body.partition("\n")
    if sep and (not first_line.strip() or first_line.strip().isalnum()):
        body = rest
    return body.strip()


def extract_object(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        raise ValueError("no JSON object found in model output")
    return text[start:end + 1]


def decode_payload(raw: Any) -> dict:
    payload = unwrap_envelope(raw)
    if isinstance(payload, dict):
        return payload
    if not isinstance(payload, str):
        raise TypeError(f"unsupported model output type: {type(payload).__name__}")

    t = strip_fence(payload)
    try:
        obj = json.loads(t)
    except ValueError:
        obj = json.loads(extract_object(t))
    if not isinstance(obj, dict):
        raise TypeError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def normalize(raw: Any, schema: Type[T], fallback: Callable[[], T]) -> T:
    try:
        return schema.model_validate(decode_payload(raw))
    except (ValueError, TypeError, RecursionError) as e:
        # pydantic.ValidationError and json.JSONDecodeError are both ValueErrors;
        # json.loads raises RecursionError on deeply nested arrays or objects
        log.warning("Model output rejected for %s (%s): %s", schema.__name__, type(e).__name__, _preview(raw))
        return fallback()


def normalize_analysis(raw: Any) -> AnalysisResult:
    return normalize(raw, AnalysisResult, analysis_fallback)


def normalize_suggestions(raw: Any) -> SuggestionEnvelope:
    return normalize(raw, SuggestionEnvelope, suggestions_fallback)


def _preview(raw: Any, n: int = 200) -> str:
    t = raw if isinstance(raw, str) else repr(raw)
    t = t.replace("\n", "\\n")
    return t[:n] + ("..." if len(t) > n else "")
