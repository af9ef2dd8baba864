"""LLM response parser utility.

Every agent uses this to turn a raw LLM string into a validated Pydantic
model. Handles the common failure modes:
- JSON wrapped in markdown code blocks (```json ... ```)
- Commentary before or after the JSON object
- Probability fields outside [0.0, 1.0] (e.g. confidence_score = 1.05)
"""

import json
import re

from pydantic import BaseModel

# Fields that are probabilities by contract. confidence_adjustment is a signed
# delta and is deliberately absent.
_PROBABILITY_FIELDS = {
    "confidence",
    "confidence_score",
    "likelihood",
    "urgency_score",
    "resolution_confidence",
    "score",
}


class LLMParseError(Exception):
    """Raised when an LLM response cannot be parsed into the expected schema.

    Includes the raw response so callers can log it for debugging without
    having to catch and re-wrap the original exception themselves.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


def parse_llm_json(response: str, schema: type[BaseModel]) -> BaseModel:
    """Parse an LLM response string into a validated Pydantic model.

    Tries three extraction strategies in order, stopping at the first that
    produces valid JSON:
        1. Strip markdown code fences and parse the remainder directly.
        2. Extract the first {...} block via regex (handles leading commentary).
        3. Fail with LLMParseError including the raw response.

    Probability values (confidence_score, likelihood, urgency_score, ...) are
    clamped to [0.0, 1.0] anywhere in the payload before validation so LLM
    rounding errors don't crash the run.

    Args:
        response: Raw string returned by LLMClient.complete().
        schema:   Pydantic model class to validate against.

    Returns:
        A validated instance of schema.

    Raises:
        LLMParseError: If the response is empty, cannot be parsed, or does
            not match the schema. The .raw attribute contains the original
            response.
    """
    if not response or not response.strip():
        raise LLMParseError(
            f"Empty LLM response for schema {schema.__name__}",
            raw=response or "",
        )

    cleaned = _strip_code_fences(response)

    data = _try_parse(cleaned)
    if data is None:
        data = _extract_json_object(cleaned)
    if data is None:
        raise LLMParseError(
            f"No valid JSON found in LLM response for schema {schema.__name__}",
            raw=response,
        )

    _clamp_probabilities(data)

    try:
        return schema.model_validate(data)
    except Exception as exc:
        raise LLMParseError(
            f"LLM response does not match schema {schema.__name__}: {exc}",
            raw=response,
        ) from exc


# ── Private helpers ────────────────────────────────────────────────────────────

def _strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` wrappers."""
    text = re.sub(r"```(?:json)?\s*", "", text)
    text = re.sub(r"```", "", text)
    return text.strip()


def _try_parse(text: str) -> dict | None:
    """Attempt a direct json.loads(); return None on failure."""
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else None
    except json.JSONDecodeError:
        return None


def _extract_json_object(text: str) -> dict | None:
    """Find the first {...} block in text and parse it."""
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    return _try_parse(match.group(0))


def _clamp_probabilities(data) -> None:
    """Clamp probability fields to [0.0, 1.0], recursing into lists and dicts."""
    if isinstance(data, list):
        for item in data:
            _clamp_probabilities(item)
        return
    if not isinstance(data, dict):
        return

    for key, value in data.items():
        if key in _PROBABILITY_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
            data[key] = max(0.0, min(1.0, float(value)))
        elif isinstance(value, (dict, list)):
            _clamp_probabilities(value)
