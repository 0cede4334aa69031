"""Tolerant JSON parsing for model responses."""
import json
import re
from typing import Any, List

from ledgerflow.utils.logger import get_logger

logger = get_logger()


def _clean(text: str) -> str:
    cleaned = re.sub(r"```(?:json)?\s*|\s*```", "", text or "").strip()

    # Normalize smart quotes to standard double-quote
    cleaned = cleaned.replace("\u201c", '"').replace("\u201d", '"')

    # Remove trailing commas before closing brackets/braces
    return re.sub(r",\s*([\]}])", r"\1", cleaned)


def parse_json(text: str, expected: str = "object") -> Any:
    """
    Parse JSON out of a model response.

    Tries the whole cleaned text, then the outermost {...} and [...]
    substrings. With expected="array" a lone object is wrapped in a list.

    Returns:
        Parsed value, or {} / [] when nothing parses
    """
    cleaned = _clean(text)
    attempts: List[str] = [cleaned]

    first_brace, last_brace = cleaned.find("{"), cleaned.rfind("}")
    if first_brace != -1 and last_brace > first_brace:
        attempts.append(cleaned[first_brace:last_brace + 1])

    first_bracket, last_bracket = cleaned.find("["), cleaned.rfind("]")
    if first_bracket != -1 and last_bracket > first_bracket:
        attempts.append(cleaned[first_bracket:last_bracket + 1])

    for attempt in attempts:
        try:
            parsed = json.loads(attempt, strict=False)
        except json.JSONDecodeError:
            continue
        if expected == "array":
            return parsed if isinstance(parsed, list) else [parsed]
        return parsed

    logger.debug(f"Unparseable model response (first 100 chars): {(text or '')[:100]}")
    return [] if expected == "array" else {}
