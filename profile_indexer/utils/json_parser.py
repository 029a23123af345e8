import json
import re
from typing import Any, Dict, List, Union, Optional

from profile_indexer.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"^```(?:json|JSON)?\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` fence and a trailing ``` fence."""
    if not text:
        return ""
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from model output, handling common LLM formatting issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Leading/trailing prose around a single object
    - Trailing garbage after the first complete value

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON value or None if parsing fails
    """
    if not text:
        return None

    cleaned_text = strip_code_fences(text)

    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        LOGGER.warning(f"Initial JSON parse failed: {e}, attempting repairs...")

    # First complete value starting at the first brace or bracket
    decoder = json.JSONDecoder()
    starts = [idx for idx in (cleaned_text.find("{"), cleaned_text.find("[")) if idx != -1]
    if starts:
        try:
            value, _ = decoder.raw_decode(cleaned_text, min(starts))
            return value
        except json.JSONDecodeError:
            pass

    # Greedy object match, e.g. prose on both sides of a multi-line object
    match = re.search(r"\{[\s\S]*\}", cleaned_text)
    if match:
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            pass

    LOGGER.error("Failed to parse JSON from model output", extra={"preview": cleaned_text[:200]})
    return None


def parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Like parse_json_safely, but only accepts a JSON object."""
    parsed = parse_json_safely(text)
    if isinstance(parsed, dict):
        return parsed
    return None
