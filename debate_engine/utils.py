"""Utility functions for the debate engine."""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)


def repair_json(json_text: str) -> str:
    """Attempt to repair common JSON issues from small models."""
    repaired = json_text.strip()

    # Remove any trailing comma before closing braces/brackets
    repaired = re.sub(r",(\s*[}\]])", r"\1", repaired)

    # Fix missing quotes around keys
    repaired = re.sub(r"([{,]\s*)([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', repaired)

    # Handle truncated JSON - try to complete it
    if not repaired.endswith("}"):
        logger.warning("JSON appears truncated, attempting to complete it")

        open_quotes = repaired.count('"') - repaired.count('\\"')
        if open_quotes % 2 == 1:
            repaired += '"'

        repaired = repaired.rstrip().rstrip(",")

        open_brackets = repaired.count("[") - repaired.count("]")
        open_braces = repaired.count("{") - repaired.count("}")
        repaired += "]" * open_brackets
        repaired += "}" * open_braces

    # Remove any text after the final closing brace
    last_brace = repaired.rfind("}")
    if last_brace != -1:
        repaired = repaired[: last_brace + 1]

    if repaired != json_text:
        logger.debug(f"Repaired JSON text for parsing: {repaired[:300]}")
    return repaired


def extract_json_object(text: str) -> dict[str, Any]:
    """Pull the first JSON object out of a model response.

    Handles markdown code fences and surrounding prose. Raises ValueError when
    no object can be parsed.
    """
    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if fenced:
        json_text = fenced.group(1)
    else:
        bare = re.search(r"\{.*\}", text, re.DOTALL)
        json_text = bare.group() if bare else text.strip()

    try:
        data = json.loads(repair_json(json_text))
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def string_list(value: Any) -> list[str]:
    """Coerce a JSON value into a list of non-empty strings."""
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]
