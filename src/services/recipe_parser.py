# src/services/recipe_parser.py
from __future__ import annotations

import json
import re
from typing import Any, Optional

# ```json ... ``` or ``` ... ``` fences the model tends to add
_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)


def first_candidate_text(response: dict[str, Any]) -> Optional[str]:
    """Concatenate the text parts of the first candidate, if any."""
    candidates = response.get("candidates") or []
    if not candidates:
        return None
    content = candidates[0].get("content") or {}
    texts = [part.get("text") for part in content.get("parts") or [] if part.get("text")]
    return "".join(texts) if texts else None


def parse_recipe(text: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Parse model output as a recipe object.

    Returns None unless the text holds a JSON object with a non-empty
    `recipeName`.
    """
    if not text:
        return None

    match = _FENCE_RE.search(text)
    candidate = match.group(1) if match else text.strip()

    try:
        data = json.loads(candidate)
    except ValueError:
        # Prose around a bare object: take the outermost braces
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(candidate[start:end + 1])
        except ValueError:
            return None

    if not isinstance(data, dict):
        return None
    name = data.get("recipeName")
    if not isinstance(name, str) or not name.strip():
        return None
    return data
