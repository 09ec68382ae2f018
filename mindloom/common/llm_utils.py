"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json


def _strip_fences(raw: str) -> str:
    text = raw.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        text = "\n".join(lines)
    return text


def parse_llm_list(raw: str) -> list[str]:
    """Parse a JSON array of strings from an LLM response, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '[' and last ']', then json.loads
    3. Return empty list

    Non-string items are stringified, blanks dropped and duplicates removed
    while keeping order.
    """
    if not raw:
        return []

    data = None
    text = _strip_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = raw.find("[")
        end = raw.rfind("]") + 1
        if start >= 0 and end > start:
            try:
                data = json.loads(raw[start:end])
            except json.JSONDecodeError:
                data = None

    if not isinstance(data, list):
        return []

    items = [str(item).strip() for item in data if item is not None]
    return list(dict.fromkeys(item for item in items if item))
