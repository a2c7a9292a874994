"""Minimal accessors for EP JSON-LD items.

Only what the sub-clients need for client-side filtering and lookups;
full field mapping is left to the caller.
"""

from typing import Any, Iterable, List, Mapping


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    if isinstance(value, list):
        fallback = ""
        for item in value:
            if not isinstance(item, Mapping):
                continue
            text = _text(item.get("@value"))
            if item.get("@language") in ("en", "mul"):
                return text
            if not fallback:
                fallback = text
        return fallback
    if isinstance(value, Mapping):
        return _text(value.get("en", value.get("@value", value.get("mul"))))
    return ""


def extract_field(item: Mapping[str, Any], fields: Iterable[str]) -> str:
    """First non-null value among ``fields`` as text, '' when none is set."""
    for name in fields:
        value = item.get(name)
        if value is not None:
            return _text(value)
    return ""


def items_of(response: Any) -> List[dict]:
    """The ``data`` array of a JSON-LD list response, [] when absent."""
    if isinstance(response, Mapping):
        data = response.get("data")
        if isinstance(data, list):
            return [item for item in data if isinstance(item, dict)]
    return []
