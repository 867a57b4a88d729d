from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

_LIST_SPLIT_RE = re.compile(r"\s*[,;\n|]\s*")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def as_text(value: Any) -> str:
    """Render a scalar-ish upstream value as a stripped string ('' for missing)."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return "\n".join(part for part in (as_text(item) for item in value) if part)
    if isinstance(value, Mapping):
        for key in ("text", "name", "value"):
            if key in value:
                return as_text(value[key])
    return ""


def first_text(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        text = as_text(data.get(key))
        if text:
            return text
    return ""


def as_str_list(value: Any) -> list[str]:
    """Coerce a list, a single string or a comma separated string into a clean list."""
    if value is None or isinstance(value, bool):
        return []
    if isinstance(value, str):
        items: Iterable[Any] = _LIST_SPLIT_RE.split(value)
    elif isinstance(value, Mapping):
        items = [value]
    elif isinstance(value, (list, tuple, set)):
        items = value
    else:
        items = [value]
    out: list[str] = []
    for item in items:
        text = as_text(item)
        if text and text not in out:
            out.append(text)
    return out


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def as_mapping_list(value: Any) -> list[Mapping[str, Any]]:
    if isinstance(value, Mapping):
        return [value]
    if isinstance(value, (list, tuple)):
        return [item for item in value if isinstance(item, Mapping)]
    return []


def first_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.search(as_text(value))
    return float(match.group(0)) if match else None


def dedupe(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(value.strip())
    return out
