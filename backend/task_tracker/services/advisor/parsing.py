"""Tolerant extraction of JSON objects from free-form model output."""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping


def find_balanced_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of ``text``.

    One pass over ``text`` with a stack of open-brace offsets. Braces inside
    JSON string literals (including escaped quotes) are not counted, and quotes
    outside any object are treated as prose. When an outer brace is never
    closed, the earliest-starting closed object inside it wins. Returns
    ``None`` when no opening brace is ever closed.
    """
    open_at: list[int] = []
    best: tuple[int, int] | None = None
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"' and open_at:
            in_string = True
        elif char == "{":
            open_at.append(index)
        elif char == "}" and open_at:
            start = open_at.pop()
            if not open_at:
                return text[start : index + 1]
            if best is None or start < best[0]:
                best = (start, index + 1)
    if best is None:
        return None
    return text[best[0] : best[1]]


def extract_json_object(text: str | None) -> dict[str, Any] | None:
    """Decode the first balanced object in ``text``; ``None`` if absent or invalid."""
    if not text:
        return None
    candidate = find_balanced_object(text)
    if candidate is None:
        return None
    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    if not isinstance(decoded, dict):
        return None
    return decoded


def first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    """Return the value of the first key present in ``payload``."""
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def coerce_choice(value: Any, allowed: Collection[str], default: str) -> str:
    if isinstance(value, str):
        normalized = value.strip().upper().replace(" ", "_")
        if normalized in allowed:
            return normalized
    return default


def coerce_text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def coerce_text_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def coerce_titles(value: Any) -> list[tuple[str, int | None]]:
    """Normalize subtask candidates given as strings or ``{title, ...}`` objects."""
    if not isinstance(value, list):
        return []
    titles: list[tuple[str, int | None]] = []
    for item in value:
        if isinstance(item, str):
            title, minutes = item, None
        elif isinstance(item, dict):
            title = item.get("title")
            raw_minutes = coerce_number(
                first_present(item, "estimated_minutes", "estimatedMinutes"),
            )
            minutes = int(raw_minutes) if raw_minutes is not None else None
        else:
            continue
        if isinstance(title, str) and title.strip():
            titles.append((title.strip(), minutes))
    return titles
