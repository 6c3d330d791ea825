"""Exercise normalization.

Turns raw plan entries (plain labels or loosely-shaped records) into
ExerciseItems with stable, unique keys:

    "push-up"                        -> key "push-up"
    {"exercise": "row", "sets": 3}   -> key "row (3 sets)"
    "push-up" (again)                -> key "push-up #2"

Keys are deterministic for identical input so completion logs written
against one normalization pass still match on the next request.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from typing import Any

from slowburn.checklist.types import (
    DETAIL_FIELDS,
    DETAIL_SEPARATOR,
    INTENSITY_ALIASES,
    NAME_ALIASES,
    DetailedRecord,
    ExerciseItem,
    PlainLabel,
    RawEntry,
)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


def _parse_int(value: Any) -> int | None:
    """Lenient integer parse: "3.7" -> 3, "4x" -> 4, "abc" -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    match = _LEADING_INT_RE.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def clamp_intensity(value: Any, fallback: int = 1) -> int:
    """Clamp an intensity to a non-negative integer.

    Args:
        value: Raw intensity (int, float, numeric string, or None)
        fallback: Returned when value is missing or non-numeric

    Returns:
        Non-negative integer intensity
    """
    raw = fallback if value is None else _parse_int(value)
    if raw is None:
        return fallback
    return max(0, raw)


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, default=str)


def _render_value(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _first_present(record: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    for alias in aliases:
        value = record.get(alias)
        if value is not None:
            return value
    return None


def parse_raw_entry(entry: Any) -> RawEntry:
    """Parse one raw plan entry into PlainLabel or DetailedRecord.

    Values that are neither strings nor mappings are stringified as JSON.
    """
    if isinstance(entry, str):
        return PlainLabel(entry)
    if not isinstance(entry, Mapping):
        return PlainLabel(_serialize(entry))

    record = dict(entry)
    name = None
    for alias in NAME_ALIASES:
        if record.get(alias):
            name = str(record[alias])
            break
    fields = tuple((name_, record[name_]) for name_, _ in DETAIL_FIELDS if record.get(name_))
    key = str(record["key"]) if record.get("key") else None
    return DetailedRecord(
        name=name,
        fields=fields,
        intensity=_first_present(record, INTENSITY_ALIASES),
        key=key,
        raw=record,
    )


def build_detail(entry: RawEntry) -> str:
    """Render the detail string for an entry ("3 sets · 10 reps")."""
    if isinstance(entry, PlainLabel):
        return ""
    units = dict(DETAIL_FIELDS)
    parts = []
    for name, value in entry.fields:
        unit = units[name]
        rendered = _render_value(value)
        parts.append(f"{rendered} {unit}" if unit else rendered)
    return DETAIL_SEPARATOR.join(parts)


def entry_label(entry: RawEntry) -> str:
    if isinstance(entry, PlainLabel):
        return entry.text
    if entry.name is not None:
        return entry.name
    return _serialize(entry.raw)


def build_exercise_key(entry: RawEntry, seen: dict[str, int]) -> str:
    """Compute the disambiguated key for an entry.

    Args:
        entry: Parsed raw entry
        seen: Per-pass occurrence counter, updated in place

    Returns:
        Base key for the first occurrence, "<base> #N" for later ones
    """
    label = entry_label(entry)
    detail = build_detail(entry)
    base_key = f"{label} ({detail})" if detail else label
    count = seen.get(base_key, 0) + 1
    seen[base_key] = count
    return f"{base_key} #{count}" if count > 1 else base_key


def normalize_exercises(exercises: Any, default_intensity: int) -> list[ExerciseItem]:
    """Normalize a raw entry list into ExerciseItems, preserving order.

    Args:
        exercises: Raw entries; anything other than a list/tuple yields []
        default_intensity: Intensity for entries without an explicit one

    Returns:
        ExerciseItems with keys unique within this pass
    """
    if not isinstance(exercises, (list, tuple)):
        return []

    seen: dict[str, int] = {}
    items: list[ExerciseItem] = []
    for raw in exercises:
        entry = parse_raw_entry(raw)
        if isinstance(entry, DetailedRecord):
            explicit = entry.has_explicit_intensity
            intensity = clamp_intensity(entry.intensity if explicit else None, default_intensity)
            key = entry.key if entry.key is not None else build_exercise_key(entry, seen)
            items.append(
                ExerciseItem(
                    key=key,
                    label=entry_label(entry),
                    intensity=intensity,
                    display_intensity=intensity if explicit else None,
                    detail=build_detail(entry),
                    raw_attributes=entry.raw,
                )
            )
        else:
            items.append(
                ExerciseItem(
                    key=build_exercise_key(entry, seen),
                    label=entry.text,
                    intensity=clamp_intensity(None, default_intensity),
                )
            )
    return items


def sanitize_checklist_items(items: Any) -> list[dict[str, Any]]:
    """Reduce a client checklist payload to {exercise, intensity, completed}.

    Strings become uncompleted items; records without a name are dropped.
    """
    if not isinstance(items, (list, tuple)):
        return []

    sanitized = []
    for item in items:
        if isinstance(item, str):
            if item:
                sanitized.append({"exercise": item, "intensity": None, "completed": False})
        elif isinstance(item, Mapping):
            exercise = next((item[alias] for alias in NAME_ALIASES if item.get(alias)), None)
            if not exercise:
                continue
            sanitized.append(
                {
                    "exercise": str(exercise),
                    "intensity": _first_present(item, INTENSITY_ALIASES),
                    "completed": bool(item.get("completed")),
                }
            )
    return sanitized


def normalize_completed_items(items: Any) -> list[dict[str, Any]]:
    """Coerce a snapshot payload into [{"exercise": ..., "completed": True}]."""
    if not isinstance(items, (list, tuple)):
        return []

    normalized = []
    for item in items:
        if isinstance(item, str):
            normalized.append({"exercise": item, "completed": True})
        elif isinstance(item, Mapping):
            exercise = next((item[alias] for alias in NAME_ALIASES if item.get(alias)), None)
            if exercise:
                normalized.append({"exercise": str(exercise), "completed": True})
    return normalized
