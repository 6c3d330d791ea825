"""Day intensity accumulation and heatmap level mapping.

The stored value is always the raw, unbounded total of completed item
intensities. Levels (0-4) are derived at read time from one threshold table.
"""

from collections.abc import Iterable

from slowburn.checklist.types import ExerciseItem, LogEntry

RECOVERY_KEYWORDS: tuple[str, ...] = ("mobility", "recovery", "stretch", "yoga", "rest")

# Upper bounds (inclusive) for levels 1-3; anything above is level 4
_LEVEL_THRESHOLDS: tuple[tuple[int, int], ...] = ((4, 1), (7, 2), (10, 3))

STALE_KEY_INTENSITY = 1


def is_recovery_focus(focus: str | None) -> bool:
    """Whether a plan focus describes a recovery/mobility day."""
    if not focus:
        return False
    lowered = focus.lower()
    return any(keyword in lowered for keyword in RECOVERY_KEYWORDS)


def default_intensity_for_focus(focus: str | None) -> int:
    """Per-item intensity for items without an explicit one."""
    return 0 if is_recovery_focus(focus) else 1


def accumulate_intensity(entries: Iterable[LogEntry], items: Iterable[ExerciseItem]) -> int:
    """Sum the intensity of completed entries.

    Args:
        entries: Completion log entries for one date/plan/channel
        items: The plan's normalized items, for per-key intensity lookup

    Returns:
        Non-negative total; completed keys missing from the plan count 1
    """
    intensity_by_key = {item.key: max(0, item.intensity) for item in items}
    total = sum(
        intensity_by_key.get(entry.exercise_key, STALE_KEY_INTENSITY) for entry in entries if entry.completed
    )
    return max(0, total)


def map_intensity_to_level(total: int) -> int:
    """Map a raw day total onto the 0-4 heatmap scale.

    <=0 -> 0, <=4 -> 1, <=7 -> 2, <=10 -> 3, otherwise 4.
    """
    if total <= 0:
        return 0
    for upper, level in _LEVEL_THRESHOLDS:
        if total <= upper:
            return level
    return 4
