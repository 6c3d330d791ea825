"""Checklist engine data structures.

Raw plan entries arrive either as plain strings or as loosely-shaped records.
They are parsed into a tagged union (PlainLabel | DetailedRecord) before
normalization, and normalized into ExerciseItem values carrying a stable key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal

Channel = Literal["workout", "mobility"]
PlanSource = Literal["override", "rotation", "default"]

CHANNELS: tuple[Channel, ...] = ("workout", "mobility")

# Precedence for the display name of a record
NAME_ALIASES: tuple[str, ...] = ("exercise", "name", "title", "label")

# Precedence for an explicit intensity on a record
INTENSITY_ALIASES: tuple[str, ...] = ("intensity", "level", "rating")

# (field, unit suffix) in rendering order; None renders the value verbatim
DETAIL_FIELDS: tuple[tuple[str, str | None], ...] = (
    ("sets", "sets"),
    ("reps", "reps"),
    ("rounds", "rounds"),
    ("minutes", "min"),
    ("seconds", "sec"),
    ("duration", None),
    ("distance", None),
    ("hold", "hold"),
    ("detail", None),
    ("note", None),
    ("notes", None),
)

DETAIL_SEPARATOR = " · "


@dataclass(frozen=True)
class PlainLabel:
    """Raw entry that is just a label."""

    text: str


@dataclass(frozen=True)
class DetailedRecord:
    """Raw entry given as a record.

    Attributes:
        name: Resolved display name, or None when no alias is present
        fields: Present detail fields in DETAIL_FIELDS order
        intensity: Raw explicit intensity value, or None
        key: Explicit identity key, or None
        raw: Source record (copied)
    """

    name: str | None
    fields: tuple[tuple[str, Any], ...]
    intensity: Any
    key: str | None
    raw: dict[str, Any]

    @property
    def has_explicit_intensity(self) -> bool:
        return self.intensity is not None


RawEntry = PlainLabel | DetailedRecord


@dataclass(frozen=True)
class ExerciseItem:
    """Canonical exercise with a stable identity key within its plan."""

    key: str
    label: str
    intensity: int
    display_intensity: int | None = None
    detail: str = ""
    raw_attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def explicit_intensity(self) -> bool:
        return self.display_intensity is not None

    def to_payload(self) -> dict[str, Any]:
        """Serialize for API responses: raw attributes plus the canonical fields."""
        return {
            **self.raw_attributes,
            "exercise": self.label,
            "key": self.key,
            "intensity": self.intensity,
            "displayIntensity": self.display_intensity,
        }


@dataclass(frozen=True)
class Plan:
    """Plan applied to a date for one channel.

    id 0 is either the synthetic default plan or a day-specific override
    (see source); ids > 0 are stored rotation plans.
    """

    id: int
    channel: Channel
    day_number: int
    focus: str
    items: tuple[ExerciseItem, ...]
    difficulty: int
    source: PlanSource

    @property
    def keys(self) -> list[str]:
        return [item.key for item in self.items]

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "dayNumber": self.day_number,
            "focus": self.focus,
            "difficulty": self.difficulty,
            "source": self.source,
            "exercises": [item.to_payload() for item in self.items],
        }


@dataclass(frozen=True)
class LogEntry:
    """Completion state of one exercise key."""

    exercise_key: str
    completed: bool


@dataclass(frozen=True)
class DayChecklist:
    """Resolved plan and completion log for one date/channel."""

    date: date
    channel: Channel
    plan: Plan
    logs: list[LogEntry]
    total: int
    level: int


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a single completion toggle."""

    all_completed: bool
    total: int
    level: int


@dataclass(frozen=True)
class HeatmapDay:
    day: date
    total: int
    level: int


@dataclass(frozen=True)
class Heatmap:
    """Aggregate totals for a date range plus optional per-day details."""

    start: date
    end: date
    channel: Channel
    days: list[HeatmapDay]
    details: dict[str, dict[str, list[dict[str, Any]]]] | None = None
