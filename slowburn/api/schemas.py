"""API contract schemas for the checklist and heatmap endpoints.

Request bodies are deliberately loose (Any-typed fields) so that malformed
input reaches the checklist validators and is reported as a 400 with a
readable message rather than a schema error.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from slowburn.checklist.types import DayChecklist, Heatmap, Plan

# ============================================================================
# Requests
# ============================================================================


class ExerciseLogRequest(BaseModel):
    """Body for POST /api/exercise-log and /api/mobility-log."""

    model_config = ConfigDict(populate_by_name=True)

    date: Any = Field(default=None, description="ISO 8601 date (YYYY-MM-DD)")
    plan_id: Any = Field(default=None, alias="planId", description="Plan id the exercise belongs to")
    exercise: Any = Field(default=None, description="Exercise key")
    completed: Any = Field(default=False, description="Completion flag (truthy/falsy)")


class ChecklistReplaceRequest(BaseModel):
    """Body for PUT /api/checklist."""

    date: Any = Field(default=None, description="ISO 8601 date (YYYY-MM-DD)")
    type: Any = Field(default="workout", description="Channel: workout | mobility")
    focus: str | None = Field(default=None, description="Plan focus label")
    items: Any = Field(default=None, description="Checklist items: strings or {exercise, intensity, completed}")


class DailyPlanRequest(BaseModel):
    """Body for POST /api/daily-plan (agent-authored override)."""

    date: Any = Field(default=None, description="ISO 8601 date (YYYY-MM-DD)")
    type: Any = Field(default="workout", description="Channel: workout | mobility")
    focus: str | None = Field(default=None, description="Plan focus label")
    exercises: Any = Field(default=None, description="Raw exercise entries")
    difficulty: Any = Field(default=None, description="Optional difficulty rating")


class AgentIntensityRequest(BaseModel):
    """Body for POST /api/workouts (agent-only intensity logging)."""

    date: Any = Field(default=None, description="ISO 8601 date (YYYY-MM-DD)")
    intensity: Any = Field(default=0, description="Raw day total")
    type: Any = Field(default="workout", description="Channel: workout | mobility")


# ============================================================================
# Responses
# ============================================================================


class LogEntryResponse(BaseModel):
    exercise: str = Field(description="Exercise key")
    completed: bool


class DayChecklistResponse(BaseModel):
    """Response for GET /api/today-plan, /api/today-mobility and PUT /api/checklist."""

    date: str = Field(description="ISO 8601 date (YYYY-MM-DD)")
    type: str = Field(description="Channel")
    plan: dict[str, Any] = Field(description="Resolved plan with normalized exercises")
    logs: list[LogEntryResponse]
    total: int = Field(description="Raw intensity total for the day")
    level: int = Field(description="Heatmap level 0-4")

    @classmethod
    def from_day(cls, day: DayChecklist) -> "DayChecklistResponse":
        return cls(
            date=day.date.isoformat(),
            type=day.channel,
            plan=day.plan.to_payload(),
            logs=[LogEntryResponse(exercise=entry.exercise_key, completed=entry.completed) for entry in day.logs],
            total=day.total,
            level=day.level,
        )


class ExerciseLogResponse(BaseModel):
    ok: bool = True
    allCompleted: bool
    total: int
    intensity: int = Field(description="Heatmap level 0-4 for the day")


class HeatmapDayResponse(BaseModel):
    date: str
    total: int
    intensity: int = Field(description="Heatmap level 0-4")


class HeatmapResponse(BaseModel):
    """Response for GET /api/heatmap."""

    start: str
    end: str
    days: int
    type: str
    data: list[HeatmapDayResponse]
    details: dict[str, dict[str, list[dict[str, Any]]]] | None = None

    @classmethod
    def from_heatmap(cls, heatmap: Heatmap, days: int) -> "HeatmapResponse":
        return cls(
            start=heatmap.start.isoformat(),
            end=heatmap.end.isoformat(),
            days=days,
            type=heatmap.channel,
            data=[
                HeatmapDayResponse(date=day.day.isoformat(), total=day.total, intensity=day.level)
                for day in heatmap.days
            ],
            details=heatmap.details,
        )


class DailyPlanSavedResponse(BaseModel):
    ok: bool = True
    date: str
    exerciseCount: int


class DailyPlanResponse(BaseModel):
    date: str
    plan: dict[str, Any] | None
    usingDefault: bool

    @classmethod
    def from_plan(cls, date: str, plan: Plan | None) -> "DailyPlanResponse":
        return cls(date=date, plan=plan.to_payload() if plan else None, usingDefault=plan is None)


class AgentIntensityResponse(BaseModel):
    ok: bool = True
    date: str
    total: int
