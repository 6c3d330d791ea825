"""Checklist, daily plan and heatmap API endpoints.

Each request runs in one get_session() unit of work: resolving the plan,
writing the completion log, and refreshing the day total and snapshot
commit together or not at all.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from slowburn.api.schemas import (
    AgentIntensityRequest,
    AgentIntensityResponse,
    ChecklistReplaceRequest,
    DailyPlanRequest,
    DailyPlanResponse,
    DailyPlanSavedResponse,
    DayChecklistResponse,
    ExerciseLogRequest,
    ExerciseLogResponse,
    HeatmapResponse,
)
from slowburn.checklist.dates import parse_channel, parse_iso_date, parse_plan_id, resolve_requested_date
from slowburn.checklist.errors import ValidationError
from slowburn.checklist.reconciler import ChecklistReconciler, default_heatmap_window
from slowburn.checklist.types import Channel
from slowburn.config.settings import settings
from slowburn.db.session import get_session
from slowburn.db.store import ChecklistStore

router = APIRouter(prefix="/api", tags=["checklist"])


def _bad_request(e: ValidationError) -> HTTPException:
    logger.info(f"[CHECKLIST] Rejected request: {e.field}: {e.message}")
    return HTTPException(status_code=400, detail=e.message)


def _load_day(date_param: str | None, channel: Channel) -> DayChecklistResponse:
    day = resolve_requested_date(date_param)
    with get_session() as session:
        reconciler = ChecklistReconciler(ChecklistStore(session))
        result = reconciler.load_day(day, channel)
        return DayChecklistResponse.from_day(result)


def _log_exercise(request: ExerciseLogRequest, channel: Channel) -> ExerciseLogResponse:
    try:
        day = parse_iso_date(request.date)
        plan_id = parse_plan_id(request.plan_id)
        if request.exercise is None or request.exercise == "":
            raise ValidationError("exercise", "exercise is required")
        with get_session() as session:
            reconciler = ChecklistReconciler(ChecklistStore(session))
            result = reconciler.set_completion(day, channel, plan_id, str(request.exercise), bool(request.completed))
    except ValidationError as e:
        raise _bad_request(e) from e
    return ExerciseLogResponse(allCompleted=result.all_completed, total=result.total, intensity=result.level)


@router.get("/today-plan", response_model=DayChecklistResponse)
def get_today_plan(date: str | None = Query(default=None, description="YYYY-MM-DD; defaults to today")):
    """Resolve today's workout plan and its completion log."""
    return _load_day(date, "workout")


@router.get("/today-mobility", response_model=DayChecklistResponse)
def get_today_mobility(date: str | None = Query(default=None, description="YYYY-MM-DD; defaults to today")):
    """Resolve today's mobility plan and its completion log."""
    return _load_day(date, "mobility")


@router.post("/exercise-log", response_model=ExerciseLogResponse)
def post_exercise_log(request: ExerciseLogRequest):
    return _log_exercise(request, "workout")


@router.post("/mobility-log", response_model=ExerciseLogResponse)
def post_mobility_log(request: ExerciseLogRequest):
    return _log_exercise(request, "mobility")


@router.put("/checklist", response_model=DayChecklistResponse)
def put_checklist(request: ChecklistReplaceRequest):
    """Replace a day's checklist (client-edited override)."""
    try:
        day = parse_iso_date(request.date)
        channel = parse_channel(request.type)
        with get_session() as session:
            reconciler = ChecklistReconciler(ChecklistStore(session))
            result = reconciler.replace_checklist(day, channel, request.focus, request.items)
            return DayChecklistResponse.from_day(result)
    except ValidationError as e:
        raise _bad_request(e) from e


@router.get("/heatmap", response_model=HeatmapResponse, response_model_exclude_none=True)
def get_heatmap(
    days: int | None = Query(default=None, description="Window length; clamped to the configured bounds"),
    end: str | None = Query(default=None, description="Last day of the window (YYYY-MM-DD); defaults to today"),
    type: str | None = Query(default="workout", description="Channel: workout | mobility"),
    details: bool = Query(default=False, description="Include completed items per day for both channels"),
):
    """Heatmap totals and levels for a date window."""
    try:
        channel = parse_channel(type)
        end_day = resolve_requested_date(end)
    except ValidationError as e:
        raise _bad_request(e) from e

    window = settings.heatmap_default_days if days is None else days
    window = min(max(window, settings.heatmap_min_days), settings.heatmap_max_days)
    start_day, end_day = default_heatmap_window(end_day, window)

    with get_session() as session:
        reconciler = ChecklistReconciler(ChecklistStore(session))
        heatmap = reconciler.heatmap(start_day, end_day, channel, details=details)
    return HeatmapResponse.from_heatmap(heatmap, window)


@router.post("/daily-plan", response_model=DailyPlanSavedResponse)
def post_daily_plan(request: DailyPlanRequest):
    """Store an agent-generated plan for a date."""
    try:
        day = parse_iso_date(request.date)
        channel = parse_channel(request.type)
        with get_session() as session:
            reconciler = ChecklistReconciler(ChecklistStore(session))
            count = reconciler.save_daily_plan(day, channel, request.focus, request.exercises, request.difficulty)
    except ValidationError as e:
        raise _bad_request(e) from e
    return DailyPlanSavedResponse(date=day.isoformat(), exerciseCount=count)


@router.get("/daily-plan/{date}", response_model=DailyPlanResponse)
def get_daily_plan(date: str, type: str | None = Query(default="workout")):
    """Agent-generated plan for a date, or usingDefault when none is stored."""
    try:
        day = parse_iso_date(date)
        channel = parse_channel(type)
    except ValidationError as e:
        raise _bad_request(e) from e

    with get_session() as session:
        reconciler = ChecklistReconciler(ChecklistStore(session))
        plan = reconciler.get_daily_plan(day, channel)
        return DailyPlanResponse.from_plan(day.isoformat(), plan)


@router.post("/workouts", response_model=AgentIntensityResponse)
def post_agent_workout(request: AgentIntensityRequest):
    """Agent-only logging of a day's intensity (no checklist detail)."""
    try:
        day = parse_iso_date(request.date)
        channel = parse_channel(request.type)
        with get_session() as session:
            reconciler = ChecklistReconciler(ChecklistStore(session))
            total = reconciler.record_agent_intensity(day, channel, request.intensity)
    except ValidationError as e:
        raise _bad_request(e) from e
    return AgentIntensityResponse(date=day.isoformat(), total=total)
