"""Checklist storage backed by a SQLAlchemy session.

ChecklistStore wraps one session (one unit of work) and is passed
explicitly to the resolver and reconciler. It never commits; the caller's
get_session() block does.

Every write flushes immediately so that later reads in the same unit of
work (the session runs with autoflush disabled) observe it.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import Any

from loguru import logger
from sqlalchemy import case, delete, select
from sqlalchemy.orm import Session

from slowburn.checklist.types import Channel, LogEntry
from slowburn.db.models import CompletedSnapshot, CompletionLog, DayIntensity, OverridePlan, RotationPlan


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChecklistStore:
    """Row-level storage operations for plans, logs, totals and snapshots."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Rotation plans
    # ------------------------------------------------------------------

    def get_plan_row(self, channel: Channel, plan_id: int) -> RotationPlan | None:
        return self.session.execute(
            select(RotationPlan).where(RotationPlan.channel == channel, RotationPlan.id == plan_id)
        ).scalar_one_or_none()

    def get_first_plan_in_rotation(self, channel: Channel) -> RotationPlan | None:
        return self.session.execute(
            select(RotationPlan)
            .where(RotationPlan.channel == channel)
            .order_by(RotationPlan.day_number.asc(), RotationPlan.id.asc())
            .limit(1)
        ).scalar_one_or_none()

    def get_next_plan_after(self, channel: Channel, day_number: int) -> RotationPlan | None:
        """First plan with day_number strictly greater, or None at the end of rotation."""
        return self.session.execute(
            select(RotationPlan)
            .where(RotationPlan.channel == channel, RotationPlan.day_number > day_number)
            .order_by(RotationPlan.day_number.asc(), RotationPlan.id.asc())
            .limit(1)
        ).scalar_one_or_none()

    def list_rotation(self, channel: Channel) -> list[RotationPlan]:
        return list(
            self.session.execute(
                select(RotationPlan)
                .where(RotationPlan.channel == channel)
                .order_by(RotationPlan.day_number.asc(), RotationPlan.id.asc())
            ).scalars()
        )

    def add_rotation_plan(
        self,
        channel: Channel,
        day_number: int,
        focus: str,
        exercises: Sequence[Any],
        difficulty: int | None = None,
    ) -> RotationPlan:
        plan = RotationPlan(
            channel=channel,
            day_number=day_number,
            focus=focus,
            exercises=json.dumps(list(exercises), ensure_ascii=False),
            difficulty=difficulty,
        )
        self.session.add(plan)
        self.session.flush()
        logger.info(f"[STORE] Added {channel} rotation plan id={plan.id} day_number={day_number} focus={focus!r}")
        return plan

    def mark_plan_completed(self, channel: Channel, plan_id: int) -> bool:
        """Stamp completed_at once. Returns True if this call set it."""
        plan = self.get_plan_row(channel, plan_id)
        if plan is None or plan.completed_at is not None:
            return False
        plan.completed_at = _utcnow()
        self.session.flush()
        return True

    # ------------------------------------------------------------------
    # Override plans
    # ------------------------------------------------------------------

    def get_override_plan_for_date(self, day: date, channel: Channel) -> OverridePlan | None:
        return self.session.execute(
            select(OverridePlan).where(OverridePlan.plan_date == day, OverridePlan.channel == channel)
        ).scalar_one_or_none()

    def upsert_override_plan(
        self,
        day: date,
        channel: Channel,
        focus: str,
        exercises: Sequence[Any],
        difficulty: int | None = None,
    ) -> OverridePlan:
        """Insert or fully replace the override plan for a date/channel."""
        serialized = json.dumps(list(exercises), ensure_ascii=False)
        override = self.get_override_plan_for_date(day, channel)
        if override is None:
            override = OverridePlan(plan_date=day, channel=channel)
            self.session.add(override)
        override.focus = focus
        override.exercises = serialized
        override.difficulty = difficulty
        override.updated_at = _utcnow()
        self.session.flush()
        return override

    # ------------------------------------------------------------------
    # Completion log
    # ------------------------------------------------------------------

    def _get_log(self, day: date, channel: Channel, plan_id: int, key: str) -> CompletionLog | None:
        return self.session.execute(
            select(CompletionLog).where(
                CompletionLog.log_date == day,
                CompletionLog.channel == channel,
                CompletionLog.plan_id == plan_id,
                CompletionLog.exercise_key == key,
            )
        ).scalar_one_or_none()

    def upsert_completion_log(self, day: date, channel: Channel, plan_id: int, key: str, completed: bool) -> bool:
        """Insert or update one completion row.

        updated_at only moves when the completed flag changes, so replaying
        the same write leaves the row untouched.

        Returns:
            True if a row was inserted or changed
        """
        row = self._get_log(day, channel, plan_id, key)
        if row is None:
            self.session.add(
                CompletionLog(
                    log_date=day,
                    channel=channel,
                    plan_id=plan_id,
                    exercise_key=key,
                    completed=completed,
                    updated_at=_utcnow(),
                )
            )
        elif row.completed != completed:
            row.completed = completed
            row.updated_at = _utcnow()
        else:
            return False
        self.session.flush()
        return True

    def insert_missing_completion_logs(self, day: date, channel: Channel, plan_id: int, keys: Sequence[str]) -> int:
        """Insert completed=False rows for keys not yet logged. Returns rows inserted."""
        existing = {entry.exercise_key for entry in self.list_completion_log(day, channel, plan_id)}
        inserted = 0
        for key in keys:
            if key in existing:
                continue
            self.session.add(
                CompletionLog(log_date=day, channel=channel, plan_id=plan_id, exercise_key=key, completed=False)
            )
            existing.add(key)
            inserted += 1
        if inserted:
            self.session.flush()
        return inserted

    def delete_completion_log_keys_not_in(self, day: date, channel: Channel, plan_id: int, keys: Sequence[str]) -> int:
        stmt = delete(CompletionLog).where(
            CompletionLog.log_date == day,
            CompletionLog.channel == channel,
            CompletionLog.plan_id == plan_id,
        )
        if keys:
            stmt = stmt.where(CompletionLog.exercise_key.not_in(list(keys)))
        result = self.session.execute(stmt)
        return result.rowcount or 0

    def delete_completion_logs_for_other_plans(self, day: date, channel: Channel, plan_id: int) -> int:
        result = self.session.execute(
            delete(CompletionLog).where(
                CompletionLog.log_date == day,
                CompletionLog.channel == channel,
                CompletionLog.plan_id != plan_id,
            )
        )
        return result.rowcount or 0

    def delete_completion_logs(self, day: date, channel: Channel) -> int:
        result = self.session.execute(
            delete(CompletionLog).where(CompletionLog.log_date == day, CompletionLog.channel == channel)
        )
        return result.rowcount or 0

    def list_completion_log(self, day: date, channel: Channel, plan_id: int) -> list[LogEntry]:
        """Completion rows for one date/plan in insertion order."""
        rows = self.session.execute(
            select(CompletionLog.exercise_key, CompletionLog.completed)
            .where(
                CompletionLog.log_date == day,
                CompletionLog.channel == channel,
                CompletionLog.plan_id == plan_id,
            )
            .order_by(CompletionLog.id.asc())
        ).all()
        return [LogEntry(exercise_key=key, completed=bool(completed)) for key, completed in rows]

    def plan_id_for_date(self, day: date, channel: Channel) -> int | None:
        """Plan id already committed to for a date.

        Non-zero plan ids win over the synthetic 0; otherwise the most
        recently updated row wins.
        """
        return self.session.execute(
            select(CompletionLog.plan_id)
            .where(CompletionLog.log_date == day, CompletionLog.channel == channel)
            .order_by(
                case((CompletionLog.plan_id != 0, 1), else_=0).desc(),
                CompletionLog.updated_at.desc(),
                CompletionLog.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()

    def latest_logged_date_before(self, day: date, channel: Channel) -> date | None:
        return self.session.execute(
            select(CompletionLog.log_date)
            .where(CompletionLog.log_date < day, CompletionLog.channel == channel)
            .order_by(CompletionLog.log_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def get_day_intensity(self, day: date, channel: Channel) -> int:
        total = self.session.execute(
            select(DayIntensity.total).where(DayIntensity.day == day, DayIntensity.channel == channel)
        ).scalar_one_or_none()
        return total or 0

    def upsert_day_intensity(self, day: date, channel: Channel, total: int) -> None:
        row = self.session.execute(
            select(DayIntensity).where(DayIntensity.day == day, DayIntensity.channel == channel)
        ).scalar_one_or_none()
        if row is None:
            self.session.add(DayIntensity(day=day, channel=channel, total=total, updated_at=_utcnow()))
        elif row.total != total:
            row.total = total
            row.updated_at = _utcnow()
        else:
            return
        self.session.flush()

    def delete_day_intensity(self, day: date, channel: Channel) -> None:
        self.session.execute(delete(DayIntensity).where(DayIntensity.day == day, DayIntensity.channel == channel))

    def get_snapshot(self, day: date, channel: Channel) -> list[dict[str, Any]] | None:
        items = self.session.execute(
            select(CompletedSnapshot.items).where(CompletedSnapshot.day == day, CompletedSnapshot.channel == channel)
        ).scalar_one_or_none()
        return list(items) if items is not None else None

    def upsert_snapshot(self, day: date, channel: Channel, items: list[dict[str, Any]]) -> None:
        row = self.session.execute(
            select(CompletedSnapshot).where(CompletedSnapshot.day == day, CompletedSnapshot.channel == channel)
        ).scalar_one_or_none()
        if row is None:
            self.session.add(CompletedSnapshot(day=day, channel=channel, items=items, updated_at=_utcnow()))
        elif row.items != items:
            row.items = items
            row.updated_at = _utcnow()
        else:
            return
        self.session.flush()

    def delete_snapshot(self, day: date, channel: Channel) -> None:
        self.session.execute(
            delete(CompletedSnapshot).where(CompletedSnapshot.day == day, CompletedSnapshot.channel == channel)
        )

    # ------------------------------------------------------------------
    # Heatmap reads
    # ------------------------------------------------------------------

    def read_heatmap_range(self, start: date, end: date, channel: Channel) -> list[tuple[date, int]]:
        """Stored (date, total) pairs in date order; absent dates are zero."""
        rows = self.session.execute(
            select(DayIntensity.day, DayIntensity.total)
            .where(DayIntensity.channel == channel, DayIntensity.day >= start, DayIntensity.day <= end)
            .order_by(DayIntensity.day.asc())
        ).all()
        return [(day, total) for day, total in rows]

    def read_snapshots_range(self, start: date, end: date) -> dict[date, dict[str, list[dict[str, Any]]]]:
        """Snapshots for both channels keyed by date."""
        rows = self.session.execute(
            select(CompletedSnapshot.day, CompletedSnapshot.channel, CompletedSnapshot.items)
            .where(CompletedSnapshot.day >= start, CompletedSnapshot.day <= end)
            .order_by(CompletedSnapshot.day.asc())
        ).all()
        snapshots: dict[date, dict[str, list[dict[str, Any]]]] = {}
        for day, channel, items in rows:
            snapshots.setdefault(day, {})[channel] = list(items or [])
        return snapshots
