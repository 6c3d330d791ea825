from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import JSON, Boolean, Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class RotationPlan(Base):
    """Authored plan in a channel's rotation.

    Rows are written out-of-band (CLI or agent) and ordered by
    (day_number, id). Each channel rotates independently.

    Schema:
    - channel: "workout" or "mobility"
    - day_number: Ordering key for rotation
    - focus: Free-text label; recovery keywords zero the default item intensity
    - exercises: JSON-serialized raw entry list (may be malformed)
    - completed_at: Set once, the first time every item is completed on some date
    """

    __tablename__ = "rotation_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String, nullable=False, index=True)
    day_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    focus: Mapped[str] = mapped_column(String, nullable=False, default="")
    exercises: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    difficulty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_rotation_plans_channel_day", "channel", "day_number", "id"),)


class OverridePlan(Base):
    """Day-specific checklist that supersedes rotation for one date/channel."""

    __tablename__ = "override_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_date: Mapped[date] = mapped_column(Date, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    focus: Mapped[str] = mapped_column(String, nullable=False, default="custom")
    exercises: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    difficulty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("plan_date", "channel", name="uq_override_plan_date_channel"),)


class CompletionLog(Base):
    """Per-exercise completion flag for one date, channel and plan.

    Source of truth for day intensity and snapshots. Unique per
    (log_date, channel, plan_id, exercise_key); writes update in place.
    """

    __tablename__ = "completion_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log_date: Mapped[date] = mapped_column(Date, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    plan_id: Mapped[int] = mapped_column(Integer, nullable=False)
    exercise_key: Mapped[str] = mapped_column(String, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("log_date", "channel", "plan_id", "exercise_key", name="uq_completion_log_key"),
        Index("idx_completion_logs_channel_date", "channel", "log_date"),
    )


class DayIntensity(Base):
    """Raw intensity total for one date/channel. Absent row means zero."""

    __tablename__ = "day_intensity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("day", "channel", name="uq_day_intensity_day_channel"),
        Index("idx_day_intensity_channel_day", "channel", "day"),
    )


class CompletedSnapshot(Base):
    """Cached list of completed items for one date/channel.

    Derived from CompletionLog on every mutation; never authoritative.
    """

    __tablename__ = "completed_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column(Date, nullable=False)
    channel: Mapped[str] = mapped_column(String, nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("day", "channel", name="uq_completed_snapshot_day_channel"),)
