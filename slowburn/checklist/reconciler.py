"""Completion log and derived-value reconciliation.

Every mutating operation ends with refresh_derived(), which recomputes the
day total and the completed-items snapshot from the completion log and
persists both (or deletes them when empty). All of it runs inside the
caller's unit of work, so a committed request never leaves the total or
snapshot behind the log.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from loguru import logger

from slowburn.checklist.errors import ValidationError
from slowburn.checklist.intensity import accumulate_intensity, default_intensity_for_focus, map_intensity_to_level
from slowburn.checklist.normalize import (
    clamp_intensity,
    normalize_completed_items,
    normalize_exercises,
    sanitize_checklist_items,
)
from slowburn.checklist.resolver import PlanResolver
from slowburn.checklist.types import (
    CHANNELS,
    Channel,
    CompletionResult,
    DayChecklist,
    Heatmap,
    HeatmapDay,
    Plan,
)
from slowburn.db.store import ChecklistStore

PLACEHOLDER_LABELS: dict[str, str] = {
    "workout": "completed via api",
    "mobility": "mobility completed via api",
}


def is_placeholder_snapshot(items: Any, channel: Channel) -> bool:
    """Whether a snapshot carries no real detail.

    Empty snapshots and snapshots made only of the channel's sentinel label
    (written by agent-only intensity logging) count as placeholders.
    """
    if not isinstance(items, list) or not items:
        return True
    label = PLACEHOLDER_LABELS[channel]
    return all(isinstance(item, dict) and item.get("exercise") == label for item in items)


class ChecklistReconciler:
    """Owns the completion log, day totals and snapshots."""

    def __init__(self, store: ChecklistStore, resolver: PlanResolver | None = None):
        self.store = store
        self.resolver = resolver or PlanResolver(store)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def _snapshot_items(self, plan: Plan, day: date, log_plan_id: int) -> list[dict[str, Any]]:
        entries = self.store.list_completion_log(day, plan.channel, log_plan_id)
        completed = {entry.exercise_key for entry in entries if entry.completed}
        ordered = [key for key in plan.keys if key in completed]
        known = set(ordered)
        ordered.extend(entry.exercise_key for entry in entries if entry.completed and entry.exercise_key not in known)
        return [{"exercise": key, "completed": True} for key in ordered]

    def refresh_derived(self, day: date, plan: Plan, log_plan_id: int | None = None) -> int:
        """Recompute and persist the day total and snapshot for a plan's log.

        Args:
            day: Date to refresh
            plan: Plan supplying item order and per-key intensity
            log_plan_id: Plan id the log rows are stored under (defaults to plan.id;
                differs when a logged plan no longer exists)

        Returns:
            The raw day total
        """
        channel = plan.channel
        if log_plan_id is None:
            log_plan_id = plan.id
        entries = self.store.list_completion_log(day, channel, log_plan_id)

        # An agent-logged total stands until an item is actually completed
        if not any(entry.completed for entry in entries):
            stored = self.store.get_snapshot(day, channel)
            if stored is not None and is_placeholder_snapshot(stored, channel):
                total = self.store.get_day_intensity(day, channel)
                logger.debug(f"[RECONCILER] {day} ({channel}) keeps agent-logged total={total}")
                return total

        total = accumulate_intensity(entries, plan.items)
        if total > 0:
            self.store.upsert_day_intensity(day, channel, total)
        else:
            self.store.delete_day_intensity(day, channel)

        snapshot = self._snapshot_items(plan, day, log_plan_id)
        if snapshot:
            self.store.upsert_snapshot(day, channel, snapshot)
        else:
            self.store.delete_snapshot(day, channel)

        logger.debug(f"[RECONCILER] {day} ({channel}) plan {log_plan_id}: total={total} snapshot={len(snapshot)} items")
        return total

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_day(self, day: date, channel: Channel) -> DayChecklist:
        """Resolve and materialize the plan for a date, returning plan + log."""
        plan = self.resolver.resolve(day, channel)
        self.resolver.materialize(day, plan)
        total = self.refresh_derived(day, plan)
        logs = self.store.list_completion_log(day, channel, plan.id)
        return DayChecklist(
            date=day,
            channel=channel,
            plan=plan,
            logs=logs,
            total=total,
            level=map_intensity_to_level(total),
        )

    def heatmap(self, start: date, end: date, channel: Channel, details: bool = False) -> Heatmap:
        """Aggregate totals for [start, end] with optional per-day item details.

        Placeholder snapshots are hidden from details; their totals still count.
        """
        if start > end:
            raise ValidationError("start", "start must not be after end")

        days = [
            HeatmapDay(day=day, total=total, level=map_intensity_to_level(total))
            for day, total in self.store.read_heatmap_range(start, end, channel)
        ]

        detail_map = None
        if details:
            detail_map = {}
            for day, by_channel in self.store.read_snapshots_range(start, end).items():
                entry = {}
                for name in CHANNELS:
                    items = by_channel.get(name, [])
                    entry[name] = [] if is_placeholder_snapshot(items, name) else normalize_completed_items(items)
                if entry["workout"] or entry["mobility"]:
                    detail_map[day.isoformat()] = entry

        return Heatmap(start=start, end=end, channel=channel, days=days, details=detail_map)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_completion(self, day: date, channel: Channel, plan_id: int, exercise_key: str, completed: bool) -> CompletionResult:
        """Set one exercise's completion flag and refresh derived values.

        Returns:
            CompletionResult with whether every item of the plan is now done
        """
        if not exercise_key:
            raise ValidationError("exercise", "exercise is required")

        changed = self.store.upsert_completion_log(day, channel, plan_id, exercise_key, completed)
        entries = self.store.list_completion_log(day, channel, plan_id)
        done = sum(1 for entry in entries if entry.completed)
        all_completed = len(entries) > 0 and done == len(entries)

        if all_completed and plan_id != 0 and self.store.mark_plan_completed(channel, plan_id):
            logger.info(f"[RECONCILER] {channel} plan {plan_id} completed for the first time on {day}")

        plan = self.resolver.plan_for_log(day, channel, plan_id)
        total = self.refresh_derived(day, plan, plan_id)
        logger.info(
            f"[RECONCILER] {day} ({channel}) plan {plan_id} {exercise_key!r} -> completed={completed} "
            f"(changed={changed}, total={total}, all_completed={all_completed})"
        )
        return CompletionResult(all_completed=all_completed, total=total, level=map_intensity_to_level(total))

    def replace_checklist(self, day: date, channel: Channel, focus: str | None, items: Any) -> DayChecklist:
        """Replace a date's checklist with a client-edited override.

        The override plan is upserted, every log row for the date/channel is
        replaced by rows seeded with the submitted completed flags, and the
        derived values are recomputed.
        """
        if not isinstance(items, list):
            raise ValidationError("items", "items must be a list")

        sanitized = sanitize_checklist_items(items)
        plan_focus = focus or "custom"
        stored = [
            {"exercise": item["exercise"]} if item["intensity"] is None else {"exercise": item["exercise"], "intensity": item["intensity"]}
            for item in sanitized
        ]
        existing = self.store.get_override_plan_for_date(day, channel)
        difficulty = existing.difficulty if existing is not None else None
        self.store.upsert_override_plan(day, channel, plan_focus, stored, difficulty)

        normalized = normalize_exercises(stored, default_intensity_for_focus(plan_focus))
        self.store.delete_completion_logs(day, channel)
        for item, submitted in zip(normalized, sanitized, strict=True):
            self.store.upsert_completion_log(day, channel, 0, item.key, submitted["completed"])

        result = self.load_day(day, channel)
        logger.info(
            f"[RECONCILER] Replaced {channel} checklist on {day}: {len(normalized)} items, total={result.total}"
        )
        return result

    def save_daily_plan(
        self,
        day: date,
        channel: Channel,
        focus: str | None,
        exercises: Any,
        difficulty: Any = None,
    ) -> int:
        """Store an agent-authored override plan for a date.

        The day is reloaded against the new override right away, so logs of
        the previously resolved plan are cleared and the total and snapshot
        switch over in the same unit of work.

        Returns:
            Number of exercises stored
        """
        if not isinstance(exercises, list) or not exercises:
            raise ValidationError("exercises", "exercises must be a non-empty array")
        safe_difficulty = clamp_intensity(difficulty, 0) if difficulty is not None else None
        self.store.upsert_override_plan(day, channel, focus or "custom", exercises, safe_difficulty)
        self.load_day(day, channel)
        logger.info(f"[RECONCILER] Saved {channel} daily plan for {day} with {len(exercises)} exercises")
        return len(exercises)

    def get_daily_plan(self, day: date, channel: Channel) -> Plan | None:
        override = self.store.get_override_plan_for_date(day, channel)
        if override is None:
            return None
        return self.resolver.plan_for_log(day, channel, 0)

    def record_agent_intensity(self, day: date, channel: Channel, intensity: Any) -> int:
        """Set a day's total directly (agent-only logging, no checklist).

        A placeholder snapshot is written only when the day has no snapshot,
        so real checklist detail is never replaced.

        Returns:
            The stored total
        """
        total = 0 if intensity is None else clamp_intensity(intensity, -1)
        if total < 0:
            raise ValidationError("intensity", "intensity must be a non-negative integer")

        if total == 0:
            self.store.delete_day_intensity(day, channel)
            self.store.delete_snapshot(day, channel)
        else:
            self.store.upsert_day_intensity(day, channel, total)
            if self.store.get_snapshot(day, channel) is None:
                self.store.upsert_snapshot(day, channel, [{"exercise": PLACEHOLDER_LABELS[channel], "completed": True}])
        logger.info(f"[RECONCILER] Agent intensity for {day} ({channel}): total={total}")
        return total


def default_heatmap_window(end: date, days: int) -> tuple[date, date]:
    """Inclusive [start, end] covering `days` days ending at `end`."""
    return end - timedelta(days=days - 1), end
