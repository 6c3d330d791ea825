"""Plan resolution for a date and channel.

Resolution order (evaluated lazily on each read):
1. Override plan for the date (id 0); logs of any other plan on that date are cleared
2. Plan already logged on the date (non-zero preferred, then most recent)
3. Carry forward: the plan after the one logged on the most recent earlier date
4. First plan in rotation, or the synthetic default plan when the rotation is empty
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any

from loguru import logger

from slowburn.checklist.errors import MalformedStoredJSONError, NotFoundPlanError
from slowburn.checklist.intensity import default_intensity_for_focus
from slowburn.checklist.normalize import normalize_exercises
from slowburn.checklist.types import Channel, Plan
from slowburn.db.models import OverridePlan, RotationPlan
from slowburn.db.store import ChecklistStore

DEFAULT_PLANS: dict[str, dict[str, Any]] = {
    "workout": {
        "day_number": 0,
        "focus": "full body",
        "exercises": ["squats", "push-ups", "plank"],
        "difficulty": 3,
    },
    "mobility": {
        "day_number": 0,
        "focus": "mobility",
        "exercises": ["ankle circles", "hip openers", "thoracic rotations", "hamstring stretch"],
        "difficulty": 1,
    },
}


def decode_exercises(raw: str | None) -> list[Any]:
    """Decode a stored exercise list.

    Raises:
        MalformedStoredJSONError: If the text is not valid JSON or not an array
    """
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError as e:
        raise MalformedStoredJSONError(f"stored exercises are not valid JSON: {e}") from e
    if not isinstance(value, list):
        raise MalformedStoredJSONError(f"stored exercises must be a list, got {type(value).__name__}")
    return value


class PlanResolver:
    """Selects and materializes the plan that applies to a date."""

    def __init__(self, store: ChecklistStore):
        self.store = store

    # ------------------------------------------------------------------
    # Plan construction
    # ------------------------------------------------------------------

    def _safe_exercises(self, raw: str | None, origin: str) -> list[Any]:
        try:
            return decode_exercises(raw)
        except MalformedStoredJSONError as e:
            logger.warning(f"[RESOLVER] {origin}: {e}; resolving with no exercises")
            return []

    def default_plan(self, channel: Channel) -> Plan:
        defaults = DEFAULT_PLANS[channel]
        return Plan(
            id=0,
            channel=channel,
            day_number=defaults["day_number"],
            focus=defaults["focus"],
            items=tuple(normalize_exercises(defaults["exercises"], default_intensity_for_focus(defaults["focus"]))),
            difficulty=defaults["difficulty"],
            source="default",
        )

    def _from_rotation_row(self, channel: Channel, row: RotationPlan) -> Plan:
        exercises = self._safe_exercises(row.exercises, f"{channel} plan {row.id}")
        return Plan(
            id=row.id,
            channel=channel,
            day_number=row.day_number or 0,
            focus=row.focus or "",
            items=tuple(normalize_exercises(exercises, default_intensity_for_focus(row.focus))),
            difficulty=row.difficulty if row.difficulty is not None else DEFAULT_PLANS[channel]["difficulty"],
            source="rotation",
        )

    def _from_override_row(self, channel: Channel, row: OverridePlan) -> Plan:
        exercises = self._safe_exercises(row.exercises, f"{channel} override {row.plan_date}")
        return Plan(
            id=0,
            channel=channel,
            day_number=0,
            focus=row.focus or "",
            items=tuple(normalize_exercises(exercises, default_intensity_for_focus(row.focus))),
            difficulty=row.difficulty if row.difficulty is not None else DEFAULT_PLANS[channel]["difficulty"],
            source="override",
        )

    def first_plan(self, channel: Channel) -> Plan:
        row = self.store.get_first_plan_in_rotation(channel)
        if row is None:
            return self.default_plan(channel)
        return self._from_rotation_row(channel, row)

    def next_plan(self, channel: Channel, after_day_number: int) -> Plan:
        """Next plan in rotation, wrapping to the first."""
        row = self.store.get_next_plan_after(channel, after_day_number)
        if row is None:
            return self.first_plan(channel)
        return self._from_rotation_row(channel, row)

    def get_plan(self, channel: Channel, plan_id: int) -> Plan:
        """Rotation plan by id (0 is the default plan).

        Raises:
            NotFoundPlanError: If no stored plan has this id
        """
        if plan_id == 0:
            return self.default_plan(channel)
        row = self.store.get_plan_row(channel, plan_id)
        if row is None:
            raise NotFoundPlanError(channel, plan_id)
        return self._from_rotation_row(channel, row)

    def _get_plan_or_first(self, channel: Channel, plan_id: int) -> Plan:
        try:
            return self.get_plan(channel, plan_id)
        except NotFoundPlanError as e:
            logger.warning(f"[RESOLVER] {e}; falling back to first plan in rotation")
            return self.first_plan(channel)

    def plan_for_log(self, day: date, channel: Channel, plan_id: int) -> Plan:
        """Plan that owns log rows written under plan_id on a date.

        Plan id 0 on a date with an override refers to the override.
        """
        if plan_id == 0:
            override = self.store.get_override_plan_for_date(day, channel)
            if override is not None:
                return self._from_override_row(channel, override)
        return self._get_plan_or_first(channel, plan_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, day: date, channel: Channel) -> Plan:
        """Determine which plan applies to a date.

        An override clears that date's logs for any other plan id, since
        switching plans resets log ownership.
        """
        override = self.store.get_override_plan_for_date(day, channel)
        if override is not None:
            cleared = self.store.delete_completion_logs_for_other_plans(day, channel, 0)
            if cleared:
                logger.info(f"[RESOLVER] Override on {day} ({channel}) cleared {cleared} log rows of other plans")
            return self._from_override_row(channel, override)

        logged_plan_id = self.store.plan_id_for_date(day, channel)
        if logged_plan_id is not None:
            return self._get_plan_or_first(channel, logged_plan_id)

        previous_day = self.store.latest_logged_date_before(day, channel)
        if previous_day is not None:
            previous_plan_id = self.store.plan_id_for_date(previous_day, channel)
            if previous_plan_id is not None:
                previous = self._get_plan_or_first(channel, previous_plan_id)
                plan = self.next_plan(channel, previous.day_number)
                logger.debug(
                    f"[RESOLVER] {day} ({channel}) carries forward from {previous_day}: "
                    f"plan {previous.id} -> plan {plan.id}"
                )
                return plan

        return self.first_plan(channel)

    def materialize(self, day: date, plan: Plan) -> None:
        """Reconcile the date's log rows with the plan's current keys.

        Inserts completed=False rows for new keys and prunes rows for keys no
        longer in the plan. Runs inside the caller's unit of work, so either
        all changes commit or none do.
        """
        keys = plan.keys
        pruned = self.store.delete_completion_log_keys_not_in(day, plan.channel, plan.id, keys)
        inserted = self.store.insert_missing_completion_logs(day, plan.channel, plan.id, keys)
        if pruned or inserted:
            logger.debug(
                f"[RESOLVER] Materialized {plan.channel} plan {plan.id} on {day}: inserted={inserted} pruned={pruned}"
            )
