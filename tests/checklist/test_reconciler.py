"""Tests for completion logging and derived-value reconciliation."""

from datetime import date

import pytest

from slowburn.checklist.errors import ValidationError
from slowburn.checklist.reconciler import default_heatmap_window, is_placeholder_snapshot
from slowburn.checklist.types import LogEntry

DAY = date(2024, 5, 10)
NEXT_DAY = date(2024, 5, 11)


@pytest.fixture
def rotation_plan(store):
    return store.add_rotation_plan(
        "workout",
        1,
        "strength",
        [
            {"exercise": "deadlift", "sets": 3, "intensity": 4},
            {"exercise": "row", "sets": 3, "intensity": 3},
            "plank",
        ],
    )


class TestPlaceholderSnapshot:
    def test_empty_is_placeholder(self):
        assert is_placeholder_snapshot([], "workout")
        assert is_placeholder_snapshot(None, "workout")

    def test_sentinel_only(self):
        assert is_placeholder_snapshot([{"exercise": "completed via api", "completed": True}], "workout")
        assert is_placeholder_snapshot([{"exercise": "mobility completed via api"}], "mobility")

    def test_sentinel_is_channel_specific(self):
        assert not is_placeholder_snapshot([{"exercise": "completed via api"}], "mobility")

    def test_real_items(self):
        items = [{"exercise": "completed via api"}, {"exercise": "squats"}]
        assert not is_placeholder_snapshot(items, "workout")


class TestLoadDay:
    def test_default_plan_day(self, reconciler):
        day = reconciler.load_day(DAY, "workout")
        assert day.plan.source == "default"
        assert [entry.exercise_key for entry in day.logs] == ["squats", "push-ups", "plank"]
        assert day.total == 0
        assert day.level == 0

    def test_load_is_idempotent(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "deadlift (3 sets)", True)
        first = reconciler.load_day(DAY, "workout")
        second = reconciler.load_day(DAY, "workout")
        assert first == second
        assert store.get_day_intensity(DAY, "workout") == 4


class TestSetCompletion:
    def test_total_tracks_completed_items(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")

        result = reconciler.set_completion(DAY, "workout", rotation_plan.id, "deadlift (3 sets)", True)
        assert result.total == 4
        assert result.level == 1
        assert not result.all_completed

        result = reconciler.set_completion(DAY, "workout", rotation_plan.id, "row (3 sets)", True)
        assert result.total == 7
        assert result.level == 2

        result = reconciler.set_completion(DAY, "workout", rotation_plan.id, "deadlift (3 sets)", False)
        assert result.total == 3
        assert store.get_day_intensity(DAY, "workout") == 3

    def test_snapshot_follows_plan_order(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "deadlift (3 sets)", True)
        assert store.get_snapshot(DAY, "workout") == [
            {"exercise": "deadlift (3 sets)", "completed": True},
            {"exercise": "plank", "completed": True},
        ]

    def test_uncompleting_everything_removes_derived_rows(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)
        result = reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", False)
        assert result.total == 0
        assert store.get_day_intensity(DAY, "workout") == 0
        assert store.get_snapshot(DAY, "workout") is None

    def test_completed_at_is_stamped_once(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        for key in ("deadlift (3 sets)", "row (3 sets)", "plank"):
            result = reconciler.set_completion(DAY, "workout", rotation_plan.id, key, True)
        assert result.all_completed
        stamped = store.get_plan_row("workout", rotation_plan.id).completed_at
        assert stamped is not None

        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", False)
        result = reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)
        assert result.all_completed
        assert store.get_plan_row("workout", rotation_plan.id).completed_at == stamped

    def test_replaying_a_write_changes_nothing(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        first = reconciler.set_completion(DAY, "workout", rotation_plan.id, "row (3 sets)", True)
        assert store.upsert_completion_log(DAY, "workout", rotation_plan.id, "row (3 sets)", True) is False
        second = reconciler.set_completion(DAY, "workout", rotation_plan.id, "row (3 sets)", True)
        assert first == second

    def test_unknown_plan_uses_log_rows_for_totals(self, reconciler, store):
        result = reconciler.set_completion(DAY, "workout", 999, "mystery", True)
        assert result.total == 1
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "mystery", "completed": True}]

    def test_empty_key_rejected(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.set_completion(DAY, "workout", 0, "", True)

    def test_channels_are_independent(self, reconciler, store):
        reconciler.load_day(DAY, "workout")
        reconciler.load_day(DAY, "mobility")
        reconciler.set_completion(DAY, "workout", 0, "squats", True)
        reconciler.set_completion(DAY, "mobility", 0, "hip openers", True)
        assert store.get_day_intensity(DAY, "workout") == 1
        # Mobility default items carry zero intensity
        assert store.get_day_intensity(DAY, "mobility") == 0
        assert store.get_snapshot(DAY, "mobility") == [{"exercise": "hip openers", "completed": True}]


class TestReplaceChecklist:
    def test_round_trip(self, reconciler, store):
        result = reconciler.replace_checklist(
            DAY,
            "workout",
            "legs",
            ["lunges", {"exercise": "squats", "intensity": 3, "completed": True}],
        )
        assert result.plan.source == "override"
        assert result.plan.focus == "legs"
        assert [(entry.exercise_key, entry.completed) for entry in result.logs] == [
            ("lunges", False),
            ("squats", True),
        ]
        assert result.total == 3
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "squats", "completed": True}]

        reloaded = reconciler.load_day(DAY, "workout")
        assert reloaded == result

    def test_replace_clears_previous_plan_logs(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)

        result = reconciler.replace_checklist(DAY, "workout", None, ["bike"])
        assert result.plan.focus == "custom"
        assert [entry.exercise_key for entry in result.logs] == ["bike"]
        assert store.list_completion_log(DAY, "workout", rotation_plan.id) == []
        assert result.total == 0
        assert store.get_snapshot(DAY, "workout") is None

    def test_replace_keeps_existing_difficulty(self, reconciler, store):
        reconciler.save_daily_plan(DAY, "workout", "legs", ["squats"], difficulty=5)
        result = reconciler.replace_checklist(DAY, "workout", "legs", ["squats", "lunges"])
        assert result.plan.difficulty == 5

    def test_items_must_be_a_list(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.replace_checklist(DAY, "workout", None, "squats")


class TestDailyPlan:
    def test_save_and_get(self, reconciler):
        count = reconciler.save_daily_plan(DAY, "workout", "push", ["push-ups", {"exercise": "dips", "reps": 8}], 4)
        assert count == 2
        plan = reconciler.get_daily_plan(DAY, "workout")
        assert plan is not None
        assert plan.source == "override"
        assert plan.keys == ["push-ups", "dips (8 reps)"]
        assert plan.difficulty == 4

    def test_missing_plan(self, reconciler):
        assert reconciler.get_daily_plan(DAY, "workout") is None

    @pytest.mark.parametrize("exercises", [[], None, "squats"])
    def test_exercises_required(self, reconciler, exercises):
        with pytest.raises(ValidationError):
            reconciler.save_daily_plan(DAY, "workout", "push", exercises)

    def test_daily_plan_replaces_rotation_for_that_day(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)
        reconciler.save_daily_plan(DAY, "workout", "legs", ["lunges"])

        day = reconciler.load_day(DAY, "workout")
        assert day.plan.source == "override"
        assert day.total == 0
        assert store.get_day_intensity(DAY, "workout") == 0

    def test_saving_switches_derived_values_immediately(self, reconciler, store, rotation_plan):
        reconciler.load_day(DAY, "workout")
        reconciler.set_completion(DAY, "workout", rotation_plan.id, "plank", True)
        assert store.get_day_intensity(DAY, "workout") == 1

        reconciler.save_daily_plan(DAY, "workout", "legs", ["lunges"])
        assert store.get_day_intensity(DAY, "workout") == 0
        assert store.get_snapshot(DAY, "workout") is None
        assert store.list_completion_log(DAY, "workout", rotation_plan.id) == []
        assert store.list_completion_log(DAY, "workout", 0) == [LogEntry("lunges", False)]


class TestAgentIntensity:
    def test_reading_the_day_keeps_agent_total(self, reconciler, store):
        reconciler.record_agent_intensity(DAY, "workout", 6)

        day = reconciler.load_day(DAY, "workout")
        assert day.total == 6
        assert day.level == 2
        assert store.get_day_intensity(DAY, "workout") == 6
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "completed via api", "completed": True}]

        reconciler.load_day(DAY, "workout")
        assert store.get_day_intensity(DAY, "workout") == 6

    def test_completing_an_item_takes_over_from_agent_total(self, reconciler, store):
        reconciler.record_agent_intensity(DAY, "workout", 6)
        reconciler.load_day(DAY, "workout")

        result = reconciler.set_completion(DAY, "workout", 0, "squats", True)
        assert result.total == 1
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "squats", "completed": True}]

    def test_writes_total_and_placeholder(self, reconciler, store):
        assert reconciler.record_agent_intensity(DAY, "workout", 6) == 6
        assert store.get_day_intensity(DAY, "workout") == 6
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "completed via api", "completed": True}]

    def test_keeps_real_snapshot(self, reconciler, store):
        reconciler.replace_checklist(DAY, "workout", None, [{"exercise": "row", "completed": True}])
        reconciler.record_agent_intensity(DAY, "workout", 9)
        assert store.get_day_intensity(DAY, "workout") == 9
        assert store.get_snapshot(DAY, "workout") == [{"exercise": "row", "completed": True}]

    def test_zero_clears_day(self, reconciler, store):
        reconciler.record_agent_intensity(DAY, "mobility", 3)
        reconciler.record_agent_intensity(DAY, "mobility", 0)
        assert store.get_day_intensity(DAY, "mobility") == 0
        assert store.get_snapshot(DAY, "mobility") is None

    def test_negative_clamps_to_zero(self, reconciler):
        assert reconciler.record_agent_intensity(DAY, "workout", -4) == 0

    def test_non_numeric_rejected(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.record_agent_intensity(DAY, "workout", "hard")


class TestHeatmap:
    def test_only_days_with_totals(self, reconciler):
        reconciler.record_agent_intensity(DAY, "workout", 12)
        reconciler.record_agent_intensity(NEXT_DAY, "mobility", 2)

        start, end = default_heatmap_window(NEXT_DAY, 30)
        heatmap = reconciler.heatmap(start, end, "workout")
        assert [(day.day, day.total, day.level) for day in heatmap.days] == [(DAY, 12, 4)]
        assert heatmap.details is None

    def test_details_hide_placeholders(self, reconciler):
        reconciler.record_agent_intensity(DAY, "workout", 5)
        reconciler.replace_checklist(NEXT_DAY, "mobility", "mobility", [{"exercise": "pigeon", "completed": True}])

        heatmap = reconciler.heatmap(DAY, NEXT_DAY, "workout", details=True)
        assert heatmap.details == {
            NEXT_DAY.isoformat(): {
                "workout": [],
                "mobility": [{"exercise": "pigeon", "completed": True}],
            }
        }

    def test_start_after_end_rejected(self, reconciler):
        with pytest.raises(ValidationError):
            reconciler.heatmap(NEXT_DAY, DAY, "workout")


def test_default_heatmap_window():
    assert default_heatmap_window(date(2024, 1, 30), 30) == (date(2024, 1, 1), date(2024, 1, 30))


def test_repeated_completion_leaves_rows_identical(reconciler, store, rotation_plan):
    from sqlalchemy import select

    from slowburn.db.models import CompletedSnapshot, CompletionLog, DayIntensity

    def dump():
        session = store.session
        logs = session.execute(
            select(CompletionLog.exercise_key, CompletionLog.completed, CompletionLog.updated_at).order_by(CompletionLog.id)
        ).all()
        totals = session.execute(select(DayIntensity.total, DayIntensity.updated_at)).all()
        snapshots = session.execute(select(CompletedSnapshot.items, CompletedSnapshot.updated_at)).all()
        return logs, totals, snapshots

    reconciler.load_day(DAY, "workout")
    reconciler.set_completion(DAY, "workout", rotation_plan.id, "row (3 sets)", True)
    before = dump()
    reconciler.set_completion(DAY, "workout", rotation_plan.id, "row (3 sets)", True)
    assert dump() == before
