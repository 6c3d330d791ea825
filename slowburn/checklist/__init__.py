"""Checklist-to-intensity reconciliation engine.

Normalizes plan entries into keyed exercises, resolves which plan applies to
a date, and keeps day totals and completed-item snapshots consistent with
the completion log.
"""

from slowburn.checklist.intensity import accumulate_intensity, map_intensity_to_level
from slowburn.checklist.normalize import clamp_intensity, normalize_exercises
from slowburn.checklist.reconciler import ChecklistReconciler, is_placeholder_snapshot
from slowburn.checklist.resolver import PlanResolver
from slowburn.checklist.types import ExerciseItem, Plan

__all__ = [
    "ChecklistReconciler",
    "ExerciseItem",
    "Plan",
    "PlanResolver",
    "accumulate_intensity",
    "clamp_intensity",
    "is_placeholder_snapshot",
    "map_intensity_to_level",
    "normalize_exercises",
]
