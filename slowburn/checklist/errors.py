"""Error types for the checklist engine.

- ValidationError: request input rejected before any mutation (HTTP 400)
- NotFoundPlanError: referenced rotation plan no longer exists (degraded by the resolver)
- MalformedStoredJSONError: stored item list does not parse (treated as empty)
"""


class ChecklistError(RuntimeError):
    """Base class for checklist business errors (not database errors)."""


class ValidationError(ChecklistError):
    """Raised when request input is malformed.

    Attributes:
        field: Name of the offending input field
        message: Human-readable reason
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


class NotFoundPlanError(ChecklistError):
    """Raised when a plan id does not resolve to a stored rotation plan."""

    def __init__(self, channel: str, plan_id: int):
        self.channel = channel
        self.plan_id = plan_id
        super().__init__(f"{channel} plan {plan_id} not found")


class MalformedStoredJSONError(ChecklistError):
    """Raised when a stored exercise list is not a JSON array."""
