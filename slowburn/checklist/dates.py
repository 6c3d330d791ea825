"""Calendar date and request field validation.

All dates cross the API boundary as YYYY-MM-DD text.
"""

import re
from datetime import date
from typing import Any

from loguru import logger

from slowburn.checklist.errors import ValidationError
from slowburn.checklist.types import CHANNELS, Channel

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def today_local() -> date:
    """Current date in the server's local timezone."""
    return date.today()


def parse_iso_date(value: Any, field: str = "date") -> date:
    """Parse a YYYY-MM-DD string.

    Raises:
        ValidationError: If the value is missing, not in YYYY-MM-DD form,
            or not a real calendar date
    """
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise ValidationError(field, f"{field} must be YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(field, f"{field} must be a valid calendar date") from e


def resolve_requested_date(value: Any) -> date:
    """Date for a read request; invalid or missing falls back to today."""
    if value:
        try:
            return parse_iso_date(value)
        except ValidationError:
            logger.debug(f"[DATES] Ignoring invalid requested date {value!r}, using today")
    return today_local()


def parse_channel(value: Any, field: str = "type") -> Channel:
    """Validate a channel name; missing means workout."""
    if value is None or value == "":
        return "workout"
    if value not in CHANNELS:
        raise ValidationError(field, f"{field} must be one of: {', '.join(CHANNELS)}")
    return value


def parse_plan_id(value: Any) -> int:
    """Validate a plan id (non-negative integer, numeric strings accepted)."""
    if value is None or value == "":
        raise ValidationError("planId", "planId is required")
    if isinstance(value, bool):
        raise ValidationError("planId", "planId must be an integer")
    if isinstance(value, int):
        plan_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        plan_id = int(value.strip())
    else:
        raise ValidationError("planId", "planId must be an integer")
    if plan_id < 0:
        raise ValidationError("planId", "planId must not be negative")
    return plan_id
