from datetime import datetime, timezone, tzinfo
import os
import sys
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import RenderError


def env_var(name: str, allow_null: bool = False) -> str | None:
    """A useful utility for validating the presence of an environment variable before
    loading"""
    if not allow_null and name not in os.environ:
        sys.exit(f"{name} was not set in the environment")
    if allow_null and name not in os.environ:
        return None
    value = os.environ[name]
    if not allow_null and not value:
        sys.exit(f"The value of {name} in the environment cannot be empty")
    return value


def configured_timezone() -> tzinfo | None:
    """The viewer's zone from RULES_TIMEZONE, or None for the system local zone."""
    name = env_var("RULES_TIMEZONE", allow_null=True)
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        sys.exit(f"RULES_TIMEZONE is not a known time zone: {name}")


def utc_to_local(utc_time: str, tz: tzinfo | None = None) -> str:
    """Convert an "HH:MM" time of day stored in UTC to the viewer's zone.

    Args:
        utc_time: Time of day in UTC as stored on the wire
        tz: Zone to convert into, defaults to the system local zone

    Returns:
        The local time of day formatted as "HH:MM"
    """
    try:
        hours, minutes = (int(part) for part in utc_time.split(":")[:2])
        moment = datetime.now(timezone.utc).replace(
            hour=hours, minute=minutes, second=0, microsecond=0
        )
    except (AttributeError, TypeError, ValueError) as error:
        raise RenderError(f"Invalid time of day '{utc_time}'") from error

    local = moment.astimezone(tz) if tz is not None else moment.astimezone()
    return f"{local.hour:02d}:{local.minute:02d}"


def format_value(value: Any) -> str:
    """Format a property value the way the gateway UI prints it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
