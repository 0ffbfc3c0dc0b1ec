"""
Input validation utilities for tool arguments.
Validates and normalizes dates, recurrence rules and loosely typed JSON arguments.
"""

import json
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from bttk_mcp.utils.exceptions import ValidationError

DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
RFC3339_PATTERN = re.compile(
    r"(?P<local>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.\d+)?(?P<offset>Z|[+-]\d{2}:\d{2})",
    re.ASCII
)
LOCAL_TIME_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?", re.ASCII)


def require_string(arguments: Dict[str, Any], name: str, message: Optional[str] = None) -> str:
    """
    Fetch a required string argument.

    Args:
        arguments: Tool arguments
        name: Argument name
        message: Error message override

    Returns:
        The argument value

    Raises:
        ValidationError: If the argument is missing or not a string
    """
    value = arguments.get(name)
    if not isinstance(value, str):
        raise ValidationError(
            message or f"{name} argument must be a string",
            field=name,
            value=value
        )
    return value


def optional_string(arguments: Dict[str, Any], name: str, default: str = "") -> str:
    """Fetch a string argument, falling back to default for missing or non-string values."""
    value = arguments.get(name)
    return value if isinstance(value, str) else default


def optional_int(arguments: Dict[str, Any], name: str, default: int = 0) -> int:
    """
    Fetch a numeric argument as int.

    JSON numbers arrive as int or float; booleans are rejected as numbers.
    """
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


def optional_bool(arguments: Dict[str, Any], name: str, default: bool = False) -> bool:
    value = arguments.get(name)
    return value if isinstance(value, bool) else default


def format_rfc3339(dt: datetime) -> str:
    """Format an aware datetime as RFC3339 with seconds precision, UTC as 'Z'."""
    text = dt.isoformat(timespec="seconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_event_datetime(value: str) -> Dict[str, str]:
    """
    Parse an event boundary into a Calendar API EventDateTime.

    Supports formats:
    - Date: "2024-01-15" (all-day event)
    - RFC3339: "2024-01-15T14:30:00+03:00" or "2024-01-15T11:30:00Z"

    Args:
        value: Date or date-time string

    Returns:
        {"date": ...} or {"dateTime": ...}

    Raises:
        ValidationError: If the value is neither format
    """
    text = value or ""

    if DATE_PATTERN.fullmatch(text):
        try:
            return {"date": date.fromisoformat(text).isoformat()}
        except ValueError:
            pass

    match = RFC3339_PATTERN.fullmatch(text)
    if match is None:
        reason = "missing time zone offset" if LOCAL_TIME_PATTERN.fullmatch(text) else "unrecognized format"
        raise ValidationError(
            f'parsing time "{value}" as RFC3339: {reason}',
            field="datetime",
            value=value
        )

    # seconds precision: the fraction is dropped before parsing
    offset = "+00:00" if match.group("offset") == "Z" else match.group("offset")
    try:
        dt = datetime.fromisoformat(match.group("local") + offset)
    except ValueError as e:
        raise ValidationError(
            f'parsing time "{value}" as RFC3339: {e}',
            field="datetime",
            value=value
        )

    return {"dateTime": format_rfc3339(dt)}


def parse_recurrence(value: Any) -> Optional[List[str]]:
    """
    Normalize the recurrence argument into a list of RRULE strings.

    Accepts a JSON array encoded as a string, a single rule string, or a
    list. Non-string list members are dropped.

    Args:
        value: Raw argument value

    Returns:
        List of rules, or None when no recurrence was given

    Raises:
        ValidationError: If a JSON-looking string does not decode to a list of strings
    """
    if isinstance(value, str) and value:
        if value.startswith("["):
            try:
                rules = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValidationError(f"invalid recurrence JSON: {e}", field="recurrence", value=value)
            if not isinstance(rules, list) or not all(isinstance(r, str) for r in rules):
                raise ValidationError("recurrence must be a list of strings", field="recurrence", value=value)
            return rules
        return [value]

    if isinstance(value, list):
        return [r for r in value if isinstance(r, str)]

    return None


def now_rfc3339() -> str:
    """Current time in RFC3339."""
    return format_rfc3339(datetime.now(timezone.utc).astimezone())
