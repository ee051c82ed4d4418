from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional

_TRUE_FLAGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_FLAGS = {"0", "f", "F", "FALSE", "false", "False"}
_INT_RE = re.compile(r"^[+-]?[0-9]+$")
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
_DATE_RE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
# RFC3339 requires a full date, a 'T' separator, a time and an offset.
_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$",
    re.ASCII,
)


# PUBLIC_INTERFACE
def page_count(total: int, limit: int) -> int:
    """
    Number of pages needed to show `total` rows `limit` at a time.

    Returns 0 when there are no rows.
    """
    count = total // limit
    if total % limit != 0:
        count += 1
    return count


# PUBLIC_INTERFACE
def page_offset(page: int, limit: int) -> int:
    """Row offset of a 1-based page; pages below 2 start at 0."""
    if page > 1:
        return (page - 1) * limit
    return 0


# PUBLIC_INTERFACE
def parse_bool_flag(value: str) -> bool:
    """
    Parse a boolean query flag.

    Accepts 1, t, T, TRUE, true, True and their false counterparts.
    Raises ValueError for anything else.
    """
    if value in _TRUE_FLAGS:
        return True
    if value in _FALSE_FLAGS:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


# PUBLIC_INTERFACE
def parse_calendar_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD date. Raises ValueError otherwise."""
    if not _DATE_RE.fullmatch(value):
        raise ValueError(f"invalid date: {value!r}")
    return date.fromisoformat(value)


# PUBLIC_INTERFACE
def parse_int(value: str) -> int:
    """
    Parse a base-10 integer with an optional sign.

    Raises ValueError for anything else, including values outside the signed
    64-bit range that storage ids and limits are bound to.
    """
    if not _INT_RE.fullmatch(value):
        raise ValueError(f"invalid integer: {value!r}")
    parsed = int(value)
    if not INT64_MIN <= parsed <= INT64_MAX:
        raise ValueError(f"integer out of range: {value!r}")
    return parsed


# PUBLIC_INTERFACE
def parse_positive_int(value: Optional[str], default: int) -> int:
    """Parse a positive integer, falling back to `default` when absent, invalid or non-positive."""
    if value is None:
        return default
    try:
        parsed = parse_int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


# PUBLIC_INTERFACE
def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp such as '2024-06-07T15:00:00Z'.

    The result is timezone-aware. Raises ValueError when the string is not
    RFC3339 (missing time, missing offset, out-of-range fields).
    """
    s = value.strip()
    if not _RFC3339_RE.fullmatch(s):
        raise ValueError(f"invalid due_date {value!r}: expected RFC3339 timestamp")
    s = s[:10] + "T" + s[11:]
    if s[-1] in "Zz":
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError as e:
        raise ValueError(f"invalid due_date {value!r}: expected RFC3339 timestamp") from e


# PUBLIC_INTERFACE
def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
