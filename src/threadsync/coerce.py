"""Normalization of loosely typed remote fields.

The remote API mixes ISO strings, unix seconds and unix milliseconds for
timestamps and sometimes sends numbers as strings. All of that is handled
here; the rest of the package only sees canonical values.
"""

import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional, Union

from .log import get_logger

logger = get_logger(__name__)

# Epoch milliseconds for 2000-01-01T00:00:00Z. Smaller values are read as seconds.
MILLISECONDS_THRESHOLD = 946684800000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DIGITS = re.compile(r"^\d+$")

TimestampInput = Union[str, int, float, None]


def format_iso(value: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    value = value.astimezone(timezone.utc)
    # strftime("%Y") does not zero-pad years below 1000 on every platform.
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
        f".{value.microsecond // 1000:03d}Z"
    )


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def _from_epoch(value: Union[int, float]) -> str:
    millis = value if value >= MILLISECONDS_THRESHOLD else value * 1000
    return format_iso(_EPOCH + timedelta(milliseconds=millis))


def normalize_timestamp(value: TimestampInput) -> Optional[str]:
    """Convert a remote timestamp into an ISO-8601 UTC string.

    Returns ``None`` for empty input and for anything that cannot be
    parsed. Never raises.
    """
    if not value:
        return None

    try:
        if isinstance(value, bool):
            pass
        elif isinstance(value, str):
            text = value.strip()
            if _DIGITS.match(text):
                return _from_epoch(int(text))
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                # RFC 2822 / HTTP-date, e.g. "Tue, 05 Mar 2024 10:15:30 GMT"
                parsed = parsedate_to_datetime(text)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return format_iso(parsed)
        elif isinstance(value, (int, float)):
            return _from_epoch(value)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        logger.warning("timestamp_unparseable", value=value, error=str(exc))
        return None

    logger.warning("timestamp_unparseable", value=value)
    return None


def to_int(value: Any) -> Optional[int]:
    """Coerce a number or numeric string to ``int``; ``None`` if impossible."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, float):
            return int(value)
        text = str(value).strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))
    except (TypeError, ValueError, OverflowError):
        logger.warning("numeric_field_unparseable", value=value, expected="int")
        return None


def to_float(value: Any) -> Optional[float]:
    """Coerce a number or numeric string to ``float``; ``None`` if impossible."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value if isinstance(value, (int, float)) else str(value).strip())
    except (TypeError, ValueError):
        logger.warning("numeric_field_unparseable", value=value, expected="float")
        return None
