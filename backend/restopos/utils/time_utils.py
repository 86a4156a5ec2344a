"""Time utilities: UTC storage timestamps and the restaurant's local date."""

from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from restopos import config
from restopos.errors import InvalidInput

try:
    LOCAL_TZ = ZoneInfo(config.APP_TIMEZONE)
except ZoneInfoNotFoundError:
    # Fallback to system local timezone when tzdata is unavailable (Windows)
    LOCAL_TZ = datetime.now().astimezone().tzinfo


def utcnow() -> datetime:
    """Return naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_local() -> datetime:
    """Return timezone-aware datetime in the restaurant's timezone."""
    return datetime.now(LOCAL_TZ)


def iso_utc(dt: Optional[datetime]) -> Optional[str]:
    """Render a stored (naive UTC) datetime as ISO 8601 with offset."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def parse_ui_date(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """
    Parse a date coming from a client.

    Accepts ``YYYY-MM-DD`` (midnight) or a full ISO datetime; aware values
    are converted to naive UTC. Anything else raises ``InvalidInput``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        try:
            if len(text) == 10:
                parsed = datetime.combine(date.fromisoformat(text), time.min)
            else:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidInput(f"Invalid date: {value}", code="invalid_date")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
