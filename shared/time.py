import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# --- Internal override for testing ---
_current_time_override: Optional[datetime] = None

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# === Time Access ===

def utcnow() -> datetime:
    return _current_time_override or datetime.now(timezone.utc)


def set_fake_utcnow(fake_time: datetime) -> None:
    global _current_time_override
    _current_time_override = fake_time


def clear_fake_utcnow() -> None:
    global _current_time_override
    _current_time_override = None

# === Time Parsing ===

def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 string. Supports trailing 'Z'. Returns a datetime; no timezone normalization here."""
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def ensure_aware_utc(dt: datetime) -> datetime:
    """Normalize any datetime to aware UTC (naive => assume UTC)."""
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Accept whatever Firestore (or a legacy writer) stored as a timestamp:
    DatetimeWithNanoseconds, datetime, ISO string or epoch millis.
    Returns aware UTC, or None when the value can't be interpreted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return ensure_aware_utc(parse_datetime(value))
        except ValueError:
            logger.warning("Unparseable timestamp %r", value)
            return None
    to_dt = getattr(value, "to_datetime", None)
    if callable(to_dt):
        return ensure_aware_utc(to_dt())
    return None
