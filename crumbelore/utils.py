import re
from datetime import datetime, timezone
from typing import Any, Optional

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted); None if unparseable."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def parse_int(value: Any) -> Optional[int]:
    """Lenient integer parsing: leading digits of a string, ints, floats.

    ``"12 copies"`` -> 12, ``"abc"`` -> None, ``3.9`` -> 3.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def slugify(title: str) -> str:
    """Lowercase, collapse whitespace runs to ``-``, drop chars outside [a-z0-9-]."""
    slug = _WHITESPACE.sub("-", (title or "").lower())
    return _NON_SLUG.sub("", slug)


def email_local_part(email: str) -> str:
    return (email or "").split("@")[0]
