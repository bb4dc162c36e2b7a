from __future__ import annotations

import re
from datetime import date, datetime, time, timezone


FIXED_TIMESTAMP_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T"
    r"\d{2}:\d{2}:\d{2}"
    r"(?:\.\d{1,9})?"
    r"(?:Z|[+\-]\d{2}:\d{2})?$"
)
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(?::\d{2})?$")


def utc_now(*, deterministic: bool = False) -> datetime:
    if deterministic:
        return FIXED_TIMESTAMP_UTC
    return normalize_timestamp(datetime.now(timezone.utc))


def normalize_timestamp(dt: datetime) -> datetime:
    """Attach UTC to naive values and truncate to millisecond precision."""

    if not isinstance(dt, datetime):
        raise TypeError("timestamp must be a datetime")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def format_timestamp(dt: datetime) -> str:
    """Format as YYYY-MM-DDTHH:MM:SS.mmm+HH:MM (the single on-disk form)."""

    dt = normalize_timestamp(dt)
    return dt.isoformat(timespec="milliseconds")


def parse_timestamp(text: str) -> datetime:
    if not isinstance(text, str) or not text.strip():
        raise ValueError("date-time missing/empty")
    text = text.strip()
    if _TIMESTAMP_RE.match(text) is None:
        raise ValueError(f"invalid ISO-8601 date-time: {text!r}")
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat() before 3.11 only takes 3 or 6 fractional digits.
    m = re.match(r"^(.*T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(.*)$", text)
    if m is not None and m.group(2) is not None:
        frac = (m.group(2) + "000000")[:6]
        text = f"{m.group(1)}.{frac}{m.group(3)}"
    return normalize_timestamp(datetime.fromisoformat(text))


def format_date(d: date) -> str:
    return d.isoformat()


def parse_date(text: str) -> date:
    if not isinstance(text, str) or _DATE_RE.match(text.strip()) is None:
        # Some exporters write a full timestamp where a date is expected.
        if isinstance(text, str) and "T" in text:
            return parse_timestamp(text).date()
        raise ValueError(f"invalid date: {text!r}")
    return date.fromisoformat(text.strip())


def format_time(t: time) -> str:
    return t.strftime("%H:%M:%S")


def parse_time(text: str) -> time:
    if not isinstance(text, str) or _TIME_RE.match(text.strip()) is None:
        raise ValueError(f"invalid time: {text!r}")
    return time.fromisoformat(text.strip())
