"""
Date helpers: report period windows and Moscow-time defaults.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

# Both marketplaces report in Moscow time
MOSCOW_TZ = ZoneInfo("Europe/Moscow")


@dataclass(frozen=True)
class PeriodWindow:
    """Inclusive calendar date range for a report query."""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Invalid period: start {self.start} is after end {self.end}")

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def iso(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end

    @classmethod
    def single_day(cls, day: date) -> "PeriodWindow":
        return cls(day, day)

    @classmethod
    def trailing(cls, end: date, days: int) -> "PeriodWindow":
        """Window of `days` days ending on `end` (inclusive)."""
        if days < 1:
            raise ValueError(f"Window length must be positive, got {days}")
        return cls(end - timedelta(days=days - 1), end)

    def __str__(self) -> str:
        if self.start == self.end:
            return self.start.isoformat()
        return f"{self.start.isoformat()}--{self.end.isoformat()}"


def moscow_today(now: Optional[datetime] = None) -> date:
    """Current date in Moscow."""
    now = now or datetime.now(MOSCOW_TZ)
    return now.astimezone(MOSCOW_TZ).date()


def moscow_yesterday(now: Optional[datetime] = None) -> date:
    """Yesterday's date in Moscow."""
    return moscow_today(now) - timedelta(days=1)


def parse_iso_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD string."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Dates must be YYYY-MM-DD (e.g. 2026-02-01), got: {value!r}")


def parse_period(since: Optional[str], to: Optional[str], default: PeriodWindow) -> PeriodWindow:
    """
    Build a period from optional CLI strings.

    No since -> default; since only -> single day; both -> inclusive range.
    """
    if not since:
        return default
    start = parse_iso_date(since)
    end = parse_iso_date(to) if to else start
    return PeriodWindow(start, end)


def parse_sheet_date(value) -> Optional[date]:
    """
    Parse a date cell as rendered in a sheet or export.

    Accepts date objects, ISO strings (2026-01-01, optionally with a time part)
    and Russian locale strings (01.01.2026, optionally followed by a time).
    Returns None for anything else.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    head = text.split(" ")[0].split("T")[0]
    for fmt in ("%Y-%m-%d", "%d.%m.%Y"):
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


def week_number(day: date) -> int:
    """
    Monday-based week of year.

    Week 1 starts on the Monday on or before January 1, except when January 1
    is a Sunday: then week 1 starts on January 2 and January 1 belongs to the
    last week of the previous year.
    """
    jan1 = date(day.year, 1, 1)
    if jan1.weekday() == 6:
        first_monday = jan1 + timedelta(days=1)
    else:
        first_monday = jan1 - timedelta(days=jan1.weekday())

    if day < first_monday:
        return week_number(date(day.year - 1, 12, 31))
    return (day - first_monday).days // 7 + 1
