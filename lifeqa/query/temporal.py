"""
Temporal Resolver

Turns relative time phrases ("yesterday", "last week", "3 days ago") into
absolute date ranges. Rules are checked in a fixed order and the first
match wins:

    today > yesterday > day before yesterday > N days ago >
    this week > last week > this month > last month > this year > last year

"This" periods end at now. "Last" periods are full calendar periods, with
weeks starting on Sunday. All arithmetic happens in the timezone of `now`.
"""

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Tuple

from .locales import DEFAULT_REGISTRY, PatternRegistry

_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class DateRange:
    """Closed [start, end] interval of absolute instants"""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class TemporalIntent:
    """Resolved time reference of a query"""
    has_temporal_intent: bool = False
    date_range: Optional[DateRange] = None
    label: Optional[str] = None


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), _END_OF_DAY, tzinfo=moment.tzinfo)


def _whole_days(now: datetime, days_back: int) -> DateRange:
    day = now - timedelta(days=days_back)
    return DateRange(start_of_day(day), end_of_day(day))


def _days_since_sunday(moment: datetime) -> int:
    # weekday(): Monday=0 .. Sunday=6
    return (moment.weekday() + 1) % 7


def _first_of_month(moment: datetime) -> datetime:
    return start_of_day(moment.replace(day=1))


def _today(now, match):
    return _whole_days(now, 0), "today"


def _yesterday(now, match):
    return _whole_days(now, 1), "yesterday"


def _day_before_yesterday(now, match):
    return _whole_days(now, 2), "day before yesterday"


def _days_ago(now, match):
    days = int(match.group(1))
    return _whole_days(now, days), f"{days} days ago"


def _this_week(now, match):
    sunday = now - timedelta(days=_days_since_sunday(now))
    return DateRange(start_of_day(sunday), now), "this week"


def _last_week(now, match):
    saturday = now - timedelta(days=_days_since_sunday(now) + 1)
    sunday = saturday - timedelta(days=6)
    return DateRange(start_of_day(sunday), end_of_day(saturday)), "last week"


def _this_month(now, match):
    return DateRange(_first_of_month(now), now), "this month"


def _last_month(now, match):
    last_day = _first_of_month(now) - timedelta(days=1)
    return DateRange(_first_of_month(last_day), end_of_day(last_day)), "last month"


def _this_year(now, match):
    return DateRange(start_of_day(now.replace(month=1, day=1)), now), "this year"


def _last_year(now, match):
    year = now.year - 1
    start = start_of_day(now.replace(year=year, month=1, day=1))
    end = end_of_day(now.replace(year=year, month=12, day=31))
    return DateRange(start, end), "last year"


Resolver = Callable[[datetime, re.Match], Tuple[DateRange, str]]

# (registry key, resolver), in precedence order
TEMPORAL_RULES: List[Tuple[str, Resolver]] = [
    ("temporal:today", _today),
    ("temporal:yesterday", _yesterday),
    ("temporal:day_before_yesterday", _day_before_yesterday),
    ("temporal:days_ago", _days_ago),
    ("temporal:this_week", _this_week),
    ("temporal:last_week", _last_week),
    ("temporal:this_month", _this_month),
    ("temporal:last_month", _last_month),
    ("temporal:this_year", _this_year),
    ("temporal:last_year", _last_year),
]


class TemporalResolver:
    """Resolves relative dates against an injectable clock"""

    def __init__(self, registry: Optional[PatternRegistry] = None):
        self._registry = registry or DEFAULT_REGISTRY

    def resolve(self, text: str, now: Optional[datetime] = None) -> TemporalIntent:
        now = now or datetime.now()
        text = text or ""

        for key, resolver in TEMPORAL_RULES:
            found = self._registry.search(key, text)
            if found is None:
                continue
            _, match = found
            try:
                date_range, label = resolver(now, match)
            except OverflowError:
                # "N days ago" beyond the calendar
                continue
            return TemporalIntent(has_temporal_intent=True, date_range=date_range, label=label)

        return TemporalIntent()


def parse_temporal(text: str, now: Optional[datetime] = None) -> TemporalIntent:
    """Resolve with the default pattern registry"""
    return TemporalResolver().resolve(text, now)
