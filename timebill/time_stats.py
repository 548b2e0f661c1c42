# timebill/time_stats.py
"""
Weekly time report and unbilled revenue for a list of time entries.

Nothing here reads the clock or the database: callers pass the entries and
"now" in, and get plain values back. Entries only need the TimeEntry
attributes (start_time, end_time, is_billable, hourly_rate, invoice_id, id).
"""

import logging
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import timedelta

from .errors import MalformedEntry

logger = logging.getLogger(__name__)

# Fixed English labels so the chart does not depend on the server locale
DAY_LABELS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')

WEEK_DAYS = 7

EntrySummary = namedtuple('EntrySummary', ['total_seconds', 'unbilled_seconds', 'unbilled_revenue'])


@dataclass(frozen=True)
class DayBucket:
    label: str
    hours: float


@dataclass(frozen=True)
class AggregateReport:
    total_seconds_this_week: int = 0
    total_seconds_last_week: int = 0
    unbilled_revenue: float = 0.0
    weekly_chart_data: tuple = field(default_factory=tuple)

    @classmethod
    def empty(cls, now):
        return cls(weekly_chart_data=tuple(DayBucket(label, 0.0) for label in day_labels(now)))

    def hours_for(self, label):
        for bucket in self.weekly_chart_data:
            if bucket.label == label:
                return bucket.hours
        raise KeyError(label)

    def to_dict(self):
        return {
            'totalSecondsThisWeek': self.total_seconds_this_week,
            'totalSecondsLastWeek': self.total_seconds_last_week,
            'unbilledRevenue': self.unbilled_revenue,
            'weeklyChartData': [
                {'name': bucket.label, 'hours': bucket.hours}
                for bucket in self.weekly_chart_data
            ],
        }


# -----------------------
# Duration Calculator
# -----------------------

def _align(value, now):
    # An aware timestamp compared against a naive "now" is read as local time
    if value.tzinfo is not None and now.tzinfo is None:
        return value.astimezone().replace(tzinfo=None)
    if value.tzinfo is None and now.tzinfo is not None:
        return value.replace(tzinfo=now.tzinfo)
    if value.tzinfo is not None:
        return value.astimezone(now.tzinfo)
    return value


def duration_seconds(entry):
    """
    Whole seconds between start and end of an entry, or None while it is still running.

    Raises MalformedEntry when the entry has no start time or ends before it starts.
    """
    if entry.start_time is None:
        raise MalformedEntry(getattr(entry, 'id', None), 'missing start_time')
    if entry.end_time is None:
        return None
    end_time = _align(entry.end_time, entry.start_time)
    if end_time < entry.start_time:
        raise MalformedEntry(getattr(entry, 'id', None), 'end_time is before start_time')
    return int((end_time - entry.start_time).total_seconds())


def format_duration(seconds):
    seconds = int(seconds or 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f'{hours}:{minutes:02d}:{secs:02d}'


def finalized_entries(entries):
    """Yield (entry, seconds) for finished entries, skipping malformed ones with a warning."""
    for entry in entries:
        try:
            seconds = duration_seconds(entry)
        except MalformedEntry as e:
            logger.warning('Skipping time entry in aggregation: %s', e)
            continue
        if seconds is None:
            continue
        yield entry, seconds


# -----------------------
# Period Bucketer
# -----------------------

def start_of_day(value):
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def window_start(now, days):
    """Midnight that opens a trailing window of `days` days ending today."""
    return start_of_day(now - timedelta(days=days - 1))


def week_windows(now):
    """Return (start of this week, start of last week) for the trailing 7-day windows."""
    return window_start(now, WEEK_DAYS), window_start(now, 2 * WEEK_DAYS)


def day_labels(now):
    return [DAY_LABELS[(now - timedelta(days=offset)).weekday()] for offset in range(WEEK_DAYS - 1, -1, -1)]


# -----------------------
# Unbilled Revenue Reconciler
# -----------------------

def is_unbilled(entry):
    return bool(entry.is_billable) and entry.invoice_id is None


def entry_revenue(entry, seconds):
    rate = entry.hourly_rate or 0
    return (seconds / 3600) * rate


def compute_weekly_stats(entries, now):
    """
    Build the weekly report for `entries` as seen at `now`.

    Running timers and malformed entries are left out. Revenue only counts
    billable, not yet invoiced time from the current week.
    """
    start_of_this_week, start_of_last_week = week_windows(now)

    total_this_week = 0
    total_last_week = 0
    unbilled_revenue = 0.0

    # Seeded oldest to newest so the chart order never depends on the entries
    chart_hours = {label: 0.0 for label in day_labels(now)}

    for entry, seconds in finalized_entries(entries):
        start = _align(entry.start_time, now)

        if start >= start_of_this_week:
            total_this_week += seconds

            label = DAY_LABELS[start.weekday()]
            if label in chart_hours:
                chart_hours[label] += seconds / 3600

            if is_unbilled(entry):
                unbilled_revenue += entry_revenue(entry, seconds)
        elif start >= start_of_last_week:
            total_last_week += seconds

    return AggregateReport(
        total_seconds_this_week=total_this_week,
        total_seconds_last_week=total_last_week,
        unbilled_revenue=unbilled_revenue,
        weekly_chart_data=tuple(DayBucket(label, round(hours, 1)) for label, hours in chart_hours.items()),
    )


def compute_unbilled_total(entries, now, window_days=WEEK_DAYS):
    """
    Revenue owed for billable, un-invoiced time.

    With `window_days` set only entries started inside that trailing window
    count; `window_days=None` counts every finished entry regardless of age.
    """
    since = window_start(now, window_days) if window_days is not None else None

    total = 0.0
    for entry, seconds in finalized_entries(entries):
        if since is not None and _align(entry.start_time, now) < since:
            continue
        if is_unbilled(entry):
            total += entry_revenue(entry, seconds)
    return total


def summarize_entries(entries):
    total_seconds = 0
    unbilled_seconds = 0
    unbilled_revenue = 0.0
    for entry, seconds in finalized_entries(entries):
        total_seconds += seconds
        if is_unbilled(entry):
            unbilled_seconds += seconds
            unbilled_revenue += entry_revenue(entry, seconds)
    return EntrySummary(total_seconds, unbilled_seconds, unbilled_revenue)
