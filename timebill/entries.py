# timebill/entries.py
"""
Reading and writing time entries.

The read side feeds the report and import code in time_stats/importer and
absorbs database failures there; the write side keeps the one-running-timer
and end-after-start rules.
"""

import logging
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import FetchFailure, InvalidTimeEntry
from .extensions import db
from .importer import entries_to_line_items
from .models import LineItem, TimeEntry
from .time_stats import AggregateReport, compute_weekly_stats, start_of_day

logger = logging.getLogger(__name__)


def fetch_entries(user_id, since=None, until=None, project_id=None, task_id=None):
    query = TimeEntry.query.filter(TimeEntry.user_id == user_id)
    if since is not None:
        query = query.filter(TimeEntry.start_time >= since)
    if until is not None:
        query = query.filter(TimeEntry.start_time <= until)
    if project_id is not None:
        query = query.filter(TimeEntry.project_id == project_id)
    if task_id is not None:
        query = query.filter(TimeEntry.task_id == task_id)

    try:
        return query.order_by(TimeEntry.start_time.asc()).all()
    except SQLAlchemyError as e:
        raise FetchFailure(f'Could not load time entries for user {user_id}') from e


def load_weekly_stats(user_id, now=None):
    now = now or datetime.now()
    lookback_days = current_app.config.get('STATS_LOOKBACK_DAYS', 14)
    since = start_of_day(now - timedelta(days=lookback_days - 1))

    try:
        entries = fetch_entries(user_id, since=since)
    except FetchFailure:
        logger.exception('Error fetching time tracking stats')
        return AggregateReport.empty(now)

    return compute_weekly_stats(entries, now)


def fetch_unbilled_entries(user_id, project_id=None):
    query = TimeEntry.query.filter(
        TimeEntry.user_id == user_id,
        TimeEntry.end_time.isnot(None),
        TimeEntry.is_billable.is_(True),
        TimeEntry.invoice_id.is_(None),
    )
    if project_id is not None:
        query = query.filter(TimeEntry.project_id == project_id)

    try:
        return query.order_by(TimeEntry.start_time.asc()).all()
    except SQLAlchemyError:
        logger.exception('Failed to load unbilled entries for user %s', user_id)
        return []


def get_active_timer(user_id):
    return TimeEntry.query.filter_by(user_id=user_id, end_time=None).order_by(TimeEntry.start_time.desc()).first()


def resolve_rate(hourly_rate=None, project=None, task=None):
    if hourly_rate is not None:
        return hourly_rate
    if task is not None and task.override_rate is not None:
        return task.override_rate
    if project is not None:
        return project.hourly_rate
    return None


def stop_timer(entry, now=None):
    if entry.end_time is not None:
        return entry
    end_time = now or datetime.now()
    if end_time < entry.start_time:
        raise InvalidTimeEntry('A timer cannot stop before it started.')
    entry.end_time = end_time
    logger.info('Stopped timer %s after %s', entry.id, entry.end_time - entry.start_time)
    return entry


def start_timer(user_id, project=None, task=None, description=None, is_billable=True, hourly_rate=None, now=None):
    now = now or datetime.now()

    active = get_active_timer(user_id)
    if active is not None:
        stop_timer(active, now)

    if task is not None and project is None:
        project = task.project

    entry = TimeEntry(
        user_id=user_id,
        project_id=project.id if project else None,
        task_id=task.id if task else None,
        description=description,
        is_billable=is_billable,
        hourly_rate=resolve_rate(hourly_rate, project, task),
        start_time=now,
    )
    db.session.add(entry)
    return entry


def _check_span(start_time, end_time):
    if start_time is None:
        raise InvalidTimeEntry('A start time is required.')
    if end_time is not None and end_time < start_time:
        raise InvalidTimeEntry('End time must be after the start time.')


def create_manual_entry(user_id, start_time, end_time, project=None, task=None, description=None,
                        is_billable=True, hourly_rate=None):
    if end_time is None:
        raise InvalidTimeEntry('An end time is required for manual entries.')
    _check_span(start_time, end_time)

    if task is not None and project is None:
        project = task.project

    entry = TimeEntry(
        user_id=user_id,
        project_id=project.id if project else None,
        task_id=task.id if task else None,
        description=description,
        is_billable=is_billable,
        hourly_rate=resolve_rate(hourly_rate, project, task),
        start_time=start_time,
        end_time=end_time,
    )
    db.session.add(entry)
    return entry


EDITABLE_FIELDS = ('description', 'start_time', 'end_time', 'is_billable', 'hourly_rate', 'project_id', 'task_id')


def update_entry(entry, **changes):
    if entry.invoice_id is not None:
        raise InvalidTimeEntry('This entry has already been invoiced and cannot be edited.')

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidTimeEntry(f"Unknown fields: {', '.join(sorted(unknown))}")

    if entry.end_time is not None and 'end_time' in changes and changes['end_time'] is None:
        raise InvalidTimeEntry('A finished entry needs an end time.')
    _check_span(changes.get('start_time', entry.start_time), changes.get('end_time', entry.end_time))

    for name, value in changes.items():
        setattr(entry, name, value)
    return entry


def link_entries_to_invoice(invoice, entries):
    """Add one line item per entry to `invoice` and mark the entries as billed."""
    line_items = []
    for item_data in entries_to_line_items(entries):
        line_item = LineItem(
            description=item_data['description'],
            quantity=item_data['quantity'],
            unit_price=item_data['unit_price'],
            invoice=invoice
        )
        db.session.add(line_item)
        item_data['entry'].invoice = invoice
        line_items.append(line_item)
    return line_items
