# timebill/routes/time_routes.py

from flask import Blueprint, render_template, request, redirect, url_for, flash, jsonify, current_app
from flask_login import login_required, current_user
from datetime import datetime, timedelta
from ..entries import (
    create_manual_entry, fetch_entries, get_active_timer, load_weekly_stats,
    start_timer, stop_timer, update_entry,
)
from ..errors import FetchFailure, InvalidTimeEntry
from ..extensions import db
from ..models import Project, Task, TimeEntry
from ..time_stats import duration_seconds, format_duration

time_bp = Blueprint('time', __name__)

TRUE_VALUES = ('true', '1', 'on', 'yes')

def parse_datetime(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidTimeEntry(f'Invalid date/time: {value}')

def parse_flag(value, default=True):
    if value is None:
        return default
    return value.lower() in TRUE_VALUES

def parse_optional_float(value):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except ValueError:
        raise InvalidTimeEntry(f'Invalid number: {value}')

def owned_project_and_task(form):
    project = task = None
    project_id = form.get('project_id', type=int)
    task_id = form.get('task_id', type=int)
    if project_id:
        project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()
    if task_id:
        task = Task.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()
        if project is not None and task.project_id != project.id:
            raise InvalidTimeEntry('The task does not belong to the selected project.')
    return project, task

def entry_payload(entry):
    payload = entry.to_dict()
    payload['duration_seconds'] = duration_seconds(entry)
    return payload

@time_bp.route('/time-tracking')
@login_required
def time_tracking():
    now = datetime.now()
    days = current_app.config.get('STATS_LOOKBACK_DAYS', 14)

    try:
        entries = fetch_entries(current_user.id, since=now - timedelta(days=days))
    except FetchFailure:
        current_app.logger.error('Error fetching time entries', exc_info=True)
        flash('Time entries could not be loaded right now.', 'warning')
        entries = []

    projects = Project.query.filter_by(user_id=current_user.id).order_by(Project.title).all()
    return render_template(
        'time_tracking.html',
        entries=list(reversed(entries)),
        active_timer=get_active_timer(current_user.id),
        report=load_weekly_stats(current_user.id, now),
        projects=projects,
        format_duration=format_duration
    )

@time_bp.route('/time-tracking/stats')
@login_required
def stats():
    return jsonify(load_weekly_stats(current_user.id).to_dict())

@time_bp.route('/time-tracking/active')
@login_required
def active_timer():
    entry = get_active_timer(current_user.id)
    if entry is None:
        return {'active': None}
    elapsed = int((datetime.now() - entry.start_time).total_seconds())
    return {'active': entry.to_dict(), 'elapsed_seconds': max(elapsed, 0)}

@time_bp.route('/time-tracking/start', methods=['POST'])
@login_required
def start():
    try:
        project, task = owned_project_and_task(request.form)
        entry = start_timer(
            current_user.id,
            project=project,
            task=task,
            description=request.form.get('description') or None,
            is_billable=parse_flag(request.form.get('is_billable')),
            hourly_rate=parse_optional_float(request.form.get('hourly_rate'))
        )
    except InvalidTimeEntry as e:
        return {'success': False, 'message': str(e)}, 400

    db.session.commit()
    current_app.logger.info(f'User {current_user.id} started timer {entry.id}')
    return {'success': True, 'entry': entry_payload(entry)}

@time_bp.route('/time-tracking/<int:entry_id>/stop', methods=['POST'])
@login_required
def stop(entry_id):
    entry = TimeEntry.query.filter_by(id=entry_id, user_id=current_user.id).first_or_404()
    try:
        stop_timer(entry)
    except InvalidTimeEntry as e:
        return {'success': False, 'message': str(e)}, 400

    db.session.commit()
    return {'success': True, 'entry': entry_payload(entry)}

@time_bp.route('/time-tracking/manual', methods=['POST'])
@login_required
def manual_entry():
    try:
        project, task = owned_project_and_task(request.form)
        entry = create_manual_entry(
            current_user.id,
            start_time=parse_datetime(request.form.get('start_time')),
            end_time=parse_datetime(request.form.get('end_time')),
            project=project,
            task=task,
            description=request.form.get('description') or None,
            is_billable=parse_flag(request.form.get('is_billable')),
            hourly_rate=parse_optional_float(request.form.get('hourly_rate'))
        )
    except InvalidTimeEntry as e:
        return {'success': False, 'message': str(e)}, 400

    db.session.commit()
    return {'success': True, 'entry': entry_payload(entry)}, 201

@time_bp.route('/time-entry/<int:entry_id>/update', methods=['POST'])
@login_required
def update(entry_id):
    entry = TimeEntry.query.filter_by(id=entry_id, user_id=current_user.id).first_or_404()

    changes = {}
    form = request.form
    try:
        if 'description' in form:
            changes['description'] = form.get('description') or None
        if 'start_time' in form:
            changes['start_time'] = parse_datetime(form.get('start_time'))
        if 'end_time' in form:
            changes['end_time'] = parse_datetime(form.get('end_time'))
        if 'is_billable' in form:
            changes['is_billable'] = parse_flag(form.get('is_billable'))
        if 'hourly_rate' in form:
            changes['hourly_rate'] = parse_optional_float(form.get('hourly_rate'))
        if 'project_id' in form or 'task_id' in form:
            project, task = owned_project_and_task(form)
            if project is None and task is not None:
                project = task.project
            changes['project_id'] = project.id if project else None
            changes['task_id'] = task.id if task else None
        update_entry(entry, **changes)
    except InvalidTimeEntry as e:
        db.session.rollback()
        return {'success': False, 'message': str(e)}, 400

    db.session.commit()
    return {'success': True, 'entry': entry_payload(entry)}

@time_bp.route('/time-entry/<int:entry_id>/delete', methods=['POST'])
@login_required
def delete_time_entry(entry_id):
    entry = TimeEntry.query.filter_by(id=entry_id, user_id=current_user.id).first_or_404()
    project_id = entry.project_id

    if entry.invoice_id is not None:
        flash('This entry has already been invoiced and cannot be deleted.', 'danger')
    else:
        db.session.delete(entry)
        db.session.commit()
        flash('Time entry has been deleted.', 'success')

    if request.form.get('next') == 'project' and project_id:
        return redirect(url_for('projects.project_detail', project_id=project_id))
    return redirect(url_for('time.time_tracking'))
