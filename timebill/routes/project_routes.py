# timebill/routes/project_routes.py

from flask import Blueprint, render_template, request, redirect, url_for, flash, current_app
from flask_login import login_required, current_user
from datetime import datetime, date
from ..entries import fetch_entries, get_active_timer
from ..errors import FetchFailure
from ..extensions import db
from ..models import Project, Client, Task
from ..time_stats import format_duration, summarize_entries

project_bp = Blueprint('projects', __name__)

def parse_rate(value):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f'Invalid rate: {value}')

@project_bp.route('/projects', methods=['GET', 'POST'])
@login_required
def projects():
    if request.method == 'POST':
        title = request.form.get('title')
        description = request.form.get('description')
        deadline_str = request.form.get('deadline')
        client_id = request.form.get('client_id', type=int)
        deadline = datetime.strptime(deadline_str, '%Y-%m-%d').date() if deadline_str else None

        if not title:
            flash('Project title cannot be empty.', 'warning')
            return redirect(url_for('projects.projects'))

        client = Client.query.filter_by(id=client_id, user_id=current_user.id).first_or_404()

        try:
            hourly_rate = parse_rate(request.form.get('hourly_rate'))
        except ValueError:
            flash('Hourly rate must be a number.', 'warning')
            return redirect(url_for('projects.projects'))

        new_project = Project(
            title=title,
            description=description,
            deadline=deadline,
            client_id=client.id,
            user_id=current_user.id,
            hourly_rate=hourly_rate
        )
        db.session.add(new_project)
        db.session.commit()
        flash(f'Project "{title}" created successfully.', 'success')
        return redirect(url_for('projects.project_detail', project_id=new_project.id))

    new_client_id = request.args.get('new_client_id', type=int)
    all_projects = Project.query.filter_by(user_id=current_user.id).order_by(Project.deadline.asc()).all()
    all_clients = Client.query.filter_by(user_id=current_user.id).order_by(Client.name).all()

    return render_template('projects.html', projects=all_projects, clients=all_clients, new_client_id=new_client_id)

@project_bp.route('/project/<int:project_id>')
@login_required
def project_detail(project_id):
    project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()

    try:
        entries = fetch_entries(current_user.id, project_id=project.id)
    except FetchFailure:
        current_app.logger.error(f'Could not load time entries for project {project.id}', exc_info=True)
        entries = []

    return render_template(
        'project_detail.html',
        project=project,
        entries=entries,
        summary=summarize_entries(entries),
        active_timer=get_active_timer(current_user.id),
        format_duration=format_duration,
        date=date
    )

@project_bp.route('/delete_project/<int:project_id>', methods=['POST'])
@login_required
def delete_project(project_id):
    project_to_delete = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()
    db.session.delete(project_to_delete)
    db.session.commit()
    flash(f'Project "{project_to_delete.title}" has been deleted.', 'success')
    return redirect(url_for('projects.projects'))

@project_bp.route('/project/<int:project_id>/update-details', methods=['POST'])
@login_required
def update_project_details(project_id):
    project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()

    data = request.get_json(silent=True) or {}
    new_title = data.get('project_title')

    if not new_title:
        return {'success': False, 'message': 'Title cannot be empty.'}, 400

    project.title = new_title
    if 'hourly_rate' in data:
        try:
            project.hourly_rate = parse_rate(data.get('hourly_rate'))
        except (TypeError, ValueError):
            return {'success': False, 'message': 'Hourly rate must be a number.'}, 400
    db.session.commit()

    return {'success': True, 'new_title': project.title, 'hourly_rate': project.hourly_rate}

@project_bp.route('/add_task/<int:project_id>', methods=['POST'])
@login_required
def add_task(project_id):
    project = Project.query.filter_by(id=project_id, user_id=current_user.id).first_or_404()
    task_description = request.form.get('task_description')

    if not task_description:
        flash('Task description cannot be empty.', 'warning')
        return redirect(url_for('projects.project_detail', project_id=project.id))

    try:
        override_rate = parse_rate(request.form.get('override_rate'))
    except ValueError:
        flash('Override rate must be a number.', 'warning')
        return redirect(url_for('projects.project_detail', project_id=project.id))

    new_task = Task(
        description=task_description,
        project_id=project.id,
        user_id=current_user.id,
        override_rate=override_rate
    )
    db.session.add(new_task)
    db.session.commit()
    flash('New task added!', 'success')

    return redirect(url_for('projects.project_detail', project_id=project.id))

@project_bp.route('/toggle_task/<int:task_id>', methods=['POST'])
@login_required
def toggle_task(task_id):
    task = Task.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()
    task.is_completed = not task.is_completed
    db.session.commit()
    return {'success': True, 'is_completed': task.is_completed}

@project_bp.route('/task/<int:task_id>/delete', methods=['POST'])
@login_required
def delete_task(task_id):
    task = Task.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()
    project_id = task.project_id

    db.session.delete(task)
    db.session.commit()
    flash('Task has been deleted.', 'success')
    return redirect(url_for('projects.project_detail', project_id=project_id))

@project_bp.route('/task/<int:task_id>/update', methods=['POST'])
@login_required
def update_task(task_id):
    task = Task.query.filter_by(id=task_id, user_id=current_user.id).first_or_404()

    try:
        override_rate = parse_rate(request.form.get('override_rate'))
    except ValueError:
        flash('Override rate must be a number.', 'warning')
        return redirect(url_for('projects.project_detail', project_id=task.project_id))

    description = request.form.get('description')
    if description:
        task.description = description
    task.override_rate = override_rate

    db.session.commit()
    flash(f'Task "{task.description}" has been updated.', 'success')
    return redirect(url_for('projects.project_detail', project_id=task.project_id))
