"""
Shared pytest fixtures for timebill tests.
"""

from __future__ import annotations

import pytest
from werkzeug.security import generate_password_hash

from timebill import create_app
from timebill.extensions import db
from timebill.models import Client, Project, Task, TimeEntry, User


@pytest.fixture
def app(tmp_path):
    """
    Build an application bound to a throwaway SQLite database.

    Parameters
    ----------
    tmp_path : pathlib.Path
        Temporary path provided by pytest.
    """
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'timebill.db'}",
        'GOOGLE_CLIENT_ID': 'test-client',
        'GOOGLE_CLIENT_SECRET': 'test-secret',
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(app):
    user = User(
        username='ada',
        email='ada@example.com',
        password=generate_password_hash('secret', method='pbkdf2:sha256'),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def other_user(app):
    user = User(
        username='grace',
        email='grace@example.com',
        password=generate_password_hash('secret', method='pbkdf2:sha256'),
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def auth_client(client, user):
    response = client.post('/login', data={'username': 'ada', 'password': 'secret'})
    assert response.status_code == 302
    return client


@pytest.fixture
def project(user):
    acme = Client(name='Acme', email='billing@acme.test', user_id=user.id)
    db.session.add(acme)
    db.session.flush()
    project = Project(title='Website', client_id=acme.id, user_id=user.id, hourly_rate=50.0)
    db.session.add(project)
    db.session.commit()
    return project


@pytest.fixture
def task(project, user):
    task = Task(description='Landing page', project_id=project.id, user_id=user.id, override_rate=80.0)
    db.session.add(task)
    db.session.commit()
    return task


@pytest.fixture
def make_db_entry(user, project):
    """
    Factory persisting TimeEntry rows for the default user and project.

    Returns
    -------
    Callable
        ``make_db_entry(start, end=None, **fields) -> TimeEntry``.
    """
    def _make(start, end=None, **fields):
        fields.setdefault('project_id', project.id)
        fields.setdefault('is_billable', True)
        entry = TimeEntry(user_id=user.id, start_time=start, end_time=end, **fields)
        db.session.add(entry)
        db.session.commit()
        return entry

    return _make
