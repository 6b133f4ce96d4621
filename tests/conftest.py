"""
Root pytest configuration and fixtures for unit and integration tests.
"""
import os
import uuid

import pytest
from flask_login import FlaskLoginClient
from sqlalchemy import select

# Test configuration
os.environ['FLASK_ENV'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing-only'
os.environ.pop('KANBAN_COLUMNS', None)
os.environ.pop('KANBAN_DEFAULT_COLUMN', None)


@pytest.fixture(scope='function')
def app():
    """Create a test Flask application with a fresh in-memory database."""
    from app import create_app
    from models import db

    test_app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'COLUMN_LOCK_TIMEOUT': 5,
    })
    test_app.test_client_class = FlaskLoginClient

    with test_app.app_context():
        db.create_all()
        yield test_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    from models import db
    yield db.session
    db.session.rollback()


def _make_user(db_session, active=True):
    from models import User

    unique_id = str(uuid.uuid4())[:8]
    user = User(
        username=f'testuser_{unique_id}',
        email=f'test_{unique_id}@example.com',
        active=active
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory for additional users."""
    return lambda active=True: _make_user(db_session, active=active)


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session)


@pytest.fixture(scope='function')
def project(db_session, owner):
    from models import Project

    project = Project(name='Test Board', owner_id=owner.id)
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture(scope='function')
def add_member(db_session):
    """Grant ``user`` a role on ``project`` directly in the store."""
    from models import ProjectMember

    def _add(project, user, role='member'):
        member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
        db_session.add(member)
        db_session.commit()
        return member

    return _add


@pytest.fixture(scope='function')
def make_tasks(db_session):
    """
    Insert tasks straight into the store with explicit positions.

    ``make_tasks(project, 'todo', ['A', 'B', 'C'])`` creates A@0, B@1, C@2 and
    returns a title -> id mapping. ``positions`` overrides the dense default
    so tests can build corrupt columns.
    """
    from models import Task

    def _make(project, status, titles, positions=None):
        positions = positions if positions is not None else range(len(titles))
        tasks = []
        for title, position in zip(titles, positions):
            task = Task(
                project_id=project.id,
                title=title,
                status=status,
                position=position,
                created_by_id=project.owner_id
            )
            db_session.add(task)
            tasks.append(task)
        db_session.commit()
        return {task.title: task.id for task in tasks}

    return _make


@pytest.fixture(scope='function')
def column(db_session):
    """Titles of one column in stored position order, read fresh from the store."""
    from models import Task

    def _column(project_id, status):
        rows = db_session.execute(
            select(Task.title).where(
                Task.project_id == project_id,
                Task.status == status
            ).order_by(Task.position, Task.id)
        )
        return [row.title for row in rows]

    return _column


@pytest.fixture(scope='function')
def positions(db_session):
    """Stored positions of one column, sorted; dense columns give 0..N-1."""
    from models import Task

    def _positions(project_id, status):
        return sorted(db_session.scalars(
            select(Task.position).where(
                Task.project_id == project_id,
                Task.status == status
            )
        ))

    return _positions


@pytest.fixture(scope='function')
def client(app, owner):
    """Test client logged in as the project owner."""
    return app.test_client(user=owner)


@pytest.fixture(scope='function')
def anonymous_client(app):
    return app.test_client()
