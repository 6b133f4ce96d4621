"""
Model registry.

Every model subclasses the shared declarative ``Base`` so ``db.create_all()``
and Alembic autogenerate see one metadata collection.
"""

from flask_sqlalchemy import SQLAlchemy

from .base import Base

db = SQLAlchemy(model_class=Base)

from .user import User  # noqa: E402
from .project import Project, ProjectMember, ProjectRole  # noqa: E402
from .task import Task  # noqa: E402

__all__ = [
    "db",
    "Base",
    "User",
    "Project",
    "ProjectMember",
    "ProjectRole",
    "Task",
]
