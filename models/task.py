"""
Task Model for Kanban Board Management
SQLAlchemy 2.0-safe model for project tasks ordered by (status, position) columns.
"""

from typing import Optional, TYPE_CHECKING
from datetime import datetime, date
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Date, Text, ForeignKey, func, Index
from .base import Base

# Forward reference for type checking
if TYPE_CHECKING:
    from .project import Project
    from .user import User


DEFAULT_STATUS = "todo"


class Task(Base):
    """
    Task on a project board.

    A column is the set of tasks sharing one (project_id, status) pair.
    Within a column, ``position`` is dense and 0-based: a column holding N
    tasks uses exactly positions 0..N-1. Only the ordering services write it.
    """
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Task content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Board placement
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    project: Mapped["Project"] = relationship(foreign_keys=[project_id])
    status: Mapped[str] = mapped_column(String(32), default=DEFAULT_STATUS, nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Scheduling
    due_date: Mapped[Optional[date]] = mapped_column(Date)

    # People
    assignee_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    assignee: Mapped[Optional["User"]] = relationship(foreign_keys=[assignee_id])
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # Ordered column read: WHERE project_id = ? AND status = ? ORDER BY position
        Index('ix_tasks_project_status_position', 'project_id', 'status', 'position'),
        Index('ix_tasks_assignee', 'assignee_id'),
    )

    def __repr__(self):
        return f'<Task {self.id}: {self.title}>'

    @property
    def column_key(self) -> tuple:
        return (self.project_id, self.status)

    def to_dict(self):
        """Convert task to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'project_id': self.project_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'position': self.position,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'assignee_id': self.assignee_id,
            'created_by_id': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
