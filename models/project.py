"""
Project and ProjectMember Models
A project owns a Kanban board; members get a role that gates what they may change.
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, DateTime, Text, ForeignKey, func, Index
from .base import Base

if TYPE_CHECKING:
    from .user import User


class ProjectRole(str, Enum):
    """Roles a user can hold on a project. OWNER is derived from Project.owner_id."""
    OWNER = "owner"
    MEMBER = "member"
    VIEWER = "viewer"


# Roles that may be granted through membership (owner is never a membership row)
ASSIGNABLE_ROLES = (ProjectRole.MEMBER.value, ProjectRole.VIEWER.value)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    owner: Mapped["User"] = relationship(foreign_keys=[owner_id])

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f'<Project {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'owner_id': self.owner_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class ProjectMember(Base):
    """
    Junction table between projects and users.
    Holds the member's role (member or viewer); the owner has no row here.
    """
    __tablename__ = "project_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), default=ProjectRole.MEMBER.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('ix_project_members_composite', 'project_id', 'user_id', unique=True),
    )

    def __repr__(self):
        return f'<ProjectMember project_id={self.project_id} user_id={self.user_id} role={self.role}>'

    def to_dict(self):
        return {
            'project_id': self.project_id,
            'user_id': self.user_id,
            'role': self.role,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
