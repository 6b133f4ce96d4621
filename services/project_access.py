"""
Project Access Service

Answers "may this user act on this project, and as what role?". The board
services call it before any read or write and let its NotFoundError /
ForbiddenError propagate untouched.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models import db, Project, ProjectMember, ProjectRole
from services.errors import NotFoundError, ForbiddenError, StorageFailureError
from services.task_store import validate_id

logger = logging.getLogger(__name__)

ALL_ROLES = (ProjectRole.OWNER.value, ProjectRole.MEMBER.value, ProjectRole.VIEWER.value)
EDITOR_ROLES = (ProjectRole.OWNER.value, ProjectRole.MEMBER.value)
OWNER_ONLY = (ProjectRole.OWNER.value,)


class ProjectAccessService:
    """Role lookups against projects.owner_id and project_members."""

    @staticmethod
    def get_role(user_id: int, project_id: int) -> Optional[str]:
        """
        Resolve the caller's role on a project.

        Returns:
            'owner', 'member', 'viewer', or None when the user has no access

        Raises:
            NotFoundError: the project does not exist
        """
        validate_id(project_id, 'project_id')
        try:
            owner_id = db.session.scalar(
                select(Project.owner_id).where(Project.id == project_id)
            )
            if owner_id is None:
                raise NotFoundError("Project not found", context={'project_id': project_id})
            if owner_id == user_id:
                return ProjectRole.OWNER.value

            return db.session.scalar(
                select(ProjectMember.role).where(
                    ProjectMember.project_id == project_id,
                    ProjectMember.user_id == user_id
                )
            )
        except SQLAlchemyError as e:
            raise StorageFailureError(str(e)) from e

    @classmethod
    def require_role(cls, user_id: int, project_id: int, allowed: Iterable[str] = ALL_ROLES) -> str:
        """
        Check the caller holds one of the allowed roles.

        Returns:
            The caller's role

        Raises:
            NotFoundError: the project does not exist
            ForbiddenError: the caller is not a member or holds a weaker role
        """
        role = cls.get_role(user_id, project_id)
        if role is None or role not in allowed:
            logger.info(f"[ACCESS] Denied user {user_id} on project {project_id} (role={role})")
            raise ForbiddenError("Access denied", context={'project_id': project_id})
        return role
