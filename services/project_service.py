"""
Project Service - projects and their membership

Only the owner manages membership. Members may edit the board; viewers may
only read it.
"""

import logging
from typing import Any, List, Optional

from sqlalchemy import select

from models import db, Project, ProjectMember, User
from models.project import ASSIGNABLE_ROLES, ProjectRole
from services.errors import InvalidArgumentError, NotFoundError
from services.project_access import ProjectAccessService, OWNER_ONLY
from services.task_store import TaskStore, validate_id

logger = logging.getLogger(__name__)


def _validate_role(role: Any) -> str:
    if role not in ASSIGNABLE_ROLES:
        raise InvalidArgumentError(
            f"Invalid role; expected one of {list(ASSIGNABLE_ROLES)}",
            context={'field': 'role'}
        )
    return role


class ProjectService:

    def __init__(self, access: Optional[type] = None):
        self.access = access or ProjectAccessService

    def create_project(self, user_id: int, name: Any, description: Optional[str] = None) -> Project:
        if not isinstance(name, str) or not name.strip():
            raise InvalidArgumentError("'name' is required", context={'field': 'name'})

        with TaskStore.guard("PROJECT_CREATE"):
            project = Project(name=name.strip(), description=description, owner_id=user_id)
            db.session.add(project)
            db.session.commit()

        logger.info(f"[PROJECT] Created project {project.id} for user {user_id}")
        return project

    def add_member(self, user_id: int, project_id: int, member_user_id: Any, role: str = ProjectRole.MEMBER.value) -> ProjectMember:
        if member_user_id is None:
            raise InvalidArgumentError("'user_id' is required", context={'field': 'user_id'})
        validate_id(member_user_id, 'user_id')
        role = _validate_role(role)
        self.access.require_role(user_id, project_id, OWNER_ONLY)
        if member_user_id == user_id:
            raise InvalidArgumentError("The owner cannot be added as a member")

        with TaskStore.guard("MEMBER_ADD"):
            if db.session.get(User, member_user_id) is None:
                raise NotFoundError("User not found", context={'user_id': member_user_id})
            existing = db.session.scalar(
                select(ProjectMember.id).where(
                    ProjectMember.project_id == project_id,
                    ProjectMember.user_id == member_user_id
                )
            )
            if existing is not None:
                raise InvalidArgumentError("User is already a member of this project")
            member = ProjectMember(project_id=project_id, user_id=member_user_id, role=role)
            db.session.add(member)
            db.session.commit()

        logger.info(f"[PROJECT] User {member_user_id} added to project {project_id} as {role}")
        return member

    def list_members(self, user_id: int, project_id: int) -> List[ProjectMember]:
        self.access.require_role(user_id, project_id, OWNER_ONLY)
        with TaskStore.guard("MEMBER_LIST"):
            return db.session.execute(
                select(ProjectMember).where(ProjectMember.project_id == project_id).order_by(ProjectMember.id)
            ).scalars().all()

    def change_role(self, user_id: int, project_id: int, member_user_id: int, role: Any) -> ProjectMember:
        role = _validate_role(role)
        self.access.require_role(user_id, project_id, OWNER_ONLY)
        with TaskStore.guard("MEMBER_ROLE"):
            member = self._get_member(project_id, member_user_id)
            member.role = role
            db.session.commit()
        return member

    def remove_member(self, user_id: int, project_id: int, member_user_id: int) -> None:
        self.access.require_role(user_id, project_id, OWNER_ONLY)
        with TaskStore.guard("MEMBER_REMOVE"):
            member = self._get_member(project_id, member_user_id)
            db.session.delete(member)
            db.session.commit()
        logger.info(f"[PROJECT] User {member_user_id} removed from project {project_id}")

    @staticmethod
    def _get_member(project_id: int, member_user_id: int) -> ProjectMember:
        validate_id(member_user_id, 'user_id')
        member = db.session.scalar(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == member_user_id
            )
        )
        if member is None:
            raise NotFoundError("Member not found", context={'user_id': member_user_id})
        return member
