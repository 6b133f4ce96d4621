"""
Task Service - lifecycle write paths that keep board columns dense

- create: appends the task at the end of its column
- update: edits content fields; a status change is a move to the end of the new column
- delete: removes the row and compacts its column
"""

import logging
import sys
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from models import db, Task
from models.task import DEFAULT_STATUS
from services.column_locks import ColumnLockRegistry
from services.errors import InvalidArgumentError, NotFoundError
from services.position_index import ColumnPlan
from services.project_access import ProjectAccessService, ALL_ROLES, EDITOR_ROLES
from services.task_ordering_service import TaskOrderingService, OrderingResult, validate_status
from services.task_store import TaskStore, TaskRow, validate_id

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 255
END_OF_COLUMN = sys.maxsize

# Fields update_task may change directly
EDITABLE_FIELDS = ('title', 'description', 'assignee_id', 'due_date')
# Fields only the ordering operators may change
ORDERING_FIELDS = ('position', 'project_id')


def _validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidArgumentError("'title' is required", context={'field': 'title'})
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidArgumentError(f"'title' must be at most {MAX_TITLE_LENGTH} characters", context={'field': 'title'})
    return title


def _parse_due_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise InvalidArgumentError("'due_date' must be an ISO date (YYYY-MM-DD)", context={'field': 'due_date'})


def _parse_assignee(value: Any) -> Optional[int]:
    if value is None:
        return None
    return validate_id(value, 'assignee_id')


class TaskService:
    """Task CRUD on top of the ordering operators."""

    def __init__(
        self,
        ordering: Optional[TaskOrderingService] = None,
        access: Optional[type] = None
    ):
        self.ordering = ordering or TaskOrderingService()
        self.access = access or ProjectAccessService

    @property
    def locks(self) -> ColumnLockRegistry:
        return self.ordering.locks

    def create_task(
        self,
        user_id: int,
        project_id: int,
        title: Any,
        description: Optional[str] = None,
        status: Optional[str] = None,
        assignee_id: Any = None,
        due_date: Any = None
    ) -> Task:
        """Create a task appended at the end of its column (``todo`` by default)."""
        self.access.require_role(user_id, project_id, EDITOR_ROLES)
        title = _validate_title(title)
        status = validate_status(status) or DEFAULT_STATUS
        assignee_id = _parse_assignee(assignee_id)
        due_date = _parse_due_date(due_date)

        with self.locks.hold([(project_id, status)], timeout=self.ordering.lock_timeout):
            with TaskStore.guard("CREATE"):
                task = Task(
                    project_id=project_id,
                    title=title,
                    description=description,
                    status=status,
                    position=TaskStore.next_position(project_id, status),
                    assignee_id=assignee_id,
                    due_date=due_date,
                    created_by_id=user_id
                )
                db.session.add(task)
                db.session.commit()

        logger.info(f"[CREATE] Task {task.id} in project {project_id} at {status}[{task.position}] by user {user_id}")
        return task

    def list_tasks(self, user_id: int, project_id: int) -> List[Task]:
        """All tasks of a project, newest first."""
        self.access.require_role(user_id, project_id, ALL_ROLES)
        with TaskStore.guard("LIST"):
            return db.session.execute(
                select(Task).where(Task.project_id == project_id).order_by(
                    Task.created_at.desc(),
                    Task.id.desc()
                )
            ).scalars().all()

    def get_task(self, user_id: int, task_id: int) -> Task:
        validate_id(task_id, 'task_id')
        with TaskStore.guard("GET"):
            task = db.session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found", context={'task_id': task_id})
        self.access.require_role(user_id, task.project_id, ALL_ROLES)
        return task

    def update_task(self, user_id: int, task_id: int, changes: Dict[str, Any]) -> Task:
        """
        Apply partial updates.

        Content fields are written directly. A different ``status`` moves the
        task to the end of that column through the locked ordering cycle, and
        the content fields are written in that same transaction so a failed
        move leaves the task untouched. ``position`` and ``project_id`` are
        rejected.
        """
        validate_id(task_id, 'task_id')
        if not isinstance(changes, dict):
            raise InvalidArgumentError("Update body must be an object")
        forbidden = [name for name in ORDERING_FIELDS if name in changes]
        if forbidden:
            raise InvalidArgumentError(
                f"Cannot update {', '.join(forbidden)} directly; use the move or reorder endpoints",
                context={'fields': forbidden}
            )

        values: Dict[str, Any] = {}
        if 'title' in changes:
            values['title'] = _validate_title(changes['title'])
        if 'description' in changes:
            values['description'] = changes['description']
        if 'assignee_id' in changes:
            values['assignee_id'] = _parse_assignee(changes['assignee_id'])
        if 'due_date' in changes:
            values['due_date'] = _parse_due_date(changes['due_date'])
        new_status = validate_status(changes.get('status'))

        with TaskStore.guard("UPDATE"):
            task = db.session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found", context={'task_id': task_id})
        self.access.require_role(user_id, task.project_id, EDITOR_ROLES)

        if new_status and new_status != task.status:
            row = TaskRow(task.id, task.project_id, task.status, task.position)

            def write_content(current: Dict[int, TaskRow]) -> None:
                target = db.session.get(Task, task_id)
                for name, value in values.items():
                    setattr(target, name, value)
                db.session.flush()

            def append(plan: ColumnPlan, current: Dict[int, TaskRow]) -> None:
                plan.move(task_id, END_OF_COLUMN, new_status)

            self.ordering.run_locked(
                "UPDATE",
                row.project_id,
                {row.id: row},
                destinations=[new_status],
                planner=append,
                before_plan=write_content
            )
            db.session.refresh(task)
        elif values:
            with TaskStore.guard("UPDATE"):
                for name, value in values.items():
                    setattr(task, name, value)
                db.session.commit()

        logger.info(f"[UPDATE] Task {task_id} fields={sorted(changes.keys())} by user {user_id}")
        return task

    def delete_task(self, user_id: int, task_id: int) -> OrderingResult:
        """Delete a task and close the gap it leaves in its column."""
        validate_id(task_id, 'task_id')
        with TaskStore.guard("DELETE"):
            row = TaskStore.get_task_row(task_id)
        if row is None:
            raise NotFoundError("Task not found", context={'task_id': task_id})
        self.access.require_role(user_id, row.project_id, EDITOR_ROLES)

        def drop_row(current: Dict[int, TaskRow]) -> None:
            task = db.session.get(Task, task_id)
            db.session.delete(task)
            db.session.flush()

        def compact(plan: ColumnPlan, current: Dict[int, TaskRow]) -> None:
            plan.touch(current[task_id].status)

        result = self.ordering.run_locked(
            "DELETE",
            row.project_id,
            {row.id: row},
            destinations=[],
            planner=compact,
            before_plan=drop_row
        )
        logger.info(f"[DELETE] Task {task_id} removed from {row.status} by user {user_id}")
        return result
