"""
Task Ordering Service - drag-and-drop moves on the project board

Two operators keep every column dense (positions 0..N-1, no duplicates):

- ``move_task``: one task to a target column and index
- ``reorder_tasks``: a batch of such instructions applied in supplied order

Both follow the same cycle: resolve the tasks and check access, lock every
column involved, re-read those columns, plan the new order in memory
(``ColumnPlan``), write only the rows whose status or position changed in
ascending position order, and commit once before the locks are released.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from models import db
from services.column_locks import ColumnLockRegistry, column_locks
from services.errors import InvalidArgumentError, NotFoundError, StorageFailureError
from services.position_index import ColumnPlan
from services.project_access import ProjectAccessService, EDITOR_ROLES
from services.task_store import TaskStore, TaskRow, validate_id

logger = logging.getLogger(__name__)

MAX_STATUS_LENGTH = 32

# Accepted spellings for each instruction field (snake_case first)
_FIELD_ALIASES = {
    'task_id': ('task_id', 'taskId', 'id'),
    'to_position': ('to_position', 'toPosition', 'position'),
    'to_status': ('to_status', 'toStatus', 'status'),
}


def _pick(data: Mapping[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        if key in data:
            return data[key]
    return None


def validate_int(value: Any, field_name: str) -> int:
    # bool is an int subclass; a JSON true is never a position
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"'{field_name}' must be an integer", context={'field': field_name})
    return value


def validate_status(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError("'to_status' must be a non-empty string", context={'field': 'to_status'})
    value = value.strip()
    if len(value) > MAX_STATUS_LENGTH:
        raise InvalidArgumentError(
            f"'to_status' must be at most {MAX_STATUS_LENGTH} characters",
            context={'field': 'to_status'}
        )
    return value


@dataclass(frozen=True)
class ReorderInstruction:
    """
    One validated move: put ``task_id`` at ``to_position`` of ``to_status``.

    ``to_status`` None keeps the task in its current column. Negative
    positions are accepted and clamp to 0; positions past the end append.
    """
    task_id: int
    to_position: int
    to_status: Optional[str] = None

    def __post_init__(self):
        validate_id(self.task_id, 'task_id')
        validate_int(self.to_position, 'to_position')
        object.__setattr__(self, 'to_status', validate_status(self.to_status))

    @classmethod
    def from_dict(cls, data: Any) -> "ReorderInstruction":
        """Build from a request payload item; raises InvalidArgumentError on bad shape."""
        if isinstance(data, cls):
            return data
        if not isinstance(data, Mapping):
            raise InvalidArgumentError("Each update must be an object")
        task_id = _pick(data, 'task_id')
        to_position = _pick(data, 'to_position')
        if task_id is None:
            raise InvalidArgumentError("'task_id' is required", context={'field': 'task_id'})
        if to_position is None:
            raise InvalidArgumentError("'to_position' is required", context={'field': 'to_position'})
        return cls(task_id=task_id, to_position=to_position, to_status=_pick(data, 'to_status'))


def parse_instructions(payload: Any) -> List[ReorderInstruction]:
    """Validate a whole batch payload before anything touches the store."""
    if not isinstance(payload, list):
        raise InvalidArgumentError("'updates' must be a list")
    if not payload:
        raise InvalidArgumentError("No updates provided")
    return [ReorderInstruction.from_dict(item) for item in payload]


@dataclass
class OrderingResult:
    """What an ordering operation wrote."""
    project_id: int
    columns: List[str] = field(default_factory=list)
    updated_task_ids: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            'project_id': self.project_id,
            'columns': self.columns,
            'updated_task_ids': self.updated_task_ids,
        }


class TaskOrderingService:
    """
    Single-move and batch-reorder operators.

    The caller's identity is an explicit argument on every operation; access
    is checked through ``ProjectAccessService`` before any column is locked.
    """

    # Re-lock attempts when a task changes column between lookup and lock
    MAX_LOCK_ATTEMPTS = 3

    def __init__(
        self,
        locks: Optional[ColumnLockRegistry] = None,
        access: Optional[type] = None,
        lock_timeout: Optional[float] = None
    ):
        self.locks = locks or column_locks
        self.access = access or ProjectAccessService
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # Single move
    # ------------------------------------------------------------------

    def move_task(
        self,
        user_id: int,
        task_id: int,
        to_position: int,
        to_status: Optional[str] = None
    ) -> OrderingResult:
        """
        Move one task to ``to_position`` within ``to_status``.

        Raises:
            InvalidArgumentError: malformed task id, position or status
            NotFoundError: the task does not exist
            ForbiddenError: caller may not edit the task's project
            StorageFailureError: a read or write failed (transaction rolled back)
        """
        instruction = ReorderInstruction(task_id=task_id, to_position=to_position, to_status=to_status)

        with TaskStore.guard("MOVE"):
            row = TaskStore.get_task_row(instruction.task_id)
        if row is None:
            raise NotFoundError("Task not found", context={'task_id': task_id})
        self.access.require_role(user_id, row.project_id, EDITOR_ROLES)

        landed = []

        def plan_move(plan: ColumnPlan, rows: Dict[int, TaskRow]) -> None:
            landed.append(plan.move(instruction.task_id, instruction.to_position, instruction.to_status))

        result = self.run_locked(
            "MOVE",
            row.project_id,
            {row.id: row},
            destinations=[instruction.to_status] if instruction.to_status else [],
            planner=plan_move
        )
        logger.info(
            f"[MOVE] Task {task_id} -> {instruction.to_status or row.status}[{landed[-1]}] "
            f"by user {user_id}: {len(result.updated_task_ids)} rows written"
        )
        return result

    # ------------------------------------------------------------------
    # Batch reorder
    # ------------------------------------------------------------------

    def reorder_tasks(self, user_id: int, instructions: Iterable[Any]) -> OrderingResult:
        """
        Apply a batch of move instructions in supplied order.

        Every referenced task must exist and all must belong to one project;
        both are checked before any write. An instruction without a status
        targets the column the task occupies at that point of the batch.

        Raises:
            InvalidArgumentError: empty batch, malformed instruction, or tasks
                from more than one project
            NotFoundError: one or more tasks do not exist
            ForbiddenError: caller may not edit the project
            StorageFailureError: a read or write failed (transaction rolled back)
        """
        batch = [ReorderInstruction.from_dict(item) for item in instructions]
        if not batch:
            raise InvalidArgumentError("No updates provided")

        task_ids = list(dict.fromkeys(item.task_id for item in batch))
        with TaskStore.guard("REORDER"):
            rows = TaskStore.get_task_rows(task_ids)

        missing = [tid for tid in task_ids if tid not in rows]
        if missing:
            raise NotFoundError("One or more tasks not found", context={'missing_task_ids': missing})

        project_ids = sorted({row.project_id for row in rows.values()})
        if len(project_ids) > 1:
            raise InvalidArgumentError(
                "All tasks in a batch must belong to the same project",
                context={'project_ids': project_ids}
            )
        project_id = project_ids[0]
        self.access.require_role(user_id, project_id, EDITOR_ROLES)

        def plan_batch(plan: ColumnPlan, current: Dict[int, TaskRow]) -> None:
            for item in batch:
                plan.move(item.task_id, item.to_position, item.to_status)

        result = self.run_locked(
            "REORDER",
            project_id,
            rows,
            destinations=[item.to_status for item in batch if item.to_status],
            planner=plan_batch
        )
        logger.info(
            f"[REORDER] Applied {len(batch)} instructions on project {project_id} by user {user_id}: "
            f"{len(result.updated_task_ids)} rows written across {result.columns}"
        )
        return result

    # ------------------------------------------------------------------
    # Shared locked cycle
    # ------------------------------------------------------------------

    def run_locked(
        self,
        operation: str,
        project_id: int,
        rows: Dict[int, TaskRow],
        destinations: Sequence[str],
        planner: Callable[[ColumnPlan, Dict[int, TaskRow]], None],
        before_plan: Optional[Callable[[Dict[int, TaskRow]], None]] = None
    ) -> OrderingResult:
        """
        Lock, re-read, plan, write, commit.

        Locks the stored column of every task in ``rows`` plus every
        destination column. If a task changed column before the locks were
        taken, the lock set is recomputed and the cycle retried.

        Args:
            operation: Log tag
            project_id: Project whose columns are involved
            rows: Task rows as seen before locking
            destinations: Extra columns the planner may move tasks into
            planner: Applies moves to the loaded ``ColumnPlan``
            before_plan: Runs after the re-read and before columns are loaded
                (deletion drops the row, update writes content fields)

        Any uncommitted work in the session is discarded before locking.
        """
        task_ids = list(rows)
        for attempt in range(self.MAX_LOCK_ATTEMPTS):
            # End the lookup transaction so the locked re-read sees a fresh snapshot
            db.session.rollback()
            statuses = sorted({row.status for row in rows.values()} | set(destinations))
            keys = [(project_id, status) for status in statuses]

            with self.locks.hold(keys, timeout=self.lock_timeout):
                with TaskStore.guard(operation):
                    current = TaskStore.get_task_rows(task_ids)
                    missing = [tid for tid in task_ids if tid not in current]
                    if missing:
                        raise NotFoundError("One or more tasks not found", context={'missing_task_ids': missing})
                    if any(current[tid].status != rows[tid].status for tid in task_ids):
                        logger.info(f"[{operation}] Column changed before lock (attempt {attempt + 1}); retrying")
                        rows = current
                        continue

                    if before_plan is not None:
                        before_plan(current)

                    plan = ColumnPlan(project_id)
                    for status in statuses:
                        plan.load_column(status, TaskStore.column_rows(project_id, status))

                    planner(plan, current)
                    written = TaskStore.apply_changes(plan.changes())
                    db.session.commit()

            return OrderingResult(
                project_id=project_id,
                columns=plan.touched_columns(),
                updated_task_ids=written
            )

        raise StorageFailureError(
            f"Tasks kept changing columns; {operation.lower()} abandoned after {self.MAX_LOCK_ATTEMPTS} attempts",
            context={'task_ids': task_ids}
        )
