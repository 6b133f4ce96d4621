"""
Task Store - shared query logic for board columns

Every ordering path reads and writes columns through these helpers so the
column order (position, then id) and the write order (ascending position)
are identical everywhere.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError

from models import db, Task
from services.errors import InvalidArgumentError, StorageFailureError
from services.position_index import PositionChange

logger = logging.getLogger(__name__)

# Largest id a signed 64-bit INTEGER column can hold
MAX_ID = 2 ** 63 - 1


def validate_id(value, field_name: str) -> int:
    """Reject anything that cannot be a stored row id before it reaches a query."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"'{field_name}' must be an integer", context={'field': field_name})
    if not 1 <= value <= MAX_ID:
        raise InvalidArgumentError(
            f"'{field_name}' must be between 1 and {MAX_ID}",
            context={'field': field_name}
        )
    return value


class TaskRow(NamedTuple):
    """The ordering-relevant slice of a task row."""
    id: int
    project_id: int
    status: str
    position: int


class TaskStore:
    """
    Builds and runs the column queries.
    All methods use the request-scoped ``db.session``; callers commit.
    """

    @staticmethod
    @contextmanager
    def guard(operation: str) -> Iterator[None]:
        """
        Roll back on any failure inside the block.

        SQLAlchemy errors are re-raised as StorageFailureError carrying the
        store's message; everything else propagates unchanged.
        """
        try:
            yield
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"[{operation}] Storage failure: {e}", exc_info=True)
            raise StorageFailureError(str(e), context={'operation': operation}) from e
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def get_task_row(task_id: int) -> Optional[TaskRow]:
        return TaskStore.get_task_rows([task_id]).get(task_id)

    @staticmethod
    def get_task_rows(task_ids: Iterable[int]) -> Dict[int, TaskRow]:
        stmt = select(Task.id, Task.project_id, Task.status, Task.position).where(
            Task.id.in_(list(task_ids))
        )
        return {row.id: TaskRow(*row) for row in db.session.execute(stmt)}

    @staticmethod
    def column_rows(project_id: int, status: str) -> List[Tuple[int, int]]:
        """
        Stored order of one column as (task_id, position) pairs.

        Ties on position (a column left corrupt by an interrupted write) are
        broken by id so the next reindex heals it deterministically. Rows are
        locked FOR UPDATE where the backend supports it.
        """
        stmt = select(Task.id, Task.position).where(
            Task.project_id == project_id,
            Task.status == status
        ).order_by(
            Task.position.asc(),
            Task.id.asc()
        ).with_for_update()
        return [(row.id, row.position) for row in db.session.execute(stmt)]

    @staticmethod
    def next_position(project_id: int, status: str) -> int:
        """Position that appends a new task at the end of a column."""
        max_position = db.session.scalar(
            select(func.max(Task.position)).where(
                Task.project_id == project_id,
                Task.status == status
            )
        )
        return 0 if max_position is None else max_position + 1

    @staticmethod
    def apply_changes(changes: Iterable[PositionChange]) -> List[int]:
        """
        Issue one UPDATE per changed row, in the order given.

        Returns:
            IDs of the tasks written
        """
        written = []
        for change in changes:
            values = {'position': change.position}
            if change.status_changed:
                values['status'] = change.status
            db.session.execute(
                update(Task).where(Task.id == change.task_id).values(**values)
            )
            written.append(change.task_id)
        return written
