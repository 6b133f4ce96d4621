"""
Board Projector - read-only Kanban view of a project

Groups a project's tasks into columns in position order. Tasks whose status
matches none of the requested columns are appended to the default column
instead of being dropped.
"""

import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select

from models import db, Task
from services.errors import InvalidArgumentError
from services.project_access import ProjectAccessService, ALL_ROLES
from services.task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = ("todo", "in_progress", "done")


class BoardProjector:
    """Builds the status -> ordered tasks mapping for one project."""

    def __init__(
        self,
        columns: Optional[Sequence[str]] = None,
        default_column: Optional[str] = None,
        access: Optional[type] = None
    ):
        self.columns = list(columns or DEFAULT_COLUMNS)
        self.default_column = default_column
        self.access = access or ProjectAccessService

    def get_board(
        self,
        user_id: int,
        project_id: int,
        columns: Optional[Iterable[str]] = None
    ) -> "OrderedDict[str, List[Dict]]":
        """
        Project the board.

        Args:
            user_id: Caller (any role on the project may read)
            project_id: Project to project
            columns: Column order for this call; defaults to the configured columns

        Returns:
            OrderedDict of status -> task dicts sorted by position
        """
        self.access.require_role(user_id, project_id, ALL_ROLES)

        names = list(dict.fromkeys(c.strip() for c in (columns or self.columns) if c and c.strip()))
        if not names:
            raise InvalidArgumentError("At least one column is required")
        fallback = self.default_column if self.default_column in names else names[0]

        with TaskStore.guard("BOARD"):
            tasks = db.session.execute(
                select(Task).where(Task.project_id == project_id).order_by(
                    Task.status.asc(),
                    Task.position.asc(),
                    Task.id.asc()
                )
            ).scalars().all()

        board: "OrderedDict[str, List[Dict]]" = OrderedDict((name, []) for name in names)
        strays = []
        for task in tasks:
            if task.status in board:
                board[task.status].append(task.to_dict())
            else:
                strays.append(task.to_dict())

        if strays:
            logger.debug(f"[BOARD] Project {project_id}: {len(strays)} tasks with unknown status placed in '{fallback}'")
            board[fallback].extend(strays)

        return board
