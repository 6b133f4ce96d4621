"""
Position Index - dense ordering of tasks inside a board column

A column is every task sharing one (project_id, status) pair. Positions in a
column are 0-based and contiguous: N tasks occupy exactly 0..N-1.

This module is pure. It never touches the database; callers read the stored
columns, plan the moves here, and persist whatever ``ColumnPlan.changes()``
reports.
"""

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Tuple


def reindex(ordered_ids: Sequence[Hashable]) -> Dict[Hashable, int]:
    """
    Assign positions 0..N-1 following list order.

    Args:
        ordered_ids: Task IDs in their desired column order

    Returns:
        Mapping of task ID to its dense position (empty for an empty column)
    """
    return {task_id: position for position, task_id in enumerate(ordered_ids)}


def clamp_position(position: int, size: int) -> int:
    """Clamp a requested index into [0, size]; past-the-end appends, negatives go first."""
    return max(0, min(position, size))


@dataclass(frozen=True)
class PositionChange:
    """One row write: the task's new (status, position) differs from storage."""
    task_id: int
    status: str
    position: int
    status_changed: bool = False


class ColumnPlan:
    """
    In-memory working copy of the columns touched by one ordering operation.

    Load each column with its stored order, apply moves in the order they are
    requested, then ask for ``changes()``. Later moves see the effect of
    earlier ones, so a plan is deterministic for a given move sequence but
    not commutative.
    """

    def __init__(self, project_id: int):
        self.project_id = project_id
        self.columns: Dict[str, List[int]] = {}
        self._stored: Dict[int, Tuple[str, int]] = {}
        self._location: Dict[int, str] = {}
        self._touched: List[str] = []

    def load_column(self, status: str, rows: Iterable[Tuple[int, int]]) -> None:
        """
        Register a column's stored order.

        Args:
            status: Column identifier
            rows: (task_id, stored_position) pairs, already sorted by position
        """
        ordered = []
        for task_id, stored_position in rows:
            ordered.append(task_id)
            self._stored[task_id] = (status, stored_position)
            self._location[task_id] = status
        self.columns[status] = ordered

    def has_column(self, status: str) -> bool:
        return status in self.columns

    def column_of(self, task_id: int) -> str:
        """Column the task occupies in the plan right now."""
        try:
            return self._location[task_id]
        except KeyError:
            raise ValueError(f"Task {task_id} is not in any loaded column") from None

    def move(self, task_id: int, to_position: int, to_status: Optional[str] = None) -> int:
        """
        Remove the task from its current column and insert it into the target.

        Args:
            task_id: Task to move (must live in a loaded column)
            to_position: Requested index, clamped into the destination
            to_status: Destination column; defaults to the task's current column

        Returns:
            The index the task landed on
        """
        source = self.column_of(task_id)
        destination = to_status or source
        if destination not in self.columns:
            raise ValueError(f"Column '{destination}' was not loaded")

        self.columns[source].remove(task_id)
        self._mark_touched(source)

        target = self.columns[destination]
        index = clamp_position(to_position, len(target))
        target.insert(index, task_id)
        self._location[task_id] = destination
        self._mark_touched(destination)
        return index

    def touch(self, status: str) -> None:
        """Force a loaded column to be reindexed even if no move landed in it."""
        if status not in self.columns:
            raise ValueError(f"Column '{status}' was not loaded")
        self._mark_touched(status)

    def touched_columns(self) -> List[str]:
        return list(self._touched)

    def changes(self) -> List[PositionChange]:
        """
        Rows whose (status, position) differ from storage.

        Grouped by column in the order columns were first touched, and in
        ascending position order inside each column.
        """
        out: List[PositionChange] = []
        for status in self._touched:
            for task_id, position in reindex(self.columns[status]).items():
                stored_status, stored_position = self._stored[task_id]
                if stored_status != status or stored_position != position:
                    out.append(PositionChange(
                        task_id=task_id,
                        status=status,
                        position=position,
                        status_changed=stored_status != status,
                    ))
        return out

    def _mark_touched(self, status: str) -> None:
        if status not in self._touched:
            self._touched.append(status)
