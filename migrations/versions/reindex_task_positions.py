"""Reindex task positions per board column

Rewrites every (project_id, status) column to dense positions 0..N-1,
keeping the stored order and breaking position ties by id. Heals columns
left with duplicates or gaps by writes that bypassed the ordering service.

Revision ID: reindex_task_positions
Revises: create_task_board_tables
Create Date: 2026-10-18

"""
from itertools import groupby

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'reindex_task_positions'
down_revision = 'create_task_board_tables'
branch_labels = None
depends_on = None


tasks = sa.table(
    'tasks',
    sa.column('id', sa.Integer),
    sa.column('project_id', sa.Integer),
    sa.column('status', sa.String),
    sa.column('position', sa.Integer),
)


def upgrade():
    bind = op.get_bind()
    rows = bind.execute(
        sa.select(tasks.c.id, tasks.c.project_id, tasks.c.status, tasks.c.position).order_by(
            tasks.c.project_id, tasks.c.status, tasks.c.position, tasks.c.id
        )
    ).all()

    # Ranks are computed from a snapshot; an in-SQL correlated count would
    # see rows already rewritten by the same statement on SQLite
    for _, column_rows in groupby(rows, key=lambda row: (row.project_id, row.status)):
        for position, row in enumerate(column_rows):
            if row.position != position:
                bind.execute(
                    tasks.update().where(tasks.c.id == row.id).values(position=position)
                )


def downgrade():
    # Previous (corrupt) positions are not recoverable
    pass
