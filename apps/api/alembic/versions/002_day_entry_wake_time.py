"""per-day wake time on day entries

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table('day_entry') as batch_op:
        batch_op.add_column(sa.Column('wake_time', sa.Text(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table('day_entry') as batch_op:
        batch_op.drop_column('wake_time')
