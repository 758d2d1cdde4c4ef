"""Add timed answer count to user card progress

Revision ID: 003_add_timed_answer_count
Revises: 002_add_difficulty_and_progression
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '003_add_timed_answer_count'
down_revision = '002_add_difficulty_and_progression'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Earlier rows averaged over every answer
    with op.batch_alter_table('user_card_progress') as batch_op:
        batch_op.add_column(sa.Column('timed_answer_count', sa.Integer(), nullable=False, server_default='0'))
        batch_op.create_check_constraint(
            'user_card_progress_timed_count_range',
            'timed_answer_count >= 0 AND timed_answer_count <= correct_count + incorrect_count'
        )
    op.execute('UPDATE user_card_progress SET timed_answer_count = correct_count + incorrect_count')


def downgrade() -> None:
    with op.batch_alter_table('user_card_progress') as batch_op:
        batch_op.drop_constraint('user_card_progress_timed_count_range', type_='check')
        batch_op.drop_column('timed_answer_count')
