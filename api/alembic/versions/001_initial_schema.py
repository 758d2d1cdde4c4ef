"""Initial schema: users, decks, cards, review progress and the answer log

Revision ID: 001_initial_schema
Revises: 
Create Date: 2026-09-14 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create user table
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_name'), 'user', ['name'], unique=True)

    # Create deck table
    op.create_table(
        'deck',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_deck_name'), 'deck', ['name'], unique=True)

    # Create card table
    op.create_table(
        'card',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('deck_id', sa.Integer(), nullable=False),
        sa.Column('front', sa.String(), nullable=False),
        sa.Column('back', sa.String(), nullable=False),
        sa.Column('tags', sa.String(), nullable=False, server_default=''),
        sa.Column('difficulty_level', sa.String(), nullable=True),
        sa.Column('word_length', sa.Float(), nullable=False, server_default='0'),
        sa.Column('topic_category', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['deck_id'], ['deck.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('length(trim(front)) > 0', name='card_front_not_empty'),
        sa.CheckConstraint('length(trim(back)) > 0', name='card_back_not_empty')
    )
    op.create_index(op.f('ix_card_deck_id'), 'card', ['deck_id'], unique=False)

    # Create user_card_progress table
    op.create_table(
        'user_card_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.Column('last_reviewed', sa.DateTime(), nullable=False),
        sa.Column('next_review', sa.DateTime(), nullable=False),
        sa.Column('interval', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ease_factor', sa.Float(), nullable=False, server_default='2.5'),
        sa.Column('repetitions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('incorrect_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_response_time', sa.Float(), nullable=False, server_default='0'),
        sa.Column('mastery_level', sa.String(), nullable=False, server_default='learning'),
        sa.Column('first_seen', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.ForeignKeyConstraint(['card_id'], ['card.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'card_id', name='uq_user_card_progress_user_card'),
        sa.CheckConstraint('next_review >= last_reviewed', name='user_card_progress_next_after_last'),
        sa.CheckConstraint('"interval" >= 0', name='user_card_progress_interval_non_negative'),
        sa.CheckConstraint('ease_factor >= 1.3', name='user_card_progress_ease_floor'),
        sa.CheckConstraint('repetitions >= 0', name='user_card_progress_repetitions_non_negative'),
        sa.CheckConstraint(
            'correct_count >= 0 AND incorrect_count >= 0',
            name='user_card_progress_counts_non_negative'
        )
    )
    op.create_index(op.f('ix_user_card_progress_user_id'), 'user_card_progress', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_card_progress_card_id'), 'user_card_progress', ['card_id'], unique=False)
    op.create_index(op.f('ix_user_card_progress_next_review'), 'user_card_progress', ['next_review'], unique=False)

    # Create exercise_result table
    op.create_table(
        'exercise_result',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.Column('session_key', sa.String(length=64), nullable=True),
        sa.Column('question_type', sa.String(length=50), nullable=False),
        sa.Column('correct', sa.Boolean(), nullable=False),
        sa.Column('user_answer', sa.String(), nullable=True),
        sa.Column('correct_answer', sa.String(), nullable=True),
        sa.Column('time_taken_ms', sa.Integer(), nullable=True),
        sa.Column('hints_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.ForeignKeyConstraint(['card_id'], ['card.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('hints_used >= 0', name='exercise_result_hints_non_negative')
    )
    op.create_index(op.f('ix_exercise_result_user_id'), 'exercise_result', ['user_id'], unique=False)
    op.create_index(op.f('ix_exercise_result_card_id'), 'exercise_result', ['card_id'], unique=False)
    op.create_index(op.f('ix_exercise_result_session_key'), 'exercise_result', ['session_key'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_exercise_result_session_key'), table_name='exercise_result')
    op.drop_index(op.f('ix_exercise_result_card_id'), table_name='exercise_result')
    op.drop_index(op.f('ix_exercise_result_user_id'), table_name='exercise_result')
    op.drop_table('exercise_result')
    op.drop_index(op.f('ix_user_card_progress_next_review'), table_name='user_card_progress')
    op.drop_index(op.f('ix_user_card_progress_card_id'), table_name='user_card_progress')
    op.drop_index(op.f('ix_user_card_progress_user_id'), table_name='user_card_progress')
    op.drop_table('user_card_progress')
    op.drop_index(op.f('ix_card_deck_id'), table_name='card')
    op.drop_table('card')
    op.drop_index(op.f('ix_deck_name'), table_name='deck')
    op.drop_table('deck')
    op.drop_index(op.f('ix_user_name'), table_name='user')
    op.drop_table('user')
