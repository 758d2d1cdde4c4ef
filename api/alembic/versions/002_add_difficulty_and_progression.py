"""Add card difficulty, user progression and progression session tables

Revision ID: 002_add_difficulty_and_progression
Revises: 001_initial_schema
Create Date: 2026-09-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_add_difficulty_and_progression'
down_revision = '001_initial_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create card_difficulty table
    op.create_table(
        'card_difficulty',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.Column('vocabulary_score', sa.Integer(), nullable=False),
        sa.Column('grammar_score', sa.Integer(), nullable=False),
        sa.Column('length_score', sa.Integer(), nullable=False),
        sa.Column('type_score', sa.Integer(), nullable=False),
        sa.Column('total_difficulty', sa.Integer(), nullable=False),
        sa.Column('calculated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['card_id'], ['card.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('vocabulary_score >= 0 AND vocabulary_score <= 30', name='card_difficulty_vocabulary_range'),
        sa.CheckConstraint('grammar_score >= 0 AND grammar_score <= 40', name='card_difficulty_grammar_range'),
        sa.CheckConstraint('length_score >= 0 AND length_score <= 20', name='card_difficulty_length_range'),
        sa.CheckConstraint('type_score >= 0 AND type_score <= 10', name='card_difficulty_type_range'),
        sa.CheckConstraint('total_difficulty >= 0 AND total_difficulty <= 100', name='card_difficulty_total_range'),
        sa.CheckConstraint(
            'total_difficulty = vocabulary_score + grammar_score + length_score + type_score',
            name='card_difficulty_total_is_sum'
        )
    )
    op.create_index(op.f('ix_card_difficulty_card_id'), 'card_difficulty', ['card_id'], unique=True)

    # Create user_progression table
    op.create_table(
        'user_progression',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('streak', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_difficulty', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('total_sessions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_correct_answers', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_questions_answered', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_session_date', sa.Date(), nullable=True),
        sa.Column('level_up_date', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('level >= 1 AND level <= 50', name='user_progression_level_range'),
        sa.CheckConstraint('xp >= 0', name='user_progression_xp_non_negative'),
        sa.CheckConstraint('streak >= 0', name='user_progression_streak_non_negative'),
        sa.CheckConstraint(
            'current_difficulty >= 0 AND current_difficulty <= 100',
            name='user_progression_difficulty_range'
        ),
        sa.CheckConstraint(
            'total_sessions >= 0 AND total_correct_answers >= 0 AND total_questions_answered >= 0',
            name='user_progression_totals_non_negative'
        ),
        sa.CheckConstraint(
            'total_correct_answers <= total_questions_answered',
            name='user_progression_correct_le_answered'
        )
    )
    op.create_index(op.f('ix_user_progression_user_id'), 'user_progression', ['user_id'], unique=True)
    op.create_index('ix_user_progression_level_xp', 'user_progression', ['level', 'xp'], unique=False)

    # Create progression_session table
    op.create_table(
        'progression_session',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('session_key', sa.String(length=64), nullable=True),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('starting_difficulty', sa.Integer(), nullable=False),
        sa.Column('ending_difficulty', sa.Integer(), nullable=False),
        sa.Column('xp_earned', sa.Integer(), nullable=False),
        sa.Column('questions_answered', sa.Integer(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('session_accuracy', sa.Float(), nullable=False),
        sa.Column('difficulty_adjustments', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'session_key', name='uq_progression_session_user_key'),
        sa.CheckConstraint(
            'starting_difficulty >= 0 AND starting_difficulty <= 100',
            name='progression_session_starting_difficulty_range'
        ),
        sa.CheckConstraint(
            'ending_difficulty >= 0 AND ending_difficulty <= 100',
            name='progression_session_ending_difficulty_range'
        ),
        sa.CheckConstraint('xp_earned >= 0', name='progression_session_xp_non_negative'),
        sa.CheckConstraint(
            'correct_answers >= 0 AND correct_answers <= questions_answered',
            name='progression_session_correct_le_answered'
        ),
        sa.CheckConstraint(
            'session_accuracy >= 0 AND session_accuracy <= 100',
            name='progression_session_accuracy_range'
        ),
        sa.CheckConstraint('difficulty_adjustments >= 0', name='progression_session_adjustments_non_negative')
    )
    op.create_index(op.f('ix_progression_session_user_id'), 'progression_session', ['user_id'], unique=False)
    op.create_index(
        'ix_progression_session_user_date', 'progression_session', ['user_id', 'session_date'], unique=False
    )


def downgrade() -> None:
    op.drop_index('ix_progression_session_user_date', table_name='progression_session')
    op.drop_index(op.f('ix_progression_session_user_id'), table_name='progression_session')
    op.drop_table('progression_session')
    op.drop_index('ix_user_progression_level_xp', table_name='user_progression')
    op.drop_index(op.f('ix_user_progression_user_id'), table_name='user_progression')
    op.drop_table('user_progression')
    op.drop_index(op.f('ix_card_difficulty_card_id'), table_name='card_difficulty')
    op.drop_table('card_difficulty')
