"""Initial schema: daily records, baselines, smart cards, goals, workout logs, flags

Revision ID: sentient_001
Revises:
Create Date: 2026-10-18

- daily_record: one row per calendar day (raw snapshot + derived state)
- operator_baselines: singleton 30-day baseline row
- smart_card: typed prompts with lifecycle
- operator_goals: singleton goals row
- workout_log: operator RPE / notes per workout id
- system_flag: key/value flags (first launch, welcome completed)
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers, used by Alembic.
revision = 'sentient_001'
down_revision = None
branch_labels = None
depends_on = None


JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade():
    op.create_table(
        'daily_record',
        sa.Column('date', sa.Date(), primary_key=True),
        sa.Column('record_kind', sa.Text(), nullable=False, server_default='LIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sleep', JSONType, nullable=True),
        sa.Column('activity', JSONType, nullable=True),
        sa.Column('biometrics', JSONType, nullable=True),
        sa.Column('mindful_minutes', sa.Float(), nullable=True),
        sa.Column('raw_captured_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('vitality', sa.Integer(), nullable=True),
        sa.Column('vitality_availability', sa.Text(), nullable=True),
        sa.Column('vitality_unavailable_reason', sa.Text(), nullable=True),
        sa.Column('vitality_confidence', sa.Text(), nullable=True),
        sa.Column('vitality_is_estimated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('vitality_reason_code', sa.Text(), nullable=True),
        sa.Column('vitality_detail', JSONType, nullable=True),
        sa.Column('axes', JSONType, nullable=True),
        sa.Column('trends', JSONType, nullable=True),
        sa.Column('biometric_trends', JSONType, nullable=True),
        sa.Column('current_state', sa.Text(), nullable=True),
        sa.Column('active_lens', sa.Text(), nullable=True),
        sa.Column('load_density', sa.Float(), nullable=True),
        sa.Column('alignment_status', sa.Text(), nullable=True),
        sa.Column('alignment_score', sa.Integer(), nullable=True),
        sa.Column('consistency_streak', sa.Integer(), nullable=True),
        sa.Column('rank', sa.Text(), nullable=True),
        sa.Column('directive', JSONType, nullable=True),
        sa.Column('session', JSONType, nullable=True),
    )

    op.create_table(
        'operator_baselines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('window_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('hrv_mean', sa.Float(), nullable=True),
        sa.Column('hrv_stddev', sa.Float(), nullable=True),
        sa.Column('hrv_sample_count', sa.Integer(), nullable=True),
        sa.Column('hrv_coverage', sa.Float(), nullable=True),
        sa.Column('rhr_mean', sa.Float(), nullable=True),
        sa.Column('rhr_stddev', sa.Float(), nullable=True),
        sa.Column('rhr_sample_count', sa.Integer(), nullable=True),
        sa.Column('rhr_coverage', sa.Float(), nullable=True),
        sa.Column('sleep_mean_seconds', sa.Float(), nullable=True),
        sa.Column('sleep_stddev_seconds', sa.Float(), nullable=True),
        sa.Column('sleep_sample_count', sa.Integer(), nullable=True),
        sa.Column('sleep_coverage', sa.Float(), nullable=True),
        sa.Column('sleep_user_entered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('steps_mean', sa.Float(), nullable=True),
        sa.Column('active_calories_mean', sa.Float(), nullable=True),
        sa.Column('workout_minutes_mean', sa.Float(), nullable=True),
        sa.Column('vo2max_mean', sa.Float(), nullable=True),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'smart_card',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('sub_id', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False, server_default='ACTIVE'),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('dismiss_policy', sa.Text(), nullable=False),
        sa.Column('payload', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('dismissed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_smart_card_date', 'smart_card', ['date'])
    op.create_index('ix_smart_card_type_status', 'smart_card', ['type', 'status'])

    op.create_table(
        'operator_goals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('primary_goal', sa.Text(), nullable=False),
        sa.Column('horizon', sa.Text(), nullable=True),
        sa.Column('constraints', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'workout_log',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('workout_id', sa.Text(), nullable=False, unique=True),
        sa.Column('workout_type', sa.Text(), nullable=True),
        sa.Column('rpe', sa.Integer(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('details', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_workout_log_date', 'workout_log', ['date'])

    op.create_table(
        'system_flag',
        sa.Column('key', sa.Text(), primary_key=True),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade():
    op.drop_table('system_flag')
    op.drop_index('ix_workout_log_date', table_name='workout_log')
    op.drop_table('workout_log')
    op.drop_table('operator_goals')
    op.drop_index('ix_smart_card_type_status', table_name='smart_card')
    op.drop_index('ix_smart_card_date', table_name='smart_card')
    op.drop_table('smart_card')
    op.drop_table('operator_baselines')
    op.drop_table('daily_record')
