"""Add surveys.target_responses for dashboard response rates

Revision ID: 002_survey_target_responses
Revises: 001_nps_core
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = '002_survey_target_responses'
down_revision = '001_nps_core'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('surveys') as batch_op:
        batch_op.add_column(
            sa.Column('target_responses', sa.Integer(), nullable=False, server_default='100')
        )


def downgrade():
    with op.batch_alter_table('surveys') as batch_op:
        batch_op.drop_column('target_responses')
