"""Create surveys, questions, customers, campaigns, responses and answers

Revision ID: 001_nps_core
Revises: None
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = '001_nps_core'
down_revision = None
branch_labels = None
depends_on = None


def _counter(name):
    return sa.Column(name, sa.Integer(), nullable=False, server_default='0')


def upgrade():
    op.create_table(
        'surveys',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('anonymous_responses', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('share_code', sa.String(50), nullable=False),
        _counter('response_count'),
        _counter('promoters_count'),
        _counter('passives_count'),
        _counter('detractors_count'),
        sa.Column('nps_score', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_surveys_organization_id', 'surveys', ['organization_id'])
    op.create_index('ix_surveys_share_code', 'surveys', ['share_code'], unique=True)

    op.create_table(
        'questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('survey_id', sa.String(36), sa.ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(30), nullable=False, server_default='text'),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_questions_survey_id', 'questions', ['survey_id'])

    op.create_table(
        'customers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('nps_score', sa.Integer(), nullable=True),
        sa.Column('segment', sa.String(20), nullable=True),
        sa.Column('last_survey_at', sa.DateTime(), nullable=True),
        _counter('total_responses'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'email', name='uq_customers_organization_email'),
    )
    op.create_index('ix_customers_organization_id', 'customers', ['organization_id'])

    op.create_table(
        'distribution_campaigns',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), nullable=False),
        sa.Column('survey_id', sa.String(36), sa.ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(20), nullable=True),
        _counter('sent_count'),
        _counter('delivered_count'),
        _counter('opened_count'),
        _counter('clicked_count'),
        _counter('responded_count'),
        _counter('bounced_count'),
        _counter('unsubscribed_count'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_distribution_campaigns_organization_id', 'distribution_campaigns', ['organization_id'])
    op.create_index('ix_distribution_campaigns_survey_id', 'distribution_campaigns', ['survey_id'])

    op.create_table(
        'survey_responses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('survey_id', sa.String(36), sa.ForeignKey('surveys.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_id', sa.String(36), sa.ForeignKey('customers.id', ondelete='SET NULL'), nullable=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('distribution_campaigns.id', ondelete='SET NULL'),
                  nullable=True),
        sa.Column('nps_score', sa.Integer(), nullable=True),
        sa.Column('segment', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='started'),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('flagged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('flag_reason', sa.String(500), nullable=True),
        sa.Column('respondent_email', sa.String(255), nullable=True),
        sa.Column('respondent_name', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_survey_responses_survey_created', 'survey_responses', ['survey_id', 'created_at'])
    op.create_index('ix_survey_responses_customer_id', 'survey_responses', ['customer_id'])
    op.create_index('ix_survey_responses_campaign_id', 'survey_responses', ['campaign_id'])

    op.create_table(
        'answers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('response_id', sa.String(36), sa.ForeignKey('survey_responses.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('question_id', sa.String(36), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('numeric_value', sa.Float(), nullable=True),
        sa.Column('selected_options', sa.JSON(), nullable=True),
        sa.Column('other_value', sa.String(500), nullable=True),
    )
    op.create_index('ix_answers_response_question', 'answers', ['response_id', 'question_id'])


def downgrade():
    op.drop_table('answers')
    op.drop_table('survey_responses')
    op.drop_table('distribution_campaigns')
    op.drop_table('customers')
    op.drop_table('questions')
    op.drop_table('surveys')
