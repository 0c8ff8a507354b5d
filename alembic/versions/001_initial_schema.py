"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-16

Creates the directory, job, recurring series and audit tables for the
FieldCrew recurring jobs service.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    # Clients table
    op.create_table('clients',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('first_name', sa.String(100)),
        sa.Column('last_name', sa.String(100)),
        sa.Column('company_name', sa.String(255)),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('billing_address_line1', sa.String(255)),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    # Properties table
    op.create_table('properties',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('address_line1', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100)),
        sa.Column('state', sa.String(50)),
        sa.Column('zip', sa.String(20)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_properties_client', 'properties', ['client_id'])

    # Crews tables
    op.create_table('crews',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('crew_members',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('crew_id', sa.String(36), nullable=False),
        sa.Column('employee_id', sa.String(36), nullable=False),
        sa.Column('joined_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('left_at', sa.DateTime()),
        sa.ForeignKeyConstraint(['crew_id'], ['crews.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_crew_members_crew', 'crew_members', ['crew_id'])

    # Job templates table
    op.create_table('job_templates',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('service_type', sa.String(100)),
        sa.Column('default_duration_hours', sa.Float()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )

    # Job series table
    op.create_table('job_series',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('property_id', sa.String(36)),
        sa.Column('series_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('service_type', sa.String(100)),
        sa.Column('recurrence_pattern', sa.String(20), nullable=False),
        sa.Column('recurrence_interval', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('recurrence_day_of_week', sa.Integer()),
        sa.Column('recurrence_day_of_month', sa.Integer()),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('job_template_id', sa.String(36)),
        sa.Column('default_crew_id', sa.String(36)),
        sa.Column('estimated_duration_hours', sa.Float()),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now()),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['job_template_id'], ['job_templates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['default_crew_id'], ['crews.id'], ondelete='SET NULL'),
        sa.CheckConstraint(
            "recurrence_pattern IN ('daily', 'weekly', 'monthly', 'quarterly', 'yearly', 'custom')",
            name='ck_job_series_pattern'
        ),
        sa.CheckConstraint('recurrence_interval >= 1', name='ck_job_series_interval'),
        sa.CheckConstraint('end_date IS NULL OR end_date >= start_date', name='ck_job_series_dates'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_job_series_client', 'job_series', ['client_id'])
    op.create_index('ix_job_series_active', 'job_series', ['is_active'])

    # Jobs table
    op.create_table('jobs',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36)),
        sa.Column('property_id', sa.String(36)),
        sa.Column('job_template_id', sa.String(36)),
        sa.Column('crew_id', sa.String(36)),
        sa.Column('series_id', sa.String(36)),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('customer_name', sa.String(255)),
        sa.Column('status', sa.String(50), default='Scheduled'),
        sa.Column('service_type', sa.String(100)),
        sa.Column('scheduled_date', sa.Date()),
        sa.Column('assigned_crew', JSON),
        sa.Column('job_location', sa.Text()),
        sa.Column('special_instructions', sa.Text()),
        sa.Column('estimated_hours', sa.Float()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now()),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['job_template_id'], ['job_templates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['crew_id'], ['crews.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['series_id'], ['job_series.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_jobs_client', 'jobs', ['client_id'])
    op.create_index('ix_jobs_series', 'jobs', ['series_id'])
    op.create_index('ix_jobs_scheduled_date', 'jobs', ['scheduled_date'])

    # Recurring job instances table
    op.create_table('recurring_job_instances',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('series_id', sa.String(36), nullable=False),
        sa.Column('job_id', sa.String(36)),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now()),
        sa.ForeignKeyConstraint(['series_id'], ['job_series.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('series_id', 'scheduled_date', name='uq_recurring_instance_series_date'),
        sa.CheckConstraint(
            "status IN ('scheduled', 'created', 'skipped', 'cancelled')",
            name='ck_recurring_instance_status'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_recurring_instances_job', 'recurring_job_instances', ['job_id'])
    op.create_index('ix_recurring_instances_status', 'recurring_job_instances', ['status'])

    # Event log table
    op.create_table('event_log',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('actor_type', sa.String(20), default='system'),
        sa.Column('actor_id', sa.String(36)),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('extra_data', JSON),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_entity', 'event_log', ['entity_type', 'entity_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])


def downgrade() -> None:
    op.drop_table('event_log')
    op.drop_table('recurring_job_instances')
    op.drop_table('jobs')
    op.drop_table('job_series')
    op.drop_table('job_templates')
    op.drop_table('crew_members')
    op.drop_table('crews')
    op.drop_table('properties')
    op.drop_table('clients')
