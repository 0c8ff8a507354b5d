"""
SQLAlchemy models for the FieldCrew recurring jobs service.
Defines the recurring series tables plus the directory and job tables they seed from.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Date,
    ForeignKey, JSON, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), 'postgresql')

RECURRENCE_PATTERNS = ('daily', 'weekly', 'monthly', 'quarterly', 'yearly', 'custom')
INSTANCE_STATUSES = ('scheduled', 'created', 'skipped', 'cancelled')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# DIRECTORY - CLIENTS & PROPERTIES
# =============================================================================

class Client(Base):
    """Customer/Client records."""
    __tablename__ = 'clients'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    first_name = Column(String(100))
    last_name = Column(String(100))
    company_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    billing_address_line1 = Column(String(255))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    properties = relationship("Property", back_populates="client")

    @property
    def display_name(self):
        if self.company_name:
            return self.company_name
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or None

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'company_name': self.company_name,
            'display_name': self.display_name,
            'email': self.email,
            'phone': self.phone,
            'billing_address_line1': self.billing_address_line1,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at)
        }


class Property(Base):
    """Service addresses belonging to a client."""
    __tablename__ = 'properties'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False)
    address_line1 = Column(String(255), nullable=False)
    city = Column(String(100))
    state = Column(String(50))
    zip = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)

    client = relationship("Client", back_populates="properties")

    __table_args__ = (
        Index('ix_properties_client', 'client_id'),
    )

    @property
    def full_address(self):
        return f"{self.address_line1}, {self.city or ''}, {self.state or ''} {self.zip or ''}".strip()


# =============================================================================
# DIRECTORY - CREWS & TEMPLATES
# =============================================================================

class Crew(Base):
    """Field crews that jobs are assigned to."""
    __tablename__ = 'crews'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    members = relationship("CrewMember", back_populates="crew")


class CrewMember(Base):
    """Membership of an employee in a crew. ``left_at`` closes the membership."""
    __tablename__ = 'crew_members'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    crew_id = Column(String(36), ForeignKey('crews.id', ondelete='CASCADE'), nullable=False)
    employee_id = Column(String(36), nullable=False)
    joined_at = Column(DateTime, default=datetime.utcnow)
    left_at = Column(DateTime)

    crew = relationship("Crew", back_populates="members")

    __table_args__ = (
        Index('ix_crew_members_crew', 'crew_id'),
    )


class JobTemplate(Base):
    """Reusable job definitions (name, description, default duration)."""
    __tablename__ = 'job_templates'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    service_type = Column(String(100))
    default_duration_hours = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# JOBS
# =============================================================================

class Job(Base):
    """Billable jobs/work orders."""
    __tablename__ = 'jobs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('clients.id', ondelete='SET NULL'))
    property_id = Column(String(36), ForeignKey('properties.id', ondelete='SET NULL'))
    job_template_id = Column(String(36), ForeignKey('job_templates.id', ondelete='SET NULL'))
    crew_id = Column(String(36), ForeignKey('crews.id', ondelete='SET NULL'))
    series_id = Column(String(36), ForeignKey('job_series.id', ondelete='SET NULL'))
    title = Column(String(255), nullable=False)
    description = Column(Text)
    customer_name = Column(String(255))
    status = Column(String(50), default='Scheduled')
    service_type = Column(String(100))
    scheduled_date = Column(Date)
    assigned_crew = Column(JSONType, default=list)
    job_location = Column(Text)
    special_instructions = Column(Text)
    estimated_hours = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_jobs_client', 'client_id'),
        Index('ix_jobs_series', 'series_id'),
        Index('ix_jobs_scheduled_date', 'scheduled_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'property_id': self.property_id,
            'job_template_id': self.job_template_id,
            'crew_id': self.crew_id,
            'series_id': self.series_id,
            'title': self.title,
            'description': self.description,
            'customer_name': self.customer_name,
            'status': self.status,
            'service_type': self.service_type,
            'scheduled_date': _iso(self.scheduled_date),
            'assigned_crew': self.assigned_crew or [],
            'job_location': self.job_location,
            'special_instructions': self.special_instructions,
            'estimated_hours': self.estimated_hours,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# RECURRING JOB SERIES
# =============================================================================

class JobSeries(Base):
    """
    A recurring job definition: recurrence pattern, validity window and the
    defaults each generated job is seeded with. Archived by clearing
    ``is_active``; rows are never deleted.
    """
    __tablename__ = 'job_series'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('clients.id', ondelete='CASCADE'), nullable=False)
    property_id = Column(String(36), ForeignKey('properties.id', ondelete='SET NULL'))
    series_name = Column(String(255), nullable=False)
    description = Column(Text)
    service_type = Column(String(100))
    recurrence_pattern = Column(String(20), nullable=False)
    recurrence_interval = Column(Integer, nullable=False, default=1)
    recurrence_day_of_week = Column(Integer)   # 0=Sunday .. 6=Saturday, weekly only
    recurrence_day_of_month = Column(Integer)  # 1-31, monthly only
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True)
    job_template_id = Column(String(36), ForeignKey('job_templates.id', ondelete='SET NULL'))
    default_crew_id = Column(String(36), ForeignKey('crews.id', ondelete='SET NULL'))
    estimated_duration_hours = Column(Float)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client")
    service_property = relationship("Property")
    job_template = relationship("JobTemplate")
    default_crew = relationship("Crew")
    instances = relationship(
        "RecurringJobInstance",
        back_populates="series",
        order_by="RecurringJobInstance.scheduled_date"
    )

    __table_args__ = (
        CheckConstraint(
            "recurrence_pattern IN ('daily', 'weekly', 'monthly', 'quarterly', 'yearly', 'custom')",
            name='ck_job_series_pattern'
        ),
        CheckConstraint('recurrence_interval >= 1', name='ck_job_series_interval'),
        CheckConstraint('end_date IS NULL OR end_date >= start_date', name='ck_job_series_dates'),
        Index('ix_job_series_client', 'client_id'),
        Index('ix_job_series_active', 'is_active'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'property_id': self.property_id,
            'series_name': self.series_name,
            'description': self.description,
            'service_type': self.service_type,
            'recurrence_pattern': self.recurrence_pattern,
            'recurrence_interval': self.recurrence_interval,
            'recurrence_day_of_week': self.recurrence_day_of_week,
            'recurrence_day_of_month': self.recurrence_day_of_month,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'is_active': self.is_active,
            'job_template_id': self.job_template_id,
            'default_crew_id': self.default_crew_id,
            'estimated_duration_hours': self.estimated_duration_hours,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class RecurringJobInstance(Base):
    """
    One dated occurrence of a series. ``job_id`` is set exactly when the
    status is ``created``. ``version`` backs optimistic locking so two
    concurrent conversions cannot both commit.
    """
    __tablename__ = 'recurring_job_instances'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    series_id = Column(String(36), ForeignKey('job_series.id', ondelete='CASCADE'), nullable=False)
    job_id = Column(String(36), ForeignKey('jobs.id', ondelete='SET NULL'))
    scheduled_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default='scheduled')
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    series = relationship("JobSeries", back_populates="instances")
    job = relationship("Job")

    __mapper_args__ = {'version_id_col': version}

    __table_args__ = (
        UniqueConstraint('series_id', 'scheduled_date', name='uq_recurring_instance_series_date'),
        CheckConstraint(
            "status IN ('scheduled', 'created', 'skipped', 'cancelled')",
            name='ck_recurring_instance_status'
        ),
        Index('ix_recurring_instances_job', 'job_id'),
        Index('ix_recurring_instances_status', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'series_id': self.series_id,
            'job_id': self.job_id,
            'scheduled_date': _iso(self.scheduled_date),
            'status': self.status,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class EventLog(Base):
    """Append-only audit trail of series and instance changes."""
    __tablename__ = 'event_log'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    actor_type = Column(String(20), default='system')  # user, system
    actor_id = Column(String(36))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36), nullable=False)
    event_type = Column(String(50), nullable=False)
    description = Column(Text)
    extra_data = Column(JSONType, default=dict)

    __table_args__ = (
        Index('ix_event_log_entity', 'entity_type', 'entity_id'),
        Index('ix_event_log_timestamp', 'timestamp'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': _iso(self.timestamp),
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'event_type': self.event_type,
            'description': self.description,
            'metadata': self.extra_data or {}
        }
