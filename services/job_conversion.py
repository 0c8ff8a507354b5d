"""
Job Conversion Service - Turns a scheduled recurring instance into a real Job.

Conversion happens at most once per instance. The instance row is locked,
its status checked, and then job creation plus the ``scheduled -> created``
transition run inside one SAVEPOINT. If job creation fails the savepoint is
rolled back, the instance stays ``scheduled`` with no job id, and the call
can simply be retried. If another request converted the same instance
first, the optimistic version check on the instance row turns the loser's
flush into a ``StateError``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from database.models import Client, CrewMember, Job, JobTemplate, Property
from services import instance_lifecycle as lifecycle
from services.errors import JobCreationError, RecurringJobsError, StateError
from services.recurring_jobs_repository import RecurringJobsRepository

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = 'Recurring Client'


class JobCreator(ABC):
    """Collaborator that creates a Job from seeded fields."""

    @abstractmethod
    def create_job(self, session: Session, seed: Dict) -> Job:
        """Insert the job and return it; failures become JobCreationError."""


class DatabaseJobCreator(JobCreator):
    """Creates jobs directly in the jobs table, resolving directory data."""

    def create_job(self, session: Session, seed: Dict) -> Job:
        client = session.get(Client, seed['client_id']) if seed.get('client_id') else None
        customer_name = (client.display_name if client else None) or DEFAULT_CUSTOMER_NAME

        job_location = None
        if seed.get('property_id'):
            prop = session.get(Property, seed['property_id'])
            if prop is not None:
                job_location = prop.full_address
        if not job_location and client is not None and client.billing_address_line1:
            job_location = client.billing_address_line1

        assigned_crew = []
        if seed.get('crew_id'):
            members = session.query(CrewMember.employee_id).filter(
                CrewMember.crew_id == seed['crew_id'],
                CrewMember.left_at.is_(None)
            ).order_by(CrewMember.joined_at).all()
            assigned_crew = [row[0] for row in members]

        title = seed['title']
        description = seed.get('description')
        estimated_hours = seed.get('estimated_hours')
        service_type = seed.get('service_type')
        if seed.get('job_template_id'):
            template = session.get(JobTemplate, seed['job_template_id'])
            if template is not None:
                title = template.name or title
                description = description or template.description
                if estimated_hours is None:
                    estimated_hours = template.default_duration_hours
                service_type = service_type or template.service_type

        job = Job(
            client_id=seed.get('client_id'),
            property_id=seed.get('property_id'),
            job_template_id=seed.get('job_template_id'),
            crew_id=seed.get('crew_id'),
            series_id=seed.get('series_id'),
            title=title,
            description=description,
            customer_name=customer_name,
            status='Scheduled',
            service_type=service_type,
            scheduled_date=seed['scheduled_date'],
            assigned_crew=assigned_crew,
            job_location=job_location,
            special_instructions=seed.get('notes'),
            estimated_hours=estimated_hours
        )
        session.add(job)
        session.flush()
        logger.info(f"Created job {job.id} for {customer_name} on {job.scheduled_date}")
        return job


def build_job_seed(series, instance) -> Dict:
    """Fields a new job inherits from its series and instance."""
    return {
        'series_id': series.id,
        'client_id': series.client_id,
        'property_id': series.property_id,
        'job_template_id': series.job_template_id,
        'crew_id': series.default_crew_id,
        'title': series.series_name,
        'description': series.description,
        'service_type': series.service_type,
        'estimated_hours': series.estimated_duration_hours,
        'notes': series.notes,
        'scheduled_date': instance.scheduled_date,
    }


class JobConversionService:
    """Converts recurring instances into jobs, exactly once each."""

    def __init__(self, session: Session, job_creator: Optional[JobCreator] = None,
                 user_id: str = None):
        self.session = session
        self.job_creator = job_creator or DatabaseJobCreator()
        self.repository = RecurringJobsRepository(session, user_id=user_id)

    def convert(self, series_id: str, instance_id: str) -> Dict:
        """
        Create the job for a scheduled instance.

        Returns:
            ``{'instance': ..., 'job': ...}`` as dictionaries

        Raises:
            NotFoundError: unknown series or instance
            StateError: instance is not scheduled, or lost a concurrent conversion
            JobCreationError: the job creator failed; nothing was changed
        """
        instance = self.repository.get_instance_row(series_id, instance_id, for_update=True)
        lifecycle.ensure_transition(instance, lifecycle.CREATED)
        series = self.repository.get_series_row(series_id)
        seed = build_job_seed(series, instance)

        try:
            with self.session.begin_nested():
                try:
                    job = self.job_creator.create_job(self.session, seed)
                except RecurringJobsError:
                    raise
                except Exception as e:
                    logger.error(f"Job creation failed for instance {instance_id}: {e}")
                    raise JobCreationError(f"Job creation failed: {e}") from e
                if job is None or not job.id:
                    raise JobCreationError("Job creator did not return a persisted job")

                lifecycle.transition(instance, lifecycle.CREATED, job_id=job.id)
                self.repository.events.log_status_change(
                    'recurring_job_instance', instance.id,
                    lifecycle.SCHEDULED, lifecycle.CREATED,
                    metadata={'action': 'convert', 'series_id': series_id, 'job_id': job.id}
                )
                self.repository.events.log(
                    entity_type='job',
                    entity_id=job.id,
                    event_type='JOB_CREATED',
                    description=f"Job created from '{series.series_name}' visit on {instance.scheduled_date}",
                    metadata={'series_id': series_id, 'instance_id': instance.id}
                )
                self.session.flush()
        except StaleDataError:
            raise StateError(f"Instance {instance_id} was converted by another request")

        logger.info(f"Converted instance {instance_id} of series {series_id} into job {job.id}")
        return {'instance': instance.to_dict(), 'job': job.to_dict()}
