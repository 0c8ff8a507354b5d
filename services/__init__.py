"""
Services package for FieldCrew recurring jobs.
Contains the scheduling, lifecycle and repository classes.
"""

from services.errors import (
    RecurringJobsError, NotFoundError, StateError, JobCreationError, ValidationError
)
from services.recurring_jobs_repository import RecurringJobsRepository
from services.series_scheduler import SeriesScheduler
from services.job_conversion import JobConversionService, JobCreator, DatabaseJobCreator

__all__ = [
    'RecurringJobsError',
    'NotFoundError',
    'StateError',
    'JobCreationError',
    'ValidationError',
    'RecurringJobsRepository',
    'SeriesScheduler',
    'JobConversionService',
    'JobCreator',
    'DatabaseJobCreator'
]
