"""
Domain errors for the recurring jobs services.
"""

from validators import ValidationError


class RecurringJobsError(Exception):
    """Base class for recurring job failures that are not input validation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(RecurringJobsError):
    """Unknown series, instance or directory record."""


class StateError(RecurringJobsError):
    """An instance lifecycle transition that is not allowed from its current status."""


class JobCreationError(RecurringJobsError):
    """The job-creation collaborator failed; the instance was left untouched."""


__all__ = [
    'ValidationError',
    'RecurringJobsError',
    'NotFoundError',
    'StateError',
    'JobCreationError',
]
