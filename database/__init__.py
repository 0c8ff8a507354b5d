"""
Database package for the FieldCrew recurring jobs service.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    configure_engine,
    create_db_engine,
    get_engine,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    Client,
    Property,
    Crew,
    CrewMember,
    JobTemplate,
    Job,
    JobSeries,
    RecurringJobInstance,
    EventLog
)

__all__ = [
    # Connection
    'Base',
    'configure_engine',
    'create_db_engine',
    'get_engine',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'Client',
    'Property',
    'Crew',
    'CrewMember',
    'JobTemplate',
    'Job',
    'JobSeries',
    'RecurringJobInstance',
    'EventLog'
]
