"""
Event Logger Service - Audit trail for recurring series and their instances.

Every change made through the recurring jobs services is written to the
event_log table in the same transaction as the change itself, so the history
of a series (created, archived, instances generated, skipped, converted)
can be replayed later.
"""

import logging
from typing import Dict, Iterable, Optional, List
from datetime import datetime

from sqlalchemy import and_, or_

logger = logging.getLogger(__name__)

# Event types for different operations
EVENT_TYPES = {
    # CRUD Operations
    'CREATED': 'Entity was created',
    'UPDATED': 'Entity was updated',
    'ARCHIVED': 'Entity was archived',

    # Instance lifecycle
    'INSTANCES_GENERATED': 'Recurring instances were generated',
    'STATUS_CHANGED': 'Status was changed',
    'JOB_CREATED': 'Job was created from a recurring instance',
}

class EventLogger:
    """Service for logging system events to the database."""

    def __init__(self, session, actor_type: str = 'system', actor_id: str = None):
        """
        Initialize the event logger.

        Args:
            session: SQLAlchemy database session
            actor_type: Type of actor (user, system)
            actor_id: ID of the actor (user ID if user, None if system)
        """
        self.session = session
        self.actor_type = actor_type
        self.actor_id = actor_id

    def log(self, entity_type: str, entity_id: str, event_type: str,
            description: str = None, metadata: Dict = None):
        """
        Add an event to the current unit of work.

        The row is flushed together with the change it describes, so a
        rolled-back operation leaves no audit entry behind.

        Args:
            entity_type: Type of entity (job_series, recurring_job_instance, job)
            entity_id: ID of the entity
            event_type: Type of event (CREATED, STATUS_CHANGED, etc.)
            description: Human-readable description of the event
            metadata: Additional data about the event

        Returns:
            The pending EventLog row
        """
        from database.models import EventLog

        event = EventLog(
            timestamp=datetime.utcnow(),
            actor_type=self.actor_type,
            actor_id=self.actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            description=description or EVENT_TYPES.get(event_type, event_type),
            extra_data=metadata or {}
        )
        self.session.add(event)

        logger.debug(f"Event logged: {event_type} on {entity_type}:{entity_id}")
        return event

    def log_create(self, entity_type: str, entity_id: str, entity_data: Dict = None):
        """Log a creation event."""
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='CREATED',
            description=f"New {entity_type} created",
            metadata={'data': entity_data} if entity_data else None
        )

    def log_update(self, entity_type: str, entity_id: str, changes: Dict = None):
        """Log an update event with change tracking."""
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='UPDATED',
            description=f"{entity_type} was updated",
            metadata={'changes': changes} if changes else None
        )

    def log_status_change(self, entity_type: str, entity_id: str,
                          old_status: str, new_status: str, metadata: Dict = None):
        """Log a status change event."""
        data = {'old_status': old_status, 'new_status': new_status}
        if metadata:
            data.update(metadata)
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='STATUS_CHANGED',
            description=f"{entity_type} status changed from '{old_status}' to '{new_status}'",
            metadata=data
        )

    def get_entity_history(self, entity_type: str, entity_id: str,
                           limit: int = 50) -> List[Dict]:
        """Get the event history for a specific entity, newest first."""
        return self.get_related_history({entity_type: [entity_id]}, limit=limit)

    def get_related_history(self, entities: Dict[str, Iterable], limit: int = 50) -> List[Dict]:
        """
        Get the events of several entities as one timeline, newest first.

        Args:
            entities: Mapping of entity type to ids (a list or a select of ids)
            limit: Maximum number of events returned
        """
        from database.models import EventLog

        # Pending events of this unit of work must be visible to the query
        self.session.flush()

        clauses = [
            and_(EventLog.entity_type == entity_type, EventLog.entity_id.in_(ids))
            for entity_type, ids in entities.items()
        ]
        events = self.session.query(EventLog).filter(
            or_(*clauses)
        ).order_by(EventLog.timestamp.desc()).limit(limit).all()

        return [e.to_dict() for e in events]


def get_event_logger(session, user_id: Optional[str] = None) -> EventLogger:
    """
    Factory function to create an EventLogger instance.

    Args:
        session: SQLAlchemy database session
        user_id: Optional user ID if the actor is a user

    Returns:
        EventLogger instance
    """
    actor_type = 'user' if user_id else 'system'
    return EventLogger(session, actor_type, user_id)
