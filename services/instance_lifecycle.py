"""
Status state machine for recurring job instances.

    scheduled --convert-->    created    (terminal, carries job_id)
    scheduled --skip-->       skipped
    skipped   --reactivate--> scheduled
    scheduled --cancel-->     cancelled  (terminal, archive cascade only)

Every mutation of ``RecurringJobInstance.status`` goes through
``transition`` so that ``job_id`` is set exactly when the status is
``created``.
"""

import logging
from datetime import datetime
from typing import Dict, Optional, Tuple

from services.errors import StateError

logger = logging.getLogger(__name__)

SCHEDULED = 'scheduled'
CREATED = 'created'
SKIPPED = 'skipped'
CANCELLED = 'cancelled'

TERMINAL_STATUSES = frozenset({CREATED, CANCELLED})

TRANSITIONS: Dict[Tuple[str, str], str] = {
    (SCHEDULED, CREATED): 'convert',
    (SCHEDULED, SKIPPED): 'skip',
    (SKIPPED, SCHEDULED): 'reactivate',
    (SCHEDULED, CANCELLED): 'cancel',
}


def action_for(current: str, target: str) -> Optional[str]:
    """Name of the action moving ``current`` to ``target``, or None if illegal."""
    return TRANSITIONS.get((current, target))


def can_transition(current: str, target: str) -> bool:
    return (current, target) in TRANSITIONS


def ensure_transition(instance, target: str) -> str:
    """
    Check a transition without applying it.

    Raises:
        StateError: if ``target`` is not reachable from the current status
    """
    action = action_for(instance.status, target)
    if action is None:
        if instance.status in TERMINAL_STATUSES:
            raise StateError(
                f"Instance {instance.id} is {instance.status}; no further changes are allowed"
            )
        raise StateError(
            f"Cannot change instance {instance.id} from {instance.status} to {target}"
        )
    if target == CREATED and instance.job_id is not None:
        raise StateError(f"Instance {instance.id} is already linked to job {instance.job_id}")
    return action


def transition(instance, target: str, job_id: Optional[str] = None) -> str:
    """
    Apply a legal status transition to an instance row.

    ``job_id`` is required when moving to ``created`` and rejected otherwise.
    The row is left untouched when anything is wrong.

    Returns:
        The action name that was applied.
    """
    action = ensure_transition(instance, target)

    if target == CREATED and not job_id:
        raise StateError("A job id is required to mark an instance as created")
    if target != CREATED and job_id is not None:
        raise StateError("Only created instances may carry a job id")

    previous = instance.status
    instance.status = target
    instance.job_id = job_id if target == CREATED else None
    instance.updated_at = datetime.utcnow()

    logger.debug(f"Instance {instance.id}: {previous} -> {target} ({action})")
    return action
