"""
Recurring Jobs Repository - Database access layer for job series and their instances.
Handles series definitions, the per-series instance table and user status changes.
All mutations are recorded in the event_log table.
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from database.models import (
    Client, Property, Crew, JobTemplate, JobSeries, RecurringJobInstance, generate_uuid
)
from services import instance_lifecycle as lifecycle
from services.errors import NotFoundError, StateError, ValidationError
from services.event_logger import get_event_logger
from services.recurrence import rule_from_fields, rule_to_fields
from validators import clean_series_payload, validate_date_range, validate_instance_status_request

logger = logging.getLogger(__name__)

# Rows per multi-VALUES insert; keeps SQLite under its bound-parameter limit
INSERT_CHUNK_SIZE = 100

RULE_FIELDS = [
    'recurrence_pattern', 'recurrence_interval',
    'recurrence_day_of_week', 'recurrence_day_of_month'
]
EDITABLE_FIELDS = [
    'series_name', 'description', 'service_type', 'client_id', 'property_id',
    'start_date', 'end_date', 'job_template_id', 'default_crew_id',
    'estimated_duration_hours', 'notes'
] + RULE_FIELDS


class RecurringJobsRepository:
    """Repository for recurring series and instance database operations."""

    def __init__(self, session: Session, user_id: str = None,
                 clock: Callable[[], date] = date.today):
        self.session = session
        self.user_id = user_id  # For tracking who made changes
        self.clock = clock
        self.events = get_event_logger(session, user_id)

    # =========================================================================
    # DIRECTORY LOOKUPS
    # =========================================================================

    def _require(self, model, record_id: str, label: str):
        record = self.session.get(model, record_id)
        if record is None:
            raise NotFoundError(f"{label} not found: {record_id}")
        return record

    def _check_references(self, values: Dict) -> None:
        """Resolve every directory id in ``values`` or raise NotFoundError."""
        if values.get('client_id'):
            self._require(Client, values['client_id'], 'Client')
        if values.get('property_id'):
            prop = self._require(Property, values['property_id'], 'Property')
            if values.get('client_id') and prop.client_id != values['client_id']:
                raise ValidationError("property_id does not belong to client_id", 'property_id')
        if values.get('default_crew_id'):
            self._require(Crew, values['default_crew_id'], 'Crew')
        if values.get('job_template_id'):
            self._require(JobTemplate, values['job_template_id'], 'Job template')

    # =========================================================================
    # SERIES
    # =========================================================================

    def get_series_row(self, series_id: str, for_update: bool = False) -> JobSeries:
        """Load a series row, optionally locking it for the rest of the transaction."""
        query = self.session.query(JobSeries).filter(JobSeries.id == series_id)
        if for_update:
            query = query.with_for_update()
        series = query.first()
        if series is None:
            raise NotFoundError(f"Recurring series not found: {series_id}")
        return series

    def _upcoming_summary(self, series_ids: Optional[List[str]] = None) -> Dict[str, tuple]:
        """Earliest upcoming date and count of non-cancelled instances per series."""
        today = self.clock()
        query = self.session.query(
            RecurringJobInstance.series_id,
            func.min(RecurringJobInstance.scheduled_date),
            func.count(RecurringJobInstance.id)
        ).filter(
            RecurringJobInstance.status != lifecycle.CANCELLED,
            RecurringJobInstance.scheduled_date >= today
        )
        if series_ids is not None:
            query = query.filter(RecurringJobInstance.series_id.in_(series_ids))
        rows = query.group_by(RecurringJobInstance.series_id).all()
        return {series_id: (next_date, count) for series_id, next_date, count in rows}

    def _series_dict(self, series: JobSeries, summary: Dict[str, tuple] = None) -> Dict:
        if summary is None:
            summary = self._upcoming_summary([series.id])
        next_date, count = summary.get(series.id, (None, 0))
        data = series.to_dict()
        data['next_occurrence'] = next_date.isoformat() if next_date else None
        data['upcoming_instance_count'] = count
        return data

    def list_series(self, active_only: bool = False) -> List[Dict]:
        """List series, newest first."""
        query = self.session.query(JobSeries)
        if active_only:
            query = query.filter(JobSeries.is_active == True)  # noqa: E712
        series_rows = query.order_by(JobSeries.created_at.desc()).all()
        summary = self._upcoming_summary()
        return [self._series_dict(s, summary) for s in series_rows]

    def get_series(self, series_id: str) -> Dict:
        """Get a series by ID."""
        return self._series_dict(self.get_series_row(series_id))

    def create_series(self, data: Dict) -> Dict:
        """Validate and create a new active series."""
        cleaned = clean_series_payload(data)
        rule = rule_from_fields(
            cleaned['recurrence_pattern'],
            cleaned.get('recurrence_interval'),
            cleaned.get('recurrence_day_of_week'),
            cleaned.get('recurrence_day_of_month'),
        )
        is_valid, error = validate_date_range(cleaned['start_date'], cleaned.get('end_date'))
        if not is_valid:
            raise ValidationError(error, 'end_date')
        self._check_references(cleaned)

        values = {k: v for k, v in cleaned.items() if k not in RULE_FIELDS}
        values.update(rule_to_fields(rule))
        series = JobSeries(is_active=True, **values)
        self.session.add(series)
        self.session.flush()

        self.events.log_create('job_series', series.id, {
            'series_name': series.series_name,
            'recurrence_pattern': series.recurrence_pattern
        })
        logger.info(f"Created recurring series: {series.id} ({series.recurrence_pattern})")
        return self._series_dict(series)

    def update_series(self, series_id: str, data: Dict) -> Dict:
        """
        Apply a partial update. The merged configuration must still form a
        valid recurrence rule. Existing instances are never rewritten.
        """
        series = self.get_series_row(series_id, for_update=True)
        cleaned = clean_series_payload(data, partial=True)

        if 'is_active' in data:
            if not isinstance(data['is_active'], bool):
                raise ValidationError("is_active must be a boolean", 'is_active')
            cleaned['is_active'] = data['is_active']

        merged = {field: getattr(series, field) for field in EDITABLE_FIELDS}
        merged.update({k: v for k, v in cleaned.items() if k in EDITABLE_FIELDS})

        rule = rule_from_fields(
            merged['recurrence_pattern'],
            merged['recurrence_interval'],
            merged['recurrence_day_of_week'],
            merged['recurrence_day_of_month'],
        )
        merged.update(rule_to_fields(rule))
        is_valid, error = validate_date_range(merged['start_date'], merged['end_date'])
        if not is_valid:
            raise ValidationError(error, 'end_date')
        self._check_references({
            k: merged[k] for k in ('client_id', 'property_id', 'default_crew_id', 'job_template_id')
        })
        if 'is_active' in cleaned:
            merged['is_active'] = cleaned['is_active']

        # Track changes for the audit trail
        changes = {}
        for key, new_value in merged.items():
            old_value = getattr(series, key)
            if old_value != new_value:
                changes[key] = {'old': _jsonable(old_value), 'new': _jsonable(new_value)}
                setattr(series, key, new_value)

        if changes:
            series.updated_at = datetime.utcnow()
            self.session.flush()
            self.events.log_update('job_series', series.id, changes)
            logger.info(f"Updated recurring series: {series_id} ({', '.join(changes)})")

        return self._series_dict(series)

    def archive_series(self, series_id: str, cancel_scheduled: bool = False) -> Dict:
        """
        Soft delete a series (set inactive). Instances are kept as they are
        unless ``cancel_scheduled`` is set, in which case every still
        ``scheduled`` instance is moved to ``cancelled``.
        """
        series = self.get_series_row(series_id, for_update=True)
        was_active = series.is_active
        series.is_active = False
        series.updated_at = datetime.utcnow()

        cancelled = 0
        if cancel_scheduled:
            for instance in self._instance_query(series_id).filter(
                RecurringJobInstance.status == lifecycle.SCHEDULED
            ).all():
                lifecycle.transition(instance, lifecycle.CANCELLED)
                cancelled += 1
        self._flush_instance_changes()

        self.events.log(
            entity_type='job_series',
            entity_id=series_id,
            event_type='ARCHIVED',
            description=f"Series '{series.series_name}' was archived",
            metadata={'was_active': was_active, 'cancelled_instances': cancelled}
        )
        logger.info(f"Archived recurring series: {series_id} (cancelled {cancelled} instances)")

        data = self._series_dict(series)
        data['cancelled_instances'] = cancelled
        return data

    # =========================================================================
    # INSTANCES
    # =========================================================================

    def _instance_query(self, series_id: str):
        return self.session.query(RecurringJobInstance).filter(
            RecurringJobInstance.series_id == series_id
        )

    def _flush_instance_changes(self) -> None:
        try:
            self.session.flush()
        except StaleDataError:
            raise StateError("Instance was modified concurrently; reload and try again")

    def instance_rows(self, series_id: str) -> List[RecurringJobInstance]:
        """All instance rows of a series, ordered by scheduled date."""
        return self._instance_query(series_id).order_by(
            RecurringJobInstance.scheduled_date.asc()
        ).all()

    def list_instances(self, series_id: str) -> List[Dict]:
        """List a series' instances, ordered by scheduled date."""
        self.get_series_row(series_id)
        return [i.to_dict() for i in self.instance_rows(series_id)]

    def existing_dates(self, series_id: str) -> set:
        rows = self.session.query(RecurringJobInstance.scheduled_date).filter(
            RecurringJobInstance.series_id == series_id
        ).all()
        return {row[0] for row in rows}

    def get_instance_row(self, series_id: str, instance_id: str,
                         for_update: bool = False) -> RecurringJobInstance:
        """Load an instance of the given series, optionally locking the row."""
        query = self._instance_query(series_id).filter(RecurringJobInstance.id == instance_id)
        if for_update:
            query = query.with_for_update()
        try:
            instance = query.first()
        except StaleDataError:
            # Locked reads compare the stored version with the one already loaded
            raise StateError(f"Instance {instance_id} was modified concurrently; reload and try again")
        if instance is None:
            raise NotFoundError(f"Recurring instance not found: {instance_id}")
        return instance

    def insert_missing_instances(self, series_id: str, dates: Iterable[date]) -> int:
        """
        Insert ``scheduled`` instances for the given dates, ignoring any date
        that already has an instance for this series (including rows a
        concurrent caller inserted a moment ago).

        Returns:
            Number of rows actually inserted
        """
        now = datetime.utcnow()
        rows = [{
            'id': generate_uuid(),
            'series_id': series_id,
            'scheduled_date': d,
            'status': lifecycle.SCHEDULED,
            'version': 1,
            'created_at': now,
            'updated_at': now,
        } for d in sorted(set(dates))]
        if not rows:
            return 0

        dialect = self.session.get_bind().dialect.name
        if dialect == 'postgresql':
            insert_fn = pg_insert
        elif dialect == 'sqlite':
            insert_fn = sqlite_insert
        else:
            return self._insert_ignoring_duplicates(rows)

        table = RecurringJobInstance.__table__
        inserted = 0
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            chunk = rows[start:start + INSERT_CHUNK_SIZE]
            stmt = insert_fn(table).values(chunk).on_conflict_do_nothing(
                index_elements=['series_id', 'scheduled_date']
            )
            result = self.session.execute(stmt)
            inserted += max(result.rowcount or 0, 0)
        return inserted

    def _insert_ignoring_duplicates(self, rows: List[Dict]) -> int:
        """Row-by-row fallback for dialects without ON CONFLICT."""
        table = RecurringJobInstance.__table__
        inserted = 0
        for row in rows:
            try:
                with self.session.begin_nested():
                    self.session.execute(insert(table).values(**row))
                inserted += 1
            except IntegrityError:
                logger.debug(f"Instance for {row['series_id']} on {row['scheduled_date']} already exists")
        return inserted

    def update_instance_status(self, series_id: str, instance_id: str, status) -> Dict:
        """
        User-initiated status change: skip a scheduled instance or
        re-activate a skipped one.
        """
        target = validate_instance_status_request({'status': status})
        instance = self.get_instance_row(series_id, instance_id, for_update=True)
        old_status = instance.status

        action = lifecycle.transition(instance, target)
        self._flush_instance_changes()

        self.events.log_status_change(
            'recurring_job_instance', instance.id, old_status, target,
            metadata={'action': action, 'series_id': series_id}
        )
        logger.info(f"Instance {instance_id} of series {series_id}: {old_status} -> {target}")
        return instance.to_dict()

    def get_history(self, series_id: str, limit: int = 50) -> List[Dict]:
        """
        Audit timeline of a series: its own events plus those of its
        instances (skips, re-activations, conversions) and of the jobs
        created from them.
        """
        self.get_series_row(series_id)
        instance_ids = select(RecurringJobInstance.id).where(
            RecurringJobInstance.series_id == series_id
        )
        job_ids = select(RecurringJobInstance.job_id).where(
            RecurringJobInstance.series_id == series_id,
            RecurringJobInstance.job_id.is_not(None)
        )
        return self.events.get_related_history({
            'job_series': [series_id],
            'recurring_job_instance': instance_ids,
            'job': job_ids,
        }, limit=limit)


def _jsonable(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
