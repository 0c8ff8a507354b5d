"""
Series Scheduler - Materializes dated instances of recurring job series.

Generation is idempotent: each call computes the candidate dates for the
horizon starting today and inserts only the dates the series does not
already have. Existing instances are never modified, so a converted or
skipped visit keeps its status however often generation runs.
"""

import logging
from datetime import date, timedelta
from itertools import islice
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import JobSeries
from services.errors import RecurringJobsError, ValidationError
from services.recurrence import Custom, iter_dates, rule_from_series
from services.recurring_jobs_repository import RecurringJobsRepository
from validators import validate_horizon_days

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 60
MAX_GENERATED_OCCURRENCES = 180


class SeriesScheduler:
    """Generates instances for a forward horizon."""

    def __init__(self, session: Session, clock: Callable[[], date] = date.today,
                 max_occurrences: int = MAX_GENERATED_OCCURRENCES,
                 max_horizon_days: int = None, user_id: str = None):
        self.session = session
        self.clock = clock
        self.max_occurrences = max_occurrences
        self.max_horizon_days = max_horizon_days
        self.repository = RecurringJobsRepository(session, user_id=user_id, clock=clock)

    def horizon_window(self, horizon_days: int):
        """The ``horizon_days`` calendar days starting today, as a closed range."""
        today = self.clock()
        return today, today + timedelta(days=horizon_days - 1)

    def horizon_until(self, until_date: date) -> int:
        """Horizon length covering today through ``until_date`` inclusive."""
        horizon_days = (until_date - self.clock()).days + 1
        if horizon_days <= 0:
            raise ValidationError("until_date may not be in the past", 'until_date')
        if self.max_horizon_days is not None and horizon_days > self.max_horizon_days:
            raise ValidationError(
                f"until_date may not be more than {self.max_horizon_days} days ahead", 'until_date'
            )
        return horizon_days

    def candidate_dates(self, series: JobSeries, horizon_days: int) -> List[date]:
        rule = rule_from_series(series)
        if isinstance(rule, Custom):
            return []
        window_start, window_end = self.horizon_window(horizon_days)
        dates = iter_dates(rule, series.start_date, window_start, window_end, series.end_date)
        return list(islice(dates, self.max_occurrences))

    def generate_instances(self, series_id: str, horizon_days: int = DEFAULT_HORIZON_DAYS,
                           until_date: Optional[date] = None) -> List[Dict]:
        """
        Make sure every occurrence in the horizon has an instance.

        Args:
            series_id: Series to generate for
            horizon_days: Number of days, starting today, to cover
            until_date: Explicit last day to cover; replaces ``horizon_days``

        Returns:
            All instances of the series sorted by scheduled date

        Raises:
            NotFoundError: unknown series
            ValidationError: inactive series, non-positive horizon or
                an ``until_date`` before today
        """
        if until_date is not None:
            horizon_days = self.horizon_until(until_date)
        horizon_days = validate_horizon_days(horizon_days, self.max_horizon_days)

        # Row lock serializes concurrent generation for the same series
        series = self.repository.get_series_row(series_id, for_update=True)
        if not series.is_active:
            raise ValidationError(f"Series {series_id} is archived; generation is not permitted")

        candidates = self.candidate_dates(series, horizon_days)
        existing = self.repository.existing_dates(series_id)
        missing = [d for d in candidates if d not in existing]

        inserted = self.repository.insert_missing_instances(series_id, missing) if missing else 0

        if inserted:
            self.repository.events.log(
                entity_type='job_series',
                entity_id=series_id,
                event_type='INSTANCES_GENERATED',
                description=f"Generated {inserted} instances for '{series.series_name}'",
                metadata={
                    'horizon_days': horizon_days,
                    'first_date': missing[0].isoformat(),
                    'last_date': missing[-1].isoformat(),
                    'inserted': inserted
                }
            )
            self.session.flush()

        logger.info(
            f"Series {series_id}: {len(candidates)} candidate dates, "
            f"{inserted} new instances (horizon {horizon_days} days)"
        )
        return [i.to_dict() for i in self.repository.instance_rows(series_id)]

    def generate_for_active_series(self, horizon_days: int = DEFAULT_HORIZON_DAYS) -> Dict[str, int]:
        """
        Run generation for every active series. A failing series is logged
        and skipped so the rest still get their instances.

        Returns:
            Mapping of series id to instance count after generation
        """
        series_ids = [
            row[0] for row in self.session.query(JobSeries.id).filter(
                JobSeries.is_active == True,  # noqa: E712
                JobSeries.recurrence_pattern != 'custom'
            ).all()
        ]

        results = {}
        for series_id in series_ids:
            try:
                with self.session.begin_nested():
                    results[series_id] = len(self.generate_instances(series_id, horizon_days))
            except (RecurringJobsError, ValidationError) as e:
                logger.error(f"Generation failed for series {series_id}: {e.message}")

        logger.info(f"Generated instances for {len(results)}/{len(series_ids)} active series")
        return results
