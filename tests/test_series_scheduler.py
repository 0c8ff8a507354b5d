"""
Tests for instance generation
"""
import pytest
from datetime import date
from database.models import RecurringJobInstance
from services.errors import NotFoundError
from services.recurring_jobs_repository import RecurringJobsRepository
from services.series_scheduler import SeriesScheduler
from validators import ValidationError


def dates_of(instances):
    return [i['scheduled_date'] for i in instances]


@pytest.mark.integration
class TestGenerateInstances:
    """Tests for SeriesScheduler.generate_instances"""

    def test_daily_horizon_covers_today_onwards(self, db_session, make_series, clock):
        series_id = make_series()
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 5)

        assert dates_of(instances) == [
            '2024-01-01', '2024-01-02', '2024-01-03', '2024-01-04', '2024-01-05'
        ]
        assert all(i['status'] == 'scheduled' for i in instances)
        assert all(i['job_id'] is None for i in instances)

    def test_repeat_generation_is_idempotent(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock)

        first = scheduler.generate_instances(series_id, 5)
        second = scheduler.generate_instances(series_id, 5)

        assert [i['id'] for i in first] == [i['id'] for i in second]
        assert db_session.query(RecurringJobInstance).count() == 5

    def test_longer_horizon_only_adds_new_dates(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock)

        first = scheduler.generate_instances(series_id, 3)
        extended = scheduler.generate_instances(series_id, 6)

        assert len(extended) == 6
        assert [i['id'] for i in extended[:3]] == [i['id'] for i in first]

    def test_existing_statuses_are_preserved(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock)
        instances = scheduler.generate_instances(series_id, 3)

        repo = RecurringJobsRepository(db_session)
        repo.update_instance_status(series_id, instances[1]['id'], 'skipped')

        regenerated = scheduler.generate_instances(series_id, 3)
        assert [i['status'] for i in regenerated] == ['scheduled', 'skipped', 'scheduled']

    def test_window_moves_with_today(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock)
        scheduler.generate_instances(series_id, 2)

        clock.today = date(2024, 1, 10)
        instances = scheduler.generate_instances(series_id, 2)

        # Earlier instances stay; the gap before the new window is not backfilled
        assert dates_of(instances) == ['2024-01-01', '2024-01-02', '2024-01-10', '2024-01-11']

    def test_end_date_limits_generation(self, db_session, make_series, clock):
        series_id = make_series(end_date='2024-01-03')
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 30)
        assert dates_of(instances) == ['2024-01-01', '2024-01-02', '2024-01-03']

    def test_future_start_date(self, db_session, make_series, clock):
        series_id = make_series(start_date='2024-01-04')
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 5)
        assert dates_of(instances) == ['2024-01-04', '2024-01-05']

    def test_weekly_series(self, db_session, make_series, clock):
        series_id = make_series(recurrence_pattern='weekly', recurrence_interval=2,
                                recurrence_day_of_week=1)
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 31)
        assert dates_of(instances) == ['2024-01-01', '2024-01-15', '2024-01-29']

    def test_custom_series_generates_nothing(self, db_session, make_series, clock):
        series_id = make_series(recurrence_pattern='custom')
        assert SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 30) == []

    def test_occurrence_cap(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock, max_occurrences=10)
        instances = scheduler.generate_instances(series_id, 400)
        assert len(instances) == 10
        assert instances[-1]['scheduled_date'] == '2024-01-10'

    @pytest.mark.parametrize('horizon', [0, -5, 'soon', None])
    def test_invalid_horizon(self, db_session, make_series, clock, horizon):
        series_id = make_series()
        with pytest.raises(ValidationError):
            SeriesScheduler(db_session, clock=clock).generate_instances(series_id, horizon)

    def test_horizon_above_maximum(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock, max_horizon_days=30)
        with pytest.raises(ValidationError):
            scheduler.generate_instances(series_id, 31)

    def test_archived_series_rejected(self, db_session, make_series, clock):
        series_id = make_series()
        RecurringJobsRepository(db_session).archive_series(series_id)

        with pytest.raises(ValidationError):
            SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 5)
        assert db_session.query(RecurringJobInstance).count() == 0

    def test_unknown_series(self, db_session, clock):
        with pytest.raises(NotFoundError):
            SeriesScheduler(db_session, clock=clock).generate_instances('missing', 5)

    def test_generation_is_logged(self, db_session, make_series, clock):
        series_id = make_series()
        SeriesScheduler(db_session, clock=clock).generate_instances(series_id, 5)

        history = RecurringJobsRepository(db_session).get_history(series_id)
        generated = [e for e in history if e['event_type'] == 'INSTANCES_GENERATED']
        assert len(generated) == 1
        assert generated[0]['metadata']['inserted'] == 5


@pytest.mark.integration
class TestConcurrentInserts:
    """Overlapping inserts from separate sessions never duplicate a date"""

    def test_second_writer_skips_existing_dates(self, session_factory, make_series):
        series_id = make_series()
        dates = [date(2024, 1, d) for d in range(1, 6)]

        first = session_factory()
        assert RecurringJobsRepository(first).insert_missing_instances(series_id, dates[:3]) == 3
        first.commit()
        first.close()

        # Second writer computed its missing dates before the first committed
        second = session_factory()
        inserted = RecurringJobsRepository(second).insert_missing_instances(series_id, dates)
        second.commit()

        assert inserted == 2
        stored = sorted(d for (d,) in second.query(RecurringJobInstance.scheduled_date).all())
        assert stored == dates
        second.close()


@pytest.mark.integration
class TestGenerateForActiveSeries:
    """Tests for the batch run used by the CLI"""

    def test_only_active_series(self, db_session, make_series, clock):
        active_id = make_series()
        archived_id = make_series(series_name='Old contract')
        custom_id = make_series(series_name='Ad hoc', recurrence_pattern='custom')
        RecurringJobsRepository(db_session).archive_series(archived_id)

        results = SeriesScheduler(db_session, clock=clock).generate_for_active_series(4)

        assert results == {active_id: 4}
        assert archived_id not in results
        assert custom_id not in results


@pytest.mark.integration
class TestGenerateUntilDate:
    """Generation up to an explicit last day"""

    def test_until_date_is_inclusive(self, db_session, make_series, clock):
        series_id = make_series()
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(
            series_id, until_date=date(2024, 1, 4)
        )
        assert dates_of(instances) == ['2024-01-01', '2024-01-02', '2024-01-03', '2024-01-04']

    def test_until_date_replaces_horizon(self, db_session, make_series, clock):
        series_id = make_series()
        instances = SeriesScheduler(db_session, clock=clock).generate_instances(
            series_id, horizon_days=30, until_date=date(2024, 1, 1)
        )
        assert dates_of(instances) == ['2024-01-01']

    def test_until_date_in_the_past(self, db_session, make_series, clock):
        series_id = make_series()
        with pytest.raises(ValidationError) as exc:
            SeriesScheduler(db_session, clock=clock).generate_instances(
                series_id, until_date=date(2023, 12, 31)
            )
        assert exc.value.field == 'until_date'

    def test_until_date_beyond_maximum_horizon(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock, max_horizon_days=10)
        assert len(scheduler.generate_instances(series_id, until_date=date(2024, 1, 10))) == 10
        with pytest.raises(ValidationError) as exc:
            scheduler.generate_instances(series_id, until_date=date(2024, 1, 11))
        assert exc.value.field == 'until_date'

    def test_until_date_respects_occurrence_cap(self, db_session, make_series, clock):
        series_id = make_series()
        scheduler = SeriesScheduler(db_session, clock=clock, max_occurrences=7)
        instances = scheduler.generate_instances(series_id, until_date=date(2024, 3, 1))
        assert len(instances) == 7
        assert instances[-1]['scheduled_date'] == '2024-01-07'
