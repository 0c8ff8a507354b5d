"""
Tests for converting recurring instances into jobs
"""
import pytest
from database.models import EventLog, Job, RecurringJobInstance
from services.errors import JobCreationError, NotFoundError, StateError
from services.job_conversion import DatabaseJobCreator, JobConversionService, JobCreator
from services.recurring_jobs_repository import RecurringJobsRepository
from services.series_scheduler import SeriesScheduler


class FailingCreator(JobCreator):
    """Job service that is down"""

    def __init__(self):
        self.calls = 0

    def create_job(self, session, seed):
        self.calls += 1
        raise RuntimeError("jobs service unavailable")


class HalfwayCreator(DatabaseJobCreator):
    """Writes the job row, then fails"""

    def create_job(self, session, seed):
        super().create_job(session, seed)
        raise RuntimeError("notification hook failed")


def first_instance(session, series_id, clock, horizon=3):
    instances = SeriesScheduler(session, clock=clock).generate_instances(series_id, horizon)
    return instances[0]


@pytest.mark.integration
class TestConvert:
    """Tests for JobConversionService.convert"""

    def test_convert_creates_job_and_links_instance(self, db_session, make_series, directory, clock):
        series_id = make_series(property_id=directory['property_id'],
                                default_crew_id=directory['crew_id'],
                                job_template_id=directory['template_id'],
                                notes='Gate code 4412')
        instance = first_instance(db_session, series_id, clock)

        result = JobConversionService(db_session).convert(series_id, instance['id'])

        job = result['job']
        assert result['instance']['status'] == 'created'
        assert result['instance']['job_id'] == job['id']
        assert job['series_id'] == series_id
        assert job['scheduled_date'] == '2024-01-01'
        assert job['customer_name'] == 'Dana Reyes'
        assert job['job_location'] == '14 Elm St, Springfield, IL 62701'
        assert job['assigned_crew'] == ['emp-1']
        assert job['title'] == 'Lawn Service'
        assert job['estimated_hours'] == 2.5
        assert job['special_instructions'] == 'Gate code 4412'
        assert job['status'] == 'Scheduled'

    def test_job_falls_back_to_series_and_billing_address(self, db_session, make_series, clock):
        series_id = make_series(series_name='Gutter cleaning', estimated_duration_hours=1)
        instance = first_instance(db_session, series_id, clock)

        job = JobConversionService(db_session).convert(series_id, instance['id'])['job']

        assert job['title'] == 'Gutter cleaning'
        assert job['job_location'] == 'PO Box 12'
        assert job['assigned_crew'] == []
        assert job['estimated_hours'] == 1.0

    def test_company_name_is_customer_name(self, db_session, make_series, directory, clock):
        series_id = make_series(client_id=directory['other_client_id'])
        instance = first_instance(db_session, series_id, clock)

        job = JobConversionService(db_session).convert(series_id, instance['id'])['job']
        assert job['customer_name'] == 'Harbor Foods'
        assert job['job_location'] is None

    def test_second_convert_is_rejected(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)
        service = JobConversionService(db_session)

        service.convert(series_id, instance['id'])
        with pytest.raises(StateError):
            service.convert(series_id, instance['id'])

        assert db_session.query(Job).count() == 1

    def test_skipped_instance_cannot_convert(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)
        RecurringJobsRepository(db_session).update_instance_status(series_id, instance['id'], 'skipped')

        with pytest.raises(StateError):
            JobConversionService(db_session).convert(series_id, instance['id'])
        assert db_session.query(Job).count() == 0

    def test_unknown_instance(self, db_session, make_series, clock):
        series_id = make_series()
        with pytest.raises(NotFoundError):
            JobConversionService(db_session).convert(series_id, 'missing')

    def test_instance_of_another_series(self, db_session, make_series, clock):
        series_id = make_series()
        other_id = make_series(series_name='Other')
        instance = first_instance(db_session, series_id, clock)

        with pytest.raises(NotFoundError):
            JobConversionService(db_session).convert(other_id, instance['id'])

    def test_conversion_is_logged(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)
        JobConversionService(db_session, user_id='user-7').convert(series_id, instance['id'])

        events = db_session.query(EventLog).filter(
            EventLog.entity_id == instance['id']
        ).all()
        assert [e.event_type for e in events] == ['STATUS_CHANGED']
        assert events[0].actor_type == 'user'
        assert events[0].actor_id == 'user-7'
        assert db_session.query(EventLog).filter(EventLog.event_type == 'JOB_CREATED').count() == 1


@pytest.mark.integration
class TestConvertFailures:
    """A failed job creation leaves the instance untouched and retryable"""

    def test_creator_error_is_wrapped(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)
        creator = FailingCreator()

        with pytest.raises(JobCreationError) as exc:
            JobConversionService(db_session, job_creator=creator).convert(series_id, instance['id'])

        assert 'jobs service unavailable' in exc.value.message
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert creator.calls == 1

        row = db_session.get(RecurringJobInstance, instance['id'])
        assert row.status == 'scheduled'
        assert row.job_id is None

    def test_partial_job_is_rolled_back(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)

        with pytest.raises(JobCreationError):
            JobConversionService(db_session, job_creator=HalfwayCreator()).convert(
                series_id, instance['id']
            )

        assert db_session.query(Job).count() == 0
        assert db_session.query(EventLog).filter(EventLog.event_type == 'JOB_CREATED').count() == 0

    def test_retry_after_failure(self, db_session, make_series, clock):
        series_id = make_series()
        instance = first_instance(db_session, series_id, clock)

        with pytest.raises(JobCreationError):
            JobConversionService(db_session, job_creator=FailingCreator()).convert(
                series_id, instance['id']
            )
        result = JobConversionService(db_session).convert(series_id, instance['id'])

        assert result['instance']['status'] == 'created'
        assert db_session.query(Job).count() == 1


@pytest.mark.integration
class TestConcurrentConversion:
    """Two requests racing to convert the same instance"""

    def test_stale_converter_loses(self, session_factory, make_series, clock):
        series_id = make_series()
        setup = session_factory()
        instance_id = first_instance(setup, series_id, clock)['id']
        setup.commit()
        setup.close()

        # The slower request has already read the instance as scheduled
        slow = session_factory(expire_on_commit=False)
        slow.get(RecurringJobInstance, instance_id)
        slow.commit()

        fast = session_factory()
        winner = JobConversionService(fast).convert(series_id, instance_id)
        fast.commit()
        fast.close()

        with pytest.raises(StateError):
            JobConversionService(slow).convert(series_id, instance_id)
        slow.rollback()
        slow.close()

        check = session_factory()
        assert check.query(Job).count() == 1
        row = check.get(RecurringJobInstance, instance_id)
        assert row.status == 'created'
        assert row.job_id == winner['job']['id']
        check.close()


@pytest.mark.unit
class TestJobCreatorInterface:
    """Job creators must implement create_job"""

    def test_creator_without_create_job_cannot_be_built(self):
        class IncompleteCreator(JobCreator):
            pass

        with pytest.raises(TypeError):
            IncompleteCreator()

    def test_database_creator_is_a_job_creator(self):
        assert isinstance(DatabaseJobCreator(), JobCreator)
