"""
Pytest configuration and shared fixtures
"""
import sys
import pytest
from datetime import date, datetime
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


class FixedClock:
    """Callable returning a settable 'today'"""

    def __init__(self, today):
        self.today = today

    def __call__(self):
        return self.today


@pytest.fixture
def clock():
    return FixedClock(date(2024, 1, 1))


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'fieldcrew.db'}"


@pytest.fixture
def engine(db_url):
    """SQLite engine with all tables created"""
    from database.connection import create_db_engine, init_db

    eng = create_db_engine(db_url)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    from sqlalchemy.orm import sessionmaker
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Session for one test; committed work is visible to other sessions"""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def directory(session_factory):
    """
    Committed directory records: a client with one property, a crew with
    one current and one former member, and a job template.
    """
    from database.models import Client, Property, Crew, CrewMember, JobTemplate

    session = session_factory()
    client = Client(first_name='Dana', last_name='Reyes', company_name=None,
                    email='dana@example.com', billing_address_line1='PO Box 12')
    other_client = Client(company_name='Harbor Foods')
    session.add_all([client, other_client])
    session.flush()

    prop = Property(client_id=client.id, address_line1='14 Elm St',
                    city='Springfield', state='IL', zip='62701')
    crew = Crew(name='North Crew')
    template = JobTemplate(name='Lawn Service', description='Mow and edge',
                           service_type='landscaping', default_duration_hours=2.5)
    session.add_all([prop, crew, template])
    session.flush()

    session.add_all([
        CrewMember(crew_id=crew.id, employee_id='emp-1', joined_at=datetime(2023, 1, 1)),
        CrewMember(crew_id=crew.id, employee_id='emp-2', joined_at=datetime(2023, 2, 1),
                   left_at=datetime(2023, 6, 1)),
    ])
    session.commit()

    ids = {
        'client_id': client.id,
        'other_client_id': other_client.id,
        'property_id': prop.id,
        'crew_id': crew.id,
        'template_id': template.id,
    }
    session.close()
    return ids


@pytest.fixture
def make_series(session_factory, directory):
    """Create and commit a series, returning its id"""
    from services.recurring_jobs_repository import RecurringJobsRepository

    def _make(**overrides):
        payload = {
            'series_name': 'Weekly lawn care',
            'client_id': directory['client_id'],
            'recurrence_pattern': 'daily',
            'recurrence_interval': 1,
            'start_date': '2024-01-01',
        }
        payload.update(overrides)
        session = session_factory()
        try:
            series = RecurringJobsRepository(session).create_series(payload)
            session.commit()
        finally:
            session.close()
        return series['id']

    return _make


@pytest.fixture
def app(db_url, engine, tmp_path):
    """Flask app wired to the per-test SQLite database"""
    from config import TestingConfig
    from app_init import create_app

    class Config(TestingConfig):
        DATABASE_URL = db_url
        LOG_DIR = str(tmp_path / 'logs')

    flask_app = create_app(Config)
    yield flask_app

    from database import connection
    if connection.engine is not None:
        connection.engine.dispose()


@pytest.fixture
def client(app):
    """Create a test client"""
    return app.test_client()
