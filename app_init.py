"""
Application Initialization Module
Builds the Flask app with configuration, logging, security, database,
health checks, API blueprints and CLI commands.
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging
from security import setup_security
from health_checks import register_health_checks
from database.connection import configure_engine, init_db
import logging

logger = logging.getLogger(__name__)


def create_app(config_class=None):
    """
    Application factory

    Args:
        config_class: Configuration class to load; defaults to the one
            selected by FLASK_ENV

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    app.config.from_object(config_class or get_config())

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("Initializing FieldCrew recurring jobs service")
    logger.info("=" * 60)
    logger.info(f"Environment: {os.environ.get('FLASK_ENV', 'development')}")
    logger.info(f"Debug mode: {app.debug}")

    setup_security(app, app.config)

    initialize_database(app)

    register_health_checks(app)

    from app import register_blueprints
    register_blueprints(app)

    from cli import register_cli
    register_cli(app)

    logger.info("Application initialization complete")
    logger.info("=" * 60)

    return app


def initialize_database(app):
    """
    Point the process-wide engine at the configured database

    Tables are created directly only when AUTO_CREATE_TABLES is set;
    otherwise the schema comes from ``alembic upgrade head``.
    """
    engine = configure_engine(app.config['DATABASE_URL'], echo=app.config.get('SQLALCHEMY_ECHO', False))

    if app.config.get('AUTO_CREATE_TABLES'):
        init_db(engine)

    return engine
