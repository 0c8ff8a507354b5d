"""
FieldCrew recurring jobs - Application Package

- api/: HTTP route handlers (Flask Blueprints)

The app factory and core Flask setup live in app_init.py at the project
root; business logic lives in the top-level services package.
"""

import logging

from app.api.recurring_jobs import recurring_jobs_bp

logger = logging.getLogger(__name__)


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(recurring_jobs_bp)
    logger.info("API blueprints registered")


__all__ = ['register_blueprints', 'recurring_jobs_bp']
