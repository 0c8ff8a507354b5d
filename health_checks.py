"""
Health Check & Monitoring Endpoints
Liveness, readiness (database reachable) and basic process metrics.
"""
import os
import sys
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, jsonify, current_app
import logging

from database.connection import check_db_connection, is_db_configured

logger = logging.getLogger(__name__)

SERVICE_NAME = 'fieldcrew-recurring'
SERVICE_VERSION = '1.0.0'

health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()


def get_system_metrics() -> Dict[str, Any]:
    """
    Get basic process metrics

    Returns:
        Dictionary of metrics, empty if psutil cannot read them
    """
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': round(process.memory_info().rss / 1024 / 1024, 2),
            'memory_percent': round(process.memory_percent(), 2),
            'threads': process.num_threads(),
        }
    except psutil.Error as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_database() -> Dict[str, bool]:
    """Whether a database is configured and answers a trivial query"""
    configured = is_db_configured()
    reachable = False
    if configured:
        try:
            reachable = check_db_connection()
        except RuntimeError as e:
            logger.warning(f"Readiness database check failed: {e}")
    return {
        'configured': configured,
        'reachable': reachable
    }


@health_bp.route('/health', methods=['GET'])
def health_check():
    """Liveness probe: 200 while the process is serving requests"""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness probe
    Returns 200 only when the database can be queried
    """
    database = check_database()
    is_ready = database['reachable']

    return jsonify({
        'status': 'ready' if is_ready else 'not_ready',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {
            'database': database
        }
    }), 200 if is_ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    """Process metrics and scheduling settings"""
    return jsonify({
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME,
        'version': SERVICE_VERSION,
        'environment': os.environ.get('FLASK_ENV', 'production'),
        'uptime': get_uptime(),
        'system': get_system_metrics(),
        'scheduling': {
            'default_horizon_days': current_app.config.get('DEFAULT_HORIZON_DAYS'),
            'max_horizon_days': current_app.config.get('MAX_HORIZON_DAYS'),
            'max_generated_occurrences': current_app.config.get('MAX_GENERATED_OCCURRENCES')
        },
        'python_version': sys.version.split()[0]
    }), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'pong', 200


def register_health_checks(app):
    """
    Register health check blueprint with Flask app

    Args:
        app: Flask application instance
    """
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered: /api/health, /api/ready, /api/metrics, /api/ping")
