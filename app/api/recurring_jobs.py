"""
Recurring Jobs API Routes Blueprint

Job series management and instance scheduling:
- /api/job-series - List and create series
- /api/job-series/<id> - Get, update, archive a series
- /api/job-series/<id>/instances - List a series' instances
- /api/job-series/<id>/generate - Generate instances for a horizon or up to a date
- /api/job-series/<id>/instances/<iid>/status - Skip or re-activate an instance
- /api/job-series/<id>/instances/<iid>/convert - Create the job for an instance
- /api/job-series/<id>/history - Audit trail
"""

import logging
from flask import Blueprint, request, jsonify, current_app

from database.connection import get_db_session
from services.errors import (
    JobCreationError, NotFoundError, RecurringJobsError, StateError, ValidationError
)
from services.job_conversion import JobConversionService
from services.recurring_jobs_repository import RecurringJobsRepository
from services.series_scheduler import SeriesScheduler
from validators import parse_date

logger = logging.getLogger(__name__)

# Create blueprint
recurring_jobs_bp = Blueprint('recurring_jobs_bp', __name__)

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    StateError: 409,
    JobCreationError: 502,
}


def error_response(e):
    """Map a service error to the JSON error envelope and status code"""
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 500)
    body = {'success': False, 'error': e.message}
    if isinstance(e, ValidationError) and e.field:
        body['field'] = e.field
    return jsonify(body), status


def get_json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data


def get_user_id():
    """Actor recorded in the audit trail; set by the upstream auth proxy"""
    return request.headers.get('X-User-Id')


# ============================================================================
# SERIES
# ============================================================================

@recurring_jobs_bp.route('/api/job-series', methods=['GET', 'POST'])
def handle_series_collection():
    """List series (``?active=true`` for active only) or create one"""
    try:
        with get_db_session() as session:
            repo = RecurringJobsRepository(session, user_id=get_user_id())
            if request.method == 'GET':
                active_only = request.args.get('active', 'false').lower() == 'true'
                series = repo.list_series(active_only=active_only)
                return jsonify({'success': True, 'series': series, 'count': len(series)})

            series = repo.create_series(get_json_body())
            return jsonify({'success': True, 'series': series}), 201
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling job series: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@recurring_jobs_bp.route('/api/job-series/<series_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_series(series_id):
    """Get, update or archive a single series"""
    try:
        with get_db_session() as session:
            repo = RecurringJobsRepository(session, user_id=get_user_id())
            if request.method == 'GET':
                return jsonify({'success': True, 'series': repo.get_series(series_id)})

            if request.method == 'PUT':
                series = repo.update_series(series_id, get_json_body())
                return jsonify({'success': True, 'series': series})

            cancel_scheduled = request.args.get('cancel_scheduled', 'false').lower() == 'true'
            series = repo.archive_series(series_id, cancel_scheduled=cancel_scheduled)
            return jsonify({'success': True, 'series': series})
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling job series {series_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@recurring_jobs_bp.route('/api/job-series/<series_id>/history', methods=['GET'])
def get_series_history(series_id):
    """Audit events for a series, newest first"""
    try:
        limit = int(request.args.get('limit', 50))
        if limit < 1:
            raise ValidationError("limit must be at least 1", 'limit')
        with get_db_session() as session:
            repo = RecurringJobsRepository(session)
            events = repo.get_history(series_id, limit=limit)
            return jsonify({'success': True, 'events': events})
    except ValueError:
        return jsonify({'success': False, 'error': 'limit must be an integer'}), 400
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error getting history for series {series_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# INSTANCES
# ============================================================================

@recurring_jobs_bp.route('/api/job-series/<series_id>/instances', methods=['GET'])
def list_instances(series_id):
    """All instances of a series ordered by date"""
    try:
        with get_db_session() as session:
            instances = RecurringJobsRepository(session).list_instances(series_id)
            return jsonify({'success': True, 'instances': instances, 'count': len(instances)})
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing instances for series {series_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@recurring_jobs_bp.route('/api/job-series/<series_id>/generate', methods=['POST'])
def generate_instances(series_id):
    """
    Generate missing instances for ``horizon_days`` days starting today,
    or through ``until_date`` when the body gives one.
    """
    try:
        data = get_json_body()
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        horizon_days = data.get('horizon_days', current_app.config['DEFAULT_HORIZON_DAYS'])
        until_date = parse_date(data.get('until_date'), 'until_date')

        with get_db_session() as session:
            scheduler = SeriesScheduler(
                session,
                max_occurrences=current_app.config['MAX_GENERATED_OCCURRENCES'],
                max_horizon_days=current_app.config['MAX_HORIZON_DAYS'],
                user_id=get_user_id()
            )
            instances = scheduler.generate_instances(series_id, horizon_days, until_date=until_date)
            return jsonify({'success': True, 'instances': instances, 'count': len(instances)})
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error generating instances for series {series_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@recurring_jobs_bp.route('/api/job-series/<series_id>/instances/<instance_id>/status', methods=['PUT'])
def update_instance_status(series_id, instance_id):
    """Skip a scheduled instance or re-activate a skipped one"""
    try:
        data = get_json_body()
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")

        with get_db_session() as session:
            repo = RecurringJobsRepository(session, user_id=get_user_id())
            instance = repo.update_instance_status(series_id, instance_id, data.get('status'))
            return jsonify({'success': True, 'instance': instance})
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating instance {instance_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@recurring_jobs_bp.route('/api/job-series/<series_id>/instances/<instance_id>/convert', methods=['POST'])
def convert_instance(series_id, instance_id):
    """Create the job for a scheduled instance"""
    try:
        with get_db_session() as session:
            service = JobConversionService(
                session,
                job_creator=current_app.config.get('JOB_CREATOR'),
                user_id=get_user_id()
            )
            result = service.convert(series_id, instance_id)
            return jsonify({'success': True, **result}), 201
    except (ValidationError, RecurringJobsError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error converting instance {instance_id}: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500
