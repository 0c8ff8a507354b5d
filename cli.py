"""
Flask CLI commands.

    flask --app wsgi generate-recurring-instances --horizon-days 90

Meant to be run from cron (or a Render cron job) so that every active
series always has its upcoming visits materialized.
"""
import logging

import click
from flask import current_app
from flask.cli import with_appcontext

from database.connection import get_db_session
from services.series_scheduler import SeriesScheduler
from validators import ValidationError, validate_horizon_days

logger = logging.getLogger(__name__)


@click.command('generate-recurring-instances')
@click.option('--horizon-days', type=int, default=None,
              help='Days ahead to generate, starting today (defaults to DEFAULT_HORIZON_DAYS).')
@with_appcontext
def generate_recurring_instances(horizon_days):
    """Generate instances for every active recurring series."""
    if horizon_days is None:
        horizon_days = current_app.config['DEFAULT_HORIZON_DAYS']
    try:
        horizon_days = validate_horizon_days(horizon_days, current_app.config['MAX_HORIZON_DAYS'])
    except ValidationError as e:
        raise click.BadParameter(e.message, param_hint='--horizon-days')

    with get_db_session() as session:
        scheduler = SeriesScheduler(
            session,
            max_occurrences=current_app.config['MAX_GENERATED_OCCURRENCES'],
            max_horizon_days=current_app.config['MAX_HORIZON_DAYS']
        )
        results = scheduler.generate_for_active_series(horizon_days)

    logger.info(f"CLI generation finished for {len(results)} series")
    for series_id, count in sorted(results.items()):
        click.echo(f"{series_id}: {count} instances")
    click.echo(f"Generated instances for {len(results)} series (horizon {horizon_days} days)")


def register_cli(app):
    app.cli.add_command(generate_recurring_instances)
