"""
Raffle Admin API
Flask routes the portal's admin screens call for settings, draws and payouts
"""

import logging
import os
from datetime import date

from flask import Blueprint, Flask, request

from .config import LOG_FILE, LOG_LEVEL, RAFFLE_ADMIN_ROLES
from .database import get_engine, setup_raffle_database
from .engine import RaffleEngine
from .errors import ValidationError
from .utils.error_helpers import (
    api_error_handler,
    has_role,
    json_error,
    json_success,
    require_role,
    validate_required_fields,
)
from .utils.logging_config import log_route_access, setup_logging
from .utils.redis_publisher import RaffleRedisPublisher

logger = logging.getLogger(__name__)


def _parse_date(value):
    if value is None or value == '':
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date '{value}' (expected YYYY-MM-DD)")


def _parse_int(value, name):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _statistics_to_dict(stats):
    return {
        'total_winners': stats['total_winners'],
        'total_paid': str(stats['total_paid']),
        'total_cycles': stats['total_cycles'],
        'completed_cycles': stats['completed_cycles'],
        'recent_cycles': [cycle.to_dict() for cycle in stats['recent_cycles']],
    }


def create_raffle_blueprint(raffle: RaffleEngine, admin_roles=None):
    """
    Build the /api/raffle blueprint around a RaffleEngine

    Args:
        raffle: RaffleEngine instance
        admin_roles: Roles allowed to mutate (defaults to RAFFLE_ADMIN_ROLES)

    Returns:
        Blueprint
    """
    bp = Blueprint('raffle', __name__, url_prefix='/api/raffle')
    admin_roles = admin_roles or RAFFLE_ADMIN_ROLES
    admin_only = require_role(admin_roles)

    @bp.before_request
    def _log_access():
        log_route_access(logger, request.path, request.method, request.headers.get('X-Chama-Role'))

    @bp.route('/health')
    def health():
        return json_success(status='healthy')

    @bp.route('/settings', methods=['GET'])
    @api_error_handler
    def get_settings():
        return json_success(raffle.get_settings().to_dict())

    @bp.route('/settings', methods=['PUT'])
    @admin_only
    @api_error_handler
    def update_settings():
        data = _json_body()
        is_valid, missing = validate_required_fields(data, ['winners_per_period', 'active'])
        if not is_valid:
            raise ValidationError(f"Missing fields: {', '.join(missing)}")
        settings = raffle.update_settings(data['winners_per_period'], data['active'])
        return json_success(settings.to_dict(), message='Raffle settings updated')

    @bp.route('/cycle/current', methods=['GET'])
    @api_error_handler
    def current_cycle():
        # Resolving a cycle creates it, so only admins may pick the month
        as_of = _parse_date(request.args.get('date'))
        if as_of is not None and not has_role(admin_roles):
            logger.warning(f"Non-admin cycle lookup for {as_of} denied")
            return json_error('Permission denied', 403)
        cycle = raffle.get_current_cycle(as_of)
        return json_success(cycle.to_dict())

    @bp.route('/draw', methods=['POST'])
    @admin_only
    @api_error_handler
    def draw():
        data = _json_body()
        result = raffle.draw_winners(_parse_date(data.get('date')))
        return json_success(result.to_dict(), message=f"Drew {len(result.new_winners)} winners")

    @bp.route('/winners', methods=['GET'])
    @api_error_handler
    def winners():
        year = _parse_int(request.args.get('year'), 'year')
        month = _parse_int(request.args.get('month'), 'month')
        if not 0 <= month <= 11:
            raise ValidationError("month must be between 0 and 11")
        return json_success(raffle.get_winners(year, month).to_dict())

    @bp.route('/winners/current', methods=['GET'])
    @api_error_handler
    def current_winners():
        result = raffle.get_current_winners(_parse_date(request.args.get('date')))
        return json_success(result.to_dict())

    @bp.route('/winners/<int:winner_id>/payment', methods=['POST'])
    @admin_only
    @api_error_handler
    def update_payment(winner_id):
        data = _json_body()
        if not data.get('status'):
            raise ValidationError("Missing fields: status")
        raffle.update_winner_payment_status(winner_id, data['status'])
        return json_success(message=f"Payment status set to {data['status']}")

    @bp.route('/cycles/<int:cycle_id>/eligible', methods=['POST'])
    @admin_only
    @api_error_handler
    def add_eligible(cycle_id):
        users = _json_body().get('users')
        if not isinstance(users, list):
            raise ValidationError("users must be a list")
        result = raffle.add_eligible_users(cycle_id, users)
        return json_success(added_count=result['added_count'])

    @bp.route('/statistics', methods=['GET'])
    @api_error_handler
    def statistics():
        return json_success(_statistics_to_dict(raffle.get_statistics()))

    return bp


def create_app(db_engine=None, notifier=None, rng=None, setup_schema=True):
    """
    Flask application factory

    Args:
        db_engine: SQLAlchemy engine (built from DATABASE_URL if omitted)
        notifier: Winner announcement transport (Redis publisher if omitted)
        rng: Random source for draws (SystemRandom if omitted)
        setup_schema: Create missing tables on startup

    Returns:
        Flask
    """
    setup_logging('chama_raffle', LOG_LEVEL, LOG_FILE)

    db_engine = db_engine or get_engine()
    if setup_schema and not setup_raffle_database(db_engine):
        raise RuntimeError("Raffle database schema setup failed")

    if notifier is None:
        notifier = RaffleRedisPublisher()

    raffle = RaffleEngine(db_engine, notifier=notifier, rng=rng)

    app = Flask(__name__)
    app.config['RAFFLE_ENGINE'] = raffle
    app.register_blueprint(create_raffle_blueprint(raffle))

    @app.errorhandler(404)
    def not_found(e):
        return json_error('Not Found', 404)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return json_error('Method Not Allowed', 405)

    return app


if __name__ == '__main__':
    port = int(os.getenv('PORT', 8000))
    create_app().run(host='0.0.0.0', port=port)
