"""
Error handling helpers and decorators for the raffle engine and its Flask routes
Reduces repetitive try/except patterns and JSON error responses
"""

from functools import wraps
import logging

from flask import jsonify, request
from ..errors import (
    ConcurrentDrawError,
    CycleAlreadyCompletedError,
    CycleNotFoundError,
    DisabledSystemError,
    InsufficientEligiblePoolError,
    PersistenceError,
    RaffleError,
    ValidationError,
    WinnerNotFoundError,
)

logger = logging.getLogger(__name__)

# Raffle failures that mean "valid request, wrong state"
CONFLICT_ERRORS = (
    DisabledSystemError,
    CycleAlreadyCompletedError,
    InsufficientEligiblePoolError,
    ConcurrentDrawError,
)


def api_error_handler(func):
    """
    Decorator for API endpoints that automatically handles exceptions
    and returns proper JSON error responses

    Usage:
        @bp.route('/draw', methods=['POST'])
        @api_error_handler
        def draw():
            return json_success(engine.draw_winners().to_dict())
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"Validation error in {func.__name__}: {e}")
            return json_error(e, 400)
        except (CycleNotFoundError, WinnerNotFoundError) as e:
            logger.warning(f"Not found in {func.__name__}: {e}")
            return json_error(e, 404)
        except InsufficientEligiblePoolError as e:
            logger.warning(f"Draw refused in {func.__name__}: {e}")
            return json_error(e, 409, required=e.required, available=e.available)
        except CONFLICT_ERRORS as e:
            logger.warning(f"Draw refused in {func.__name__}: {e}")
            return json_error(e, 409)
        except PersistenceError as e:
            logger.error(f"Persistence error in {func.__name__}: {e}", exc_info=True)
            return json_error('Database error', 500)
        except RaffleError as e:
            logger.error(f"Raffle error in {func.__name__}: {e}", exc_info=True)
            return json_error(e, 500)
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            return json_error('Internal server error', 500)
    return wrapper


def request_role():
    """Role forwarded by the upstream auth layer, lowercased ('' if absent)"""
    return (request.headers.get('X-Chama-Role') or '').strip().lower()


def has_role(allowed_roles):
    """True if the current request carries one of allowed_roles"""
    return request_role() in {role.lower() for role in allowed_roles}


def require_role(allowed_roles):
    """
    Decorator that only lets privileged roles through

    The upstream auth layer authenticates the member and forwards their role
    in the X-Chama-Role header. Returns 403 for anything else.

    Usage:
        @bp.route('/settings', methods=['PUT'])
        @require_role(RAFFLE_ADMIN_ROLES)
        def update_settings():
            pass
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not has_role(allowed_roles):
                logger.warning(f"Role '{request_role() or 'anonymous'}' denied for {request.path}")
                return json_error('Permission denied', 403)
            return func(*args, **kwargs)
        return wrapper
    return decorator


# Helper functions for common response patterns

def json_success(data=None, message=None, **kwargs):
    """
    Create standardized success JSON response

    Args:
        data: Optional data to include
        message: Optional success message
        **kwargs: Additional fields to include

    Returns:
        JSON response with success=True
    """
    response = {'success': True}
    if data is not None:
        response['data'] = data
    if message:
        response['message'] = message
    response.update(kwargs)
    return jsonify(response)


def json_error(error, status_code=400, **kwargs):
    """
    Create standardized error JSON response

    Args:
        error: Error message string
        status_code: HTTP status code (default 400)
        **kwargs: Additional fields to include

    Returns:
        JSON response with success=False and given status code
    """
    response = {'success': False, 'error': str(error)}
    response.update(kwargs)
    return jsonify(response), status_code


def validate_required_fields(data, required_fields):
    """
    Validate that all required fields are present in data dict

    Args:
        data: Dictionary to validate
        required_fields: List of required field names

    Returns:
        tuple: (is_valid: bool, missing_fields: list)
    """
    missing = [field for field in required_fields if data.get(field) is None]
    return (len(missing) == 0, missing)
