"""Route decorators for common patterns like error handling and authentication.

This module provides reusable decorators to reduce boilerplate in route handlers.
"""
import functools
import logging
from typing import Callable

from flask import request

from hub_server.exception.UnauthorizedError import UnauthorizedError
from hub_server.exception.NotFoundError import NotFoundError
from hub_server.exception.ForbiddenError import ForbiddenError
from hub_server.utils.helpers import respond_error
from hub_server.security.authentication import get_auth_payload

logger = logging.getLogger(__name__)


def handle_errors(func: Callable) -> Callable:
    """Decorator to translate exceptions raised by route handlers.

    Catches:
    - UnauthorizedError -> 401
    - ForbiddenError -> 403
    - NotFoundError -> 404
    - ValueError -> 400
    - Other exceptions -> 500 with a generic message

    Usage:
        @bp.route('/example')
        @handle_errors
        def example_route():
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UnauthorizedError as e:
            logger.warning("Unauthorized: %s", e)
            return respond_error(str(e), status=401)
        except ForbiddenError as e:
            logger.warning("Forbidden in %s: %s", func.__name__, e)
            return respond_error(str(e), status=403)
        except NotFoundError as e:
            return respond_error(str(e), status=404)
        except ValueError as e:
            logger.warning("Validation error: %s", e)
            return respond_error(str(e), status=400)
        except Exception:
            logger.exception("Unexpected error in %s", func.__name__)
            return respond_error('Server error', status=500)
    return wrapper


def require_auth(func: Callable) -> Callable:
    """Decorator to require authentication and inject payload into handler.

    The decorated function receives `auth_payload` as a keyword argument.

    Usage:
        @bp.route('/protected')
        @require_auth
        def protected_route(auth_payload):
            user_id = auth_payload.get('user_id')
            ...
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        payload = get_auth_payload(request)
        kwargs['auth_payload'] = payload
        return func(*args, **kwargs)
    return wrapper


def validate_json(*required_fields: str) -> Callable:
    """Decorator to validate that required JSON fields are present and non-blank.

    Usage:
        @bp.route('/create', methods=['POST'])
        @validate_json('name', 'email')
        def create_item():
            data = request.get_json()
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            data = request.get_json(silent=True)

            if not isinstance(data, dict):
                return respond_error('Request body must be JSON', status=400)

            missing = [f for f in required_fields if not _present(data.get(f))]
            if missing:
                return respond_error(f'Missing required fields: {", ".join(missing)}', status=400)

            return func(*args, **kwargs)
        return wrapper
    return decorator


def _present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True

