"""
Authentication utilities.

Provides the decorator protecting every API route and the helper that turns
the authenticated session into an explicit user id for the services.
"""

from functools import wraps
from flask import jsonify
from flask_login import login_required, current_user


def active_user_required(f):
    """
    Decorator to protect API routes.

    Ensures:
    1. User is authenticated (via login_required, 401 otherwise)
    2. User is active (403 otherwise)
    """
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.active:
            return jsonify({
                'success': False,
                'message': 'Account is inactive'
            }), 403

        return f(*args, **kwargs)

    return decorated_function


def current_user_id() -> int:
    """Identity of the caller, passed explicitly into every service call."""
    return int(current_user.id)
