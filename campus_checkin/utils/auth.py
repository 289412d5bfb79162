from functools import wraps
from flask import jsonify
from flask_login import current_user
from campus_checkin.models.profile import RoleType

# Club-level and institution-level staff
SCANNER_ROLES = frozenset({RoleType.CLUB_ADMIN, RoleType.COLLEGE_ADMIN})


def can_scan(role):
    """Check if a role may operate the ticket scanner."""
    return role in SCANNER_ROLES


def login_required_json(f):
    """Decorator to require an authenticated profile."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({
                'success': False,
                'message': 'Authentication required',
                'error_code': 'authentication_required'
            }), 401

        return f(*args, **kwargs)

    return decorated_function


def scanner_required(f):
    """Decorator to require a role that may scan tickets."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({
                'success': False,
                'message': 'Authentication required',
                'error_code': 'authentication_required'
            }), 401

        if not can_scan(current_user.role):
            return jsonify({
                'success': False,
                'message': 'Only Club Admins or Faculty can scan tickets.',
                'error_code': 'unauthorized'
            }), 403

        return f(*args, **kwargs)

    return decorated_function
