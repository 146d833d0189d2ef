from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity

from database import db
from errors import AuthError, PermissionDenied
from models import Role, User


class Capability:
    BOOK = 'book'
    MANAGE_OWN_PROFILE = 'manage_own_profile'
    VIEW_ALL_BOOKINGS = 'view_all_bookings'
    CHANGE_BOOKING_STATUS = 'change_booking_status'
    VIEW_REPORTS = 'view_reports'
    VIEW_USERS = 'view_users'
    VIEW_CARS = 'view_cars'
    REVIEW_DOCUMENTS = 'review_documents'
    MANAGE_CARS = 'manage_cars'
    MANAGE_USERS = 'manage_users'
    MANAGE_SETTINGS = 'manage_settings'
    BACKDATE_BOOKINGS = 'backdate_bookings'


_CUSTOMER = frozenset({Capability.BOOK, Capability.MANAGE_OWN_PROFILE})
_MANAGER = _CUSTOMER | {
    Capability.VIEW_ALL_BOOKINGS,
    Capability.CHANGE_BOOKING_STATUS,
    Capability.VIEW_REPORTS,
    Capability.VIEW_USERS,
    Capability.VIEW_CARS,
    Capability.REVIEW_DOCUMENTS,
}
_ADMIN = _MANAGER | {
    Capability.MANAGE_CARS,
    Capability.MANAGE_USERS,
    Capability.MANAGE_SETTINGS,
    Capability.BACKDATE_BOOKINGS,
}

# Fixed role -> capability table; every permission check goes through here
ROLE_CAPABILITIES = {
    Role.CUSTOMER: _CUSTOMER,
    Role.LEGACY_USER: _CUSTOMER,
    Role.MANAGER: frozenset(_MANAGER),
    Role.ADMIN: frozenset(_ADMIN),
}


def role_can(role, capability):
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def current_user():
    """Returns the User behind the request's JWT, loading it once per request."""
    user = g.get('current_user')
    if user is not None:
        return user
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise AuthError('Invalid token.')
    user = db.session.get(User, user_id)
    if user is None:
        raise AuthError('User for this token no longer exists.')
    g.current_user = user
    return user


# --- Helper Decorator ---
# Checks the stored role of the calling user (not the token claim), so a role
# change applies immediately. Must be stacked under @jwt_required().
def requires(capability):
    def wrapper(fn):
        @wraps(fn)
        def decorator(*args, **kwargs):
            user = current_user()
            if not role_can(user.role, capability):
                raise PermissionDenied()
            return fn(*args, **kwargs)
        return decorator
    return wrapper
