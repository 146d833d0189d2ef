import datetime
import logging
import uuid

from flask_jwt_extended import create_access_token

import notifications
from database import db
from errors import AuthError, Conflict, ValidationError
from models import Role, User, utcnow
from settings_store import get_site_settings

logger = logging.getLogger(__name__)

RESET_TOKEN_LIFETIME = datetime.timedelta(hours=1)
GENERIC_RESET_MESSAGE = 'If an account with that email exists, a password reset link has been sent.'


def normalize_email(email):
    return email.strip().lower()


def find_user_by_email(email):
    return User.query.filter_by(email=normalize_email(email)).first()


def create_user(name, email, password, role=Role.CUSTOMER, phone_number=None):
    """Adds a user; duplicate emails are rejected with 409."""
    email = normalize_email(email)
    if User.query.filter_by(email=email).first():
        raise Conflict('User with this email already exists.')

    user = User(name=name, email=email, role=role, phone_number=phone_number)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("New user registered: %s (%s)", email, role)
    return user


def authenticate(email, password):
    user = find_user_by_email(email)
    if user and user.check_password(password):
        logger.info("Login successful for %s", user.email)
        return user
    logger.info("Failed login attempt for %s", email)
    raise AuthError('Invalid email or password.')


def issue_token(user):
    """Signs a token whose lifetime follows the site's session timeout."""
    timeout = get_site_settings().session_timeout_minutes
    return create_access_token(
        identity=str(user.id),
        additional_claims={'userId': str(user.id), 'email': user.email, 'role': user.role, 'name': user.name},
        expires_delta=datetime.timedelta(minutes=timeout),
    )


def request_password_reset(email):
    """
    Issues a one-hour reset token and emails it. The answer never reveals
    whether the account exists, and a failed email does not undo the token.
    """
    user = find_user_by_email(email)
    if user is None:
        logger.info("Password reset requested for unknown email %s", email)
        return GENERIC_RESET_MESSAGE

    user.reset_password_token = uuid.uuid4().hex
    user.reset_password_expires = utcnow() + RESET_TOKEN_LIFETIME
    db.session.commit()
    notifications.send_password_reset(user.email, user.reset_password_token)
    return GENERIC_RESET_MESSAGE


def reset_password(token, new_password):
    user = User.query.filter(
        User.reset_password_token == token,
        User.reset_password_expires > utcnow(),
    ).first()
    if user is None:
        raise ValidationError('Password reset token is invalid or has expired.')

    user.set_password(new_password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.session.commit()
    logger.info("Password reset completed for %s", user.email)
    return user
