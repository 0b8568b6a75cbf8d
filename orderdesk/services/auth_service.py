"""
Authentication service for staff users.

Handles user creation and credential checks; the session itself is managed
by the auth blueprint.
"""
import logging
from typing import Optional

from orderdesk.exceptions import ConflictError, UnauthorizedError, ValidationError
from orderdesk.models import AppUser

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def create_user(session, email: str, password: str, full_name: Optional[str] = None, role: str = 'Admin') -> AppUser:
    """
    Create a staff user.

    Raises:
        ValidationError: Missing email or a password that is too short.
        ConflictError: Email already registered.
    """
    email = (email or '').strip().lower()
    if not email:
        raise ValidationError('email is required', payload={'field': 'email'})
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must have at least {MIN_PASSWORD_LENGTH} characters',
            payload={'field': 'password'}
        )

    try:
        if session.query(AppUser.id).filter_by(email=email).first():
            raise ConflictError('A user with this email already exists', payload={'field': 'email'})
        user = AppUser(email=email, full_name=full_name, role=role, active=True)
        user.set_password(password)
        session.add(user)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"User {user.id} created: {email} ({role})")
    return user


def authenticate(session, email: str, password: str) -> AppUser:
    """Return the active user matching the credentials or raise UnauthorizedError."""
    email = (email or '').strip().lower()
    user = session.query(AppUser).filter_by(email=email, active=True).first()
    if not user or not user.check_password(password or ''):
        logger.warning(f"Failed login attempt for {email}")
        raise UnauthorizedError('Invalid email or password')
    return user
