"""Middleware for authentication context."""
from functools import wraps
from flask import session, g, current_app
from orderdesk.database import get_session
from orderdesk.exceptions import UnauthorizedError
from orderdesk.models import AppUser


def load_current_user():
    """
    Load the logged-in staff user into g.

    Called before each request. Sets g.user and g.user_id when the session
    carries a 'user_id' of an active user; both are None otherwise.
    """
    g.user = None
    g.user_id = None

    user_id = session.get('user_id')
    if not user_id:
        return

    db_session = get_session()
    user = db_session.query(AppUser).filter_by(id=user_id, active=True).first()
    if user:
        g.user = user
        g.user_id = user.id
    else:
        current_app.logger.info(f"Dropping session of unknown or inactive user {user_id}")
        session.pop('user_id', None)


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Raises UnauthorizedError, which the app turns into a 401 JSON response.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function
