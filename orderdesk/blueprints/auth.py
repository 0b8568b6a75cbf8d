"""Authentication blueprint: staff login and logout."""
import logging

from flask import Blueprint, g, session

from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import auth_service
from orderdesk.utils.http import json_body, success

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    user = auth_service.authenticate(get_session(), data.get('email'), data.get('password'))

    session.clear()
    session['user_id'] = user.id
    session.permanent = True
    logger.info(f"User {user.id} logged in")
    return success(user.to_dict(), message='Logged in')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    user_id = session.pop('user_id', None)
    session.clear()
    if user_id:
        logger.info(f"User {user_id} logged out")
    return success(message='Logged out')


@auth_bp.route('/me', methods=['GET'])
@require_login
def me():
    return success(g.user.to_dict())
