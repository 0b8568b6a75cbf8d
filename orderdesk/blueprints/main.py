"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from orderdesk.database import get_session
from orderdesk.services.cache_service import get_cache

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates the database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        row = get_session().execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        get_session().rollback()
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
        }), 500

    if row and row[0] == 1:
        return jsonify({'status': 'healthy', 'database': 'connected'}), 200
    return jsonify({'status': 'unhealthy', 'database': 'error'}), 500


@main_bp.route('/health/cache')
def health_cache():
    """
    Cache health check. Never returns 500: the app works without Redis.
    """
    cache = get_cache()
    if cache.is_available():
        return jsonify({'status': 'ok', 'cache': 'connected'}), 200
    return jsonify({'status': 'degraded', 'cache': 'unavailable'}), 200
