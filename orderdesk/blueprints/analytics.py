"""Analytics blueprint (read only)."""
from flask import Blueprint, request

from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import analytics_service
from orderdesk.utils.http import success

analytics_bp = Blueprint('analytics', __name__, url_prefix='/analytics')


def _limit(default: int = 10) -> int:
    limit = request.args.get('limit', default, type=int) or default
    return min(max(limit, 1), 50)


@analytics_bp.route('/kpi', methods=['GET'])
@require_login
def kpi_stats():
    return success(analytics_service.get_kpi_stats(get_session()))


@analytics_bp.route('/payments', methods=['GET'])
@require_login
def payment_summary():
    return success(analytics_service.get_payment_summary(get_session()))


@analytics_bp.route('/top-customers', methods=['GET'])
@require_login
def top_customers():
    return success(analytics_service.get_top_customers(get_session(), limit=_limit()))


@analytics_bp.route('/most-sold-products', methods=['GET'])
@require_login
def most_sold_products():
    return success(analytics_service.get_most_sold_products(get_session(), limit=_limit()))


@analytics_bp.route('/order-snapshot', methods=['GET'])
@require_login
def order_snapshot():
    return success(analytics_service.get_order_snapshot(get_session()))


@analytics_bp.route('/expenses', methods=['GET'])
@require_login
def expense_breakdown():
    return success(analytics_service.get_expense_breakdown(get_session()))
