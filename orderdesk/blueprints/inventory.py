"""Inventory blueprint: stock adjustments and the stock ledger."""
from flask import Blueprint, current_app, g, request

from orderdesk.blueprints.metrics import stock_adjustments_total
from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import stock_service
from orderdesk.utils.http import json_body, success

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _low_stock_threshold() -> int:
    return current_app.config.get('LOW_STOCK_THRESHOLD', 10)


@inventory_bp.route('/adjust', methods=['POST'])
@require_login
def adjust_stock():
    data = json_body()
    entry = stock_service.adjust_stock(
        get_session(),
        product_id=data.get('product_id'),
        action=data.get('action'),
        quantity=data.get('quantity'),
        user_id=g.user_id,
        remarks=data.get('remarks'),
    )
    stock_adjustments_total.labels(action=entry.action).inc()
    return success(entry.to_dict(), message='Stock updated successfully')


@inventory_bp.route('/history/<int:product_id>', methods=['GET'])
@require_login
def stock_history(product_id):
    entries = stock_service.get_stock_history(get_session(), product_id)
    return success([entry.to_dict() for entry in entries])


@inventory_bp.route('/overview', methods=['GET'])
@require_login
def overview():
    return success(stock_service.get_inventory_overview(get_session(), _low_stock_threshold()))


@inventory_bp.route('/low-stock', methods=['GET'])
@require_login
def low_stock():
    products = stock_service.get_low_stock_products(get_session(), _low_stock_threshold())
    return success([product.to_dict() for product in products])


@inventory_bp.route('/recent', methods=['GET'])
@require_login
def recent_updates():
    limit = request.args.get('limit', 5, type=int) or 5
    entries = stock_service.get_recent_stock_updates(get_session(), limit=limit)
    return success([entry.to_dict() for entry in entries])


@inventory_bp.route('/activity', methods=['GET'])
@require_login
def activity():
    days = request.args.get('days', 7, type=int) or 7
    return success(stock_service.get_stock_activity(get_session(), days=min(max(days, 1), 90)))


@inventory_bp.route('/most-updated', methods=['GET'])
@require_login
def most_updated():
    limit = request.args.get('limit', 5, type=int) or 5
    return success(stock_service.get_most_updated_products(get_session(), limit=limit))
