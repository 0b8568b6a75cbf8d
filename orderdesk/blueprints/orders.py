"""Orders blueprint."""
from datetime import datetime

from flask import Blueprint, Response, current_app, g, request

from orderdesk.blueprints.metrics import (
    orders_cancelled_total, orders_created_total, payments_recorded_total
)
from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.models import OrderStatus
from orderdesk.services import order_service
from orderdesk.utils.http import json_body, page_args, paginated, success

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


def _flag(data: dict, key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes')
    return bool(value)


@orders_bp.route('', methods=['GET'])
@require_login
def list_orders():
    page, limit = page_args()
    orders, total = order_service.list_orders(
        get_session(),
        page=page,
        limit=limit,
        search=request.args.get('search'),
        customer_tier=request.args.get('tier'),
        status=request.args.get('status'),
        payment_status=request.args.get('payment_status'),
        sort_by=request.args.get('sort_by', 'created_at'),
        sort_order=request.args.get('sort_order', 'desc'),
    )
    return paginated(orders, total, page, limit)


@orders_bp.route('', methods=['POST'])
@require_login
def create_order():
    data = json_body()
    order = order_service.create_order(
        get_session(),
        customer_id=data.get('customer_id', data.get('customer')),
        lines=data.get('items'),
        discount=data.get('discount', 0),
        amount_paid=data.get('amount_paid', 0),
        special_instructions=data.get('special_instructions'),
        user_id=g.user_id,
        max_code_attempts=current_app.config.get('ORDER_CODE_MAX_ATTEMPTS', 5),
    )
    orders_created_total.labels(origin='direct').inc()
    return success(order.to_dict(include_items=True), message='Order created successfully', status_code=201)


@orders_bp.route('/recent', methods=['GET'])
@require_login
def recent_orders():
    limit = request.args.get('limit', 5, type=int) or 5
    return success(order_service.get_recent_orders(get_session(), limit=limit))


@orders_bp.route('/tier/<tier>', methods=['GET'])
@require_login
def orders_by_tier(tier):
    orders = order_service.get_orders_by_customer_tier(get_session(), tier)
    return success([order.to_dict() for order in orders])


@orders_bp.route('/export', methods=['GET'])
@require_login
def export_orders():
    content = order_service.export_orders_csv(get_session())
    filename = f"orders_{datetime.now():%Y%m%d_%H%M}.csv"
    return Response(
        content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id):
    order = order_service.get_order_details(get_session(), order_id)
    return success(order.to_dict(include_items=True))


@orders_bp.route('/<int:order_id>', methods=['PUT', 'PATCH'])
@require_login
def update_order(order_id):
    data = json_body()
    order = order_service.update_order(
        get_session(),
        order_id,
        data,
        user_id=g.user_id,
        reprice_from_current_tier=_flag(data, 'reprice_from_current_tier', False),
        reconcile_stock=_flag(
            data, 'reconcile_stock', current_app.config.get('ORDER_EDIT_RECONCILES_STOCK', False)
        ),
    )
    if data.get('status') == OrderStatus.CANCELLED.value:
        orders_cancelled_total.inc()
    return success(order.to_dict(include_items=True), message='Order updated successfully')


@orders_bp.route('/<int:order_id>/amount-paid', methods=['PUT', 'PATCH'])
@require_login
def set_amount_paid(order_id):
    data = json_body()
    order = order_service.set_amount_paid(get_session(), order_id, data.get('amount_paid'), user_id=g.user_id)
    return success(order.to_dict(), message='Amount paid updated')


@orders_bp.route('/<int:order_id>/payments', methods=['POST'])
@require_login
def record_payment(order_id):
    data = json_body()
    receipt = order_service.record_payment(
        get_session(),
        order_id,
        data.get('amount_paid', data.get('amount')),
        currency_symbol=current_app.config.get('CURRENCY_SYMBOL', '₹'),
    )
    payments_recorded_total.inc()
    return success(
        receipt.order.to_dict(),
        message=receipt.message,
        amount_applied=float(receipt.amount_applied),
        excess=float(receipt.excess),
    )


@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@require_login
def cancel_order(order_id):
    order = order_service.cancel_order(get_session(), order_id, user_id=g.user_id)
    orders_cancelled_total.inc()
    return success(order.to_dict(include_items=True), message='Order cancelled')


@orders_bp.route('/<int:order_id>', methods=['DELETE'])
@require_login
def delete_order(order_id):
    order_service.delete_order(get_session(), order_id)
    return success(message='Order deleted successfully')
