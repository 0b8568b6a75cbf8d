"""Order requests blueprint: customer proposals and their approval."""
from flask import Blueprint, current_app, g, request

from orderdesk.blueprints.metrics import orders_created_total
from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import order_request_service
from orderdesk.utils.http import json_body, page_args, paginated, success

order_requests_bp = Blueprint('order_requests', __name__, url_prefix='/order-requests')


@order_requests_bp.route('', methods=['POST'])
def submit_request():
    data = json_body()
    order_request = order_request_service.submit(
        get_session(),
        customer_id=data.get('customer_id', data.get('customer')),
        lines=data.get('items'),
        note=data.get('note'),
        special_instructions=data.get('special_instructions'),
    )
    return success(order_request.to_dict(), message='Order request submitted', status_code=201)


@order_requests_bp.route('', methods=['GET'])
@require_login
def list_requests():
    page, limit = page_args()
    statuses = request.args.getlist('status') or None
    requests, total = order_request_service.list_requests(
        get_session(),
        statuses=statuses,
        search=request.args.get('search'),
        sort=request.args.get('sort', 'newest'),
        page=page,
        limit=limit,
    )
    return paginated(requests, total, page, limit)


@order_requests_bp.route('/<int:request_id>', methods=['GET'])
@require_login
def get_request(request_id):
    return success(order_request_service.get_request(get_session(), request_id).to_dict())


@order_requests_bp.route('/<int:request_id>/approve', methods=['POST'])
@require_login
def approve_request(request_id):
    data = json_body()
    order = order_request_service.approve(
        get_session(),
        request_id,
        decider_user_id=g.user_id,
        decision_note=data.get('note'),
        max_code_attempts=current_app.config.get('ORDER_CODE_MAX_ATTEMPTS', 5),
    )
    orders_created_total.labels(origin='request').inc()
    return success(order.to_dict(include_items=True), message='Order request approved', status_code=201)


@order_requests_bp.route('/<int:request_id>/reject', methods=['POST'])
@require_login
def reject_request(request_id):
    data = json_body()
    order_request = order_request_service.reject(
        get_session(),
        request_id,
        decider_user_id=g.user_id,
        decision_note=data.get('note'),
    )
    return success(order_request.to_dict(), message='Order request rejected')
