"""Customers blueprint."""
from flask import Blueprint, request

from orderdesk.database import get_session
from orderdesk.middleware import require_login
from orderdesk.services import customer_service
from orderdesk.utils.http import json_body, page_args, paginated, success

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


@customers_bp.route('', methods=['GET'])
@require_login
def list_customers():
    page, limit = page_args(default_limit=20)
    customers, total = customer_service.list_customers(
        get_session(),
        search=request.args.get('search'),
        tier=request.args.get('tier'),
        page=page,
        limit=limit,
    )
    return paginated(customers, total, page, limit)


@customers_bp.route('', methods=['POST'])
@require_login
def create_customer():
    customer = customer_service.create_customer(get_session(), json_body())
    return success(customer.to_dict(), message='Customer created', status_code=201)


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_login
def get_customer(customer_id):
    return success(customer_service.get_customer(get_session(), customer_id).to_dict())


@customers_bp.route('/<int:customer_id>', methods=['PUT', 'PATCH'])
@require_login
def update_customer(customer_id):
    customer = customer_service.update_customer(get_session(), customer_id, json_body())
    return success(customer.to_dict(), message='Customer updated')


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_login
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), customer_id)
    return success(message='Customer deleted')
