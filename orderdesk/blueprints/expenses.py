"""Expenses blueprint."""
from datetime import datetime

from flask import Blueprint, g, request

from orderdesk.database import get_session
from orderdesk.exceptions import ValidationError
from orderdesk.middleware import require_login
from orderdesk.services import expense_service
from orderdesk.utils.http import json_body, success

expenses_bp = Blueprint('expenses', __name__, url_prefix='/expenses')


def _date_arg(name: str):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO date', payload={'field': name})


@expenses_bp.route('', methods=['GET'])
@require_login
def list_expenses():
    expenses = expense_service.list_expenses(
        get_session(),
        category=request.args.get('category'),
        start=_date_arg('start'),
        end=_date_arg('end'),
    )
    return success([expense.to_dict() for expense in expenses])


@expenses_bp.route('', methods=['POST'])
@require_login
def create_expense():
    expense = expense_service.create_expense(get_session(), json_body(), user_id=g.user_id)
    return success(expense.to_dict(), message='Expense added', status_code=201)


@expenses_bp.route('/<int:expense_id>', methods=['GET'])
@require_login
def get_expense(expense_id):
    return success(expense_service.get_expense(get_session(), expense_id).to_dict())


@expenses_bp.route('/<int:expense_id>', methods=['PUT', 'PATCH'])
@require_login
def update_expense(expense_id):
    expense = expense_service.update_expense(get_session(), expense_id, json_body())
    return success(expense.to_dict(), message='Expense updated')


@expenses_bp.route('/<int:expense_id>', methods=['DELETE'])
@require_login
def delete_expense(expense_id):
    expense_service.delete_expense(get_session(), expense_id)
    return success(message='Expense deleted')
