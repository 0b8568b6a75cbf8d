"""Expense service. Expenses feed the profit figures in analytics."""
import logging
from datetime import datetime
from typing import List, Optional

from orderdesk.exceptions import NotFoundError, ValidationError
from orderdesk.models import Expense, ExpenseCategory
from orderdesk.services.cache_service import invalidate_analytics
from orderdesk.services.pricing_service import to_money

logger = logging.getLogger(__name__)


def _parse_category(value) -> str:
    categories = [c.value for c in ExpenseCategory]
    if value not in categories:
        raise ValidationError(
            f'category must be one of: {", ".join(categories)}',
            payload={'field': 'category'}
        )
    return value


def _parse_date(value) -> datetime:
    if value is None or value == '':
        return datetime.now()
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError('expense_date must be an ISO date', payload={'field': 'expense_date'})


def list_expenses(
    session,
    category: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[Expense]:
    query = session.query(Expense)
    if category:
        query = query.filter(Expense.category == _parse_category(category))
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date < end)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def get_expense(session, expense_id) -> Expense:
    expense = session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError('Expense not found', payload={'expense_id': expense_id})
    return expense


def create_expense(session, data: dict, user_id: Optional[int] = None) -> Expense:
    title = (data.get('title') or '').strip()
    if not title:
        raise ValidationError('title is required', payload={'field': 'title'})
    amount = to_money(data.get('amount'), 'amount')
    if amount == 0:
        raise ValidationError('amount must be greater than 0', payload={'field': 'amount'})

    try:
        expense = Expense(
            title=title,
            category=_parse_category(data.get('category')),
            amount=amount,
            note=data.get('note'),
            expense_date=_parse_date(data.get('expense_date')),
            added_by_id=user_id,
        )
        session.add(expense)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Expense {expense.id} recorded: {expense.category} {amount}")
    invalidate_analytics()
    return expense


def update_expense(session, expense_id, data: dict) -> Expense:
    try:
        expense = get_expense(session, expense_id)
        if 'title' in data:
            title = (data.get('title') or '').strip()
            if not title:
                raise ValidationError('title is required', payload={'field': 'title'})
            expense.title = title
        if 'category' in data:
            expense.category = _parse_category(data.get('category'))
        if 'amount' in data:
            amount = to_money(data.get('amount'), 'amount')
            if amount == 0:
                raise ValidationError('amount must be greater than 0', payload={'field': 'amount'})
            expense.amount = amount
        if 'note' in data:
            expense.note = data.get('note')
        if 'expense_date' in data:
            expense.expense_date = _parse_date(data.get('expense_date'))
        session.commit()
    except Exception:
        session.rollback()
        raise

    invalidate_analytics()
    return expense


def delete_expense(session, expense_id) -> None:
    try:
        expense = get_expense(session, expense_id)
        session.delete(expense)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Expense {expense_id} deleted")
    invalidate_analytics()
