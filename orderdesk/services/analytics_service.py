"""
Analytics service - read-only aggregations over orders, items and expenses.

Every public function is memoised in the 'analytics' cache module. Order
and stock mutations drop that module (see cache_service.invalidate_analytics).
Cancelled orders never count as revenue.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy import func

from orderdesk.models import (
    Customer, Expense, Order, OrderItem, OrderStatus, PaymentStatus
)
from orderdesk.services.cache_service import ANALYTICS_MODULE, get_cache

logger = logging.getLogger(__name__)


def _cached(key: str, loader_fn: Callable):
    try:
        cache = get_cache()
        ttl = current_app.config.get('CACHE_ANALYTICS_TTL', 120)
    except RuntimeError:
        # No cache or no app context (CLI, scripts)
        return loader_fn()
    return cache.memoize(ANALYTICS_MODULE, key, loader_fn, ttl=ttl)


def _as_float(value) -> float:
    return float(value or 0)


def growth_percent(current, previous) -> float:
    """Percentage change; 100 when starting from zero, 0 when both are zero."""
    current = Decimal(str(current or 0))
    previous = Decimal(str(previous or 0))
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round(float((current - previous) / previous * 100), 2)


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1)


def _shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _revenue_query(session):
    return session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount), 0),
    ).filter(Order.status != OrderStatus.CANCELLED.value)


def _period_totals(session, start: datetime, end: datetime):
    count, revenue = _revenue_query(session).filter(
        Order.created_at >= start,
        Order.created_at < end,
    ).one()
    return count or 0, Decimal(str(revenue or 0))


def get_kpi_stats(session, now: Optional[datetime] = None) -> dict:
    """
    Headline numbers for the dashboard.

    Monthly and yearly figures are relative to `now`. Net profit is revenue
    minus every recorded expense.
    """
    now = now or datetime.now()
    key = f"kpi:{now:%Y-%m}"

    def load():
        total_orders, total_revenue = _revenue_query(session).one()
        total_revenue = Decimal(str(total_revenue or 0))

        month_start = _month_start(now.year, now.month)
        next_month = _month_start(*_shift_month(now.year, now.month, 1))
        prev_month = _month_start(*_shift_month(now.year, now.month, -1))
        current_orders, monthly_revenue = _period_totals(session, month_start, next_month)
        previous_orders, previous_revenue = _period_totals(session, prev_month, month_start)

        year_start = datetime(now.year, 1, 1)
        _, yearly_revenue = _period_totals(session, year_start, datetime(now.year + 1, 1, 1))
        _, previous_year_revenue = _period_totals(session, datetime(now.year - 1, 1, 1), year_start)

        total_sales_qty = (
            session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
            .join(Order, Order.id == OrderItem.order_id)
            .filter(Order.status != OrderStatus.CANCELLED.value)
            .scalar()
        ) or 0
        total_expenses = Decimal(str(
            session.query(func.coalesce(func.sum(Expense.amount), 0)).scalar() or 0
        ))

        return {
            'total_orders': total_orders or 0,
            'total_revenue': _as_float(total_revenue),
            'current_month_orders': current_orders,
            'previous_month_orders': previous_orders,
            'monthly_revenue': _as_float(monthly_revenue),
            'previous_monthly_revenue': _as_float(previous_revenue),
            'yearly_revenue': _as_float(yearly_revenue),
            'previous_year_revenue': _as_float(previous_year_revenue),
            'monthly_growth_percent': growth_percent(monthly_revenue, previous_revenue),
            'yearly_growth_percent': growth_percent(yearly_revenue, previous_year_revenue),
            'monthly_order_growth_percent': growth_percent(current_orders, previous_orders),
            'total_sales_qty': int(total_sales_qty),
            'total_expenses': _as_float(total_expenses),
            'net_profit': _as_float(total_revenue - total_expenses),
        }

    return _cached(key, load)


def get_payment_summary(session) -> dict:
    """
    Collection figures across non-cancelled orders.

    avg_recovery_percent is total collected over total payable, for orders
    with something to pay.
    """
    def load():
        active = session.query(Order).filter(Order.status != OrderStatus.CANCELLED.value)

        total_collected = session.query(func.coalesce(func.sum(Order.amount_paid), 0)).filter(
            Order.status.in_([OrderStatus.PROCESSING.value, OrderStatus.COMPLETED.value]),
            Order.amount_paid > 0,
        ).scalar() or 0

        outstanding = active.with_entities(
            func.coalesce(func.sum(Order.net_payable - Order.amount_paid), 0)
        ).filter(Order.amount_paid < Order.net_payable).scalar() or 0

        payable, collected = active.with_entities(
            func.coalesce(func.sum(Order.net_payable), 0),
            func.coalesce(func.sum(Order.amount_paid), 0),
        ).filter(Order.net_payable > 0).one()
        payable = Decimal(str(payable or 0))
        collected = Decimal(str(collected or 0))
        avg_recovery = round(float(collected / payable * 100), 2) if payable else 0.0

        counts = dict(
            active.with_entities(Order.payment_status, func.count(Order.id))
            .filter(Order.net_payable > 0)
            .group_by(Order.payment_status)
            .all()
        )
        distribution = [
            {'status': status.value, 'count': counts.get(status.value, 0)}
            for status in (PaymentStatus.PAID, PaymentStatus.PARTIALLY_PAID, PaymentStatus.UNPAID)
        ]

        discounted_count, total_discount, discounted_net = active.with_entities(
            func.count(Order.id),
            func.coalesce(func.sum(Order.discount), 0),
            func.coalesce(func.sum(Order.net_payable), 0),
        ).filter(Order.discount > 0).one()
        total_discount = Decimal(str(total_discount or 0))
        gross = Decimal(str(discounted_net or 0)) + total_discount

        return {
            'total_collected': _as_float(total_collected),
            'total_outstanding': _as_float(outstanding),
            'avg_recovery_percent': avg_recovery,
            'payment_status_distribution': distribution,
            'discounts': {
                'total_discount': _as_float(total_discount),
                'average_discount': _as_float(total_discount / discounted_count) if discounted_count else 0.0,
                'discount_to_revenue_ratio': round(float(total_discount / gross * 100), 2) if gross else 0.0,
            },
        }

    return _cached('payment_summary', load)


def get_top_customers(session, limit: int = 10) -> List[dict]:
    """Customers ranked by net payable over their non-cancelled orders."""
    def load():
        spent = func.sum(Order.net_payable).label('total_spent')
        rows = (
            session.query(Customer.id, Customer.name, Customer.tier, func.count(Order.id), spent)
            .join(Order, Order.customer_id == Customer.id)
            .filter(Order.status != OrderStatus.CANCELLED.value)
            .group_by(Customer.id, Customer.name, Customer.tier)
            .order_by(spent.desc(), Customer.name.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                'customer_id': customer_id,
                'name': name,
                'tier': tier,
                'orders': order_count,
                'total_spent': _as_float(total_spent),
            }
            for customer_id, name, tier, order_count, total_spent in rows
        ]

    return _cached(f'top_customers:{limit}', load)


def get_most_sold_products(session, limit: int = 10) -> List[dict]:
    """Products ranked by units sold. Items of deleted products are skipped."""
    def load():
        quantity = func.sum(OrderItem.quantity).label('quantity')
        rows = (
            session.query(OrderItem.product_id, func.max(OrderItem.product_name), quantity)
            .join(Order, Order.id == OrderItem.order_id)
            .filter(
                Order.status != OrderStatus.CANCELLED.value,
                OrderItem.product_id.isnot(None),
            )
            .group_by(OrderItem.product_id)
            .order_by(quantity.desc(), OrderItem.product_id.asc())
            .limit(limit)
            .all()
        )
        return [
            {'product_id': product_id, 'name': name, 'quantity': int(qty or 0)}
            for product_id, name, qty in rows
        ]

    return _cached(f'most_sold:{limit}', load)


def get_order_snapshot(session) -> dict:
    """Order count per status, every status present (zero when none)."""
    def load():
        counts = dict(
            session.query(Order.status, func.count(Order.id))
            .group_by(Order.status)
            .all()
        )
        snapshot = {status.value: counts.get(status.value, 0) for status in OrderStatus}
        snapshot['total'] = sum(snapshot.values())
        return snapshot

    return _cached('order_snapshot', load)


def get_expense_breakdown(session) -> List[dict]:
    def load():
        rows = (
            session.query(Expense.category, func.sum(Expense.amount))
            .group_by(Expense.category)
            .order_by(Expense.category.asc())
            .all()
        )
        return [{'category': category, 'amount': _as_float(amount)} for category, amount in rows]

    return _cached('expense_breakdown', load)
