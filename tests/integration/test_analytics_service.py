"""
Integration tests for analytics aggregations.
"""

from datetime import datetime

import pytest

from orderdesk.services import analytics_service, expense_service, order_service
from orderdesk.services.analytics_service import growth_percent


@pytest.mark.parametrize('current,previous,expected', [
    (200, 100, 100.0),
    (200, 300, -33.33),
    (50, 0, 100.0),
    (0, 0, 0.0),
])
def test_growth_percent(current, previous, expected):
    assert growth_percent(current, previous) == expected


@pytest.fixture
def book(session, make_customer, make_product):
    """
    Two live orders and one cancelled order:
        A: 3 x 100 = 300, paid 150            (Partially Paid, Processing)
        B: 2 x 100 = 200, discount 20, unpaid (Unpaid, Pending)
        C: 1 x 100, cancelled
    """
    tarp = make_product(name='Tarp', stock=50, price_retail='100')
    rope = make_product(name='Rope', stock=50, price_retail='100')
    alice = make_customer(name='Alice')
    bob = make_customer(name='Bob')

    a = order_service.create_order(
        session, alice.id, [{'product_id': tarp.id, 'quantity': 3}], amount_paid='150'
    )
    b = order_service.create_order(
        session, bob.id, [{'product_id': rope.id, 'quantity': 2}], discount='20'
    )
    c = order_service.create_order(session, bob.id, [{'product_id': rope.id, 'quantity': 1}])
    order_service.cancel_order(session, c.id)

    expense_service.create_expense(session, {'title': 'Diesel', 'category': 'Transport', 'amount': '50'})
    return {'a': a, 'b': b, 'c': c, 'tarp': tarp, 'rope': rope, 'alice': alice, 'bob': bob}


def test_kpi_excludes_cancelled_orders(session, book):
    kpi = analytics_service.get_kpi_stats(session)

    assert kpi['total_orders'] == 2
    assert kpi['total_revenue'] == 500.0
    assert kpi['monthly_revenue'] == 500.0
    assert kpi['current_month_orders'] == 2
    assert kpi['total_sales_qty'] == 5
    assert kpi['total_expenses'] == 50.0
    assert kpi['net_profit'] == 450.0


def test_kpi_growth_against_previous_periods(session, retailer, make_product):
    product = make_product(stock=50, price_retail='100')
    february = order_service.create_order(session, retailer.id, [{'product_id': product.id, 'quantity': 3}])
    march = order_service.create_order(session, retailer.id, [{'product_id': product.id, 'quantity': 2}])
    february.created_at = datetime(2024, 2, 10)
    march.created_at = datetime(2024, 3, 5)
    session.commit()

    kpi = analytics_service.get_kpi_stats(session, now=datetime(2024, 3, 15))

    assert kpi['monthly_revenue'] == 200.0
    assert kpi['previous_monthly_revenue'] == 300.0
    assert kpi['monthly_growth_percent'] == -33.33
    assert kpi['monthly_order_growth_percent'] == 0.0
    assert kpi['yearly_revenue'] == 500.0
    assert kpi['previous_year_revenue'] == 0.0
    assert kpi['yearly_growth_percent'] == 100.0


def test_payment_summary(session, book):
    summary = analytics_service.get_payment_summary(session)

    assert summary['total_collected'] == 150.0
    assert summary['total_outstanding'] == 330.0
    assert summary['avg_recovery_percent'] == 31.25
    assert summary['payment_status_distribution'] == [
        {'status': 'Paid', 'count': 0},
        {'status': 'Partially Paid', 'count': 1},
        {'status': 'Unpaid', 'count': 1},
    ]
    assert summary['discounts'] == {
        'total_discount': 20.0,
        'average_discount': 20.0,
        'discount_to_revenue_ratio': 10.0,
    }


def test_top_customers_ranked_by_net_payable(session, book):
    top = analytics_service.get_top_customers(session)

    assert [(row['name'], row['orders'], row['total_spent']) for row in top] == [
        ('Alice', 1, 300.0),
        ('Bob', 1, 180.0),
    ]


def test_most_sold_products(session, book):
    sold = analytics_service.get_most_sold_products(session)

    assert [(row['name'], row['quantity']) for row in sold] == [('Tarp', 3), ('Rope', 2)]


def test_order_snapshot(session, book):
    assert analytics_service.get_order_snapshot(session) == {
        'Pending': 1,
        'Processing': 1,
        'Completed': 0,
        'Cancelled': 1,
        'total': 3,
    }


def test_expense_breakdown(session, book):
    expense_service.create_expense(session, {'title': 'Wages', 'category': 'Worker', 'amount': '300'})
    expense_service.create_expense(session, {'title': 'Tolls', 'category': 'Transport', 'amount': '25.50'})

    assert analytics_service.get_expense_breakdown(session) == [
        {'category': 'Transport', 'amount': 75.5},
        {'category': 'Worker', 'amount': 300.0},
    ]


def test_empty_book(session):
    kpi = analytics_service.get_kpi_stats(session)
    assert kpi['total_orders'] == 0
    assert kpi['monthly_growth_percent'] == 0.0

    summary = analytics_service.get_payment_summary(session)
    assert summary['avg_recovery_percent'] == 0.0
    assert summary['discounts']['average_discount'] == 0.0
