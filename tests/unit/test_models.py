"""
Unit tests for SQLAlchemy models (no database needed).
"""

from datetime import datetime
from decimal import Decimal

from orderdesk.models import AppUser, Order, OrderItem, OrderStatus, OrderStatusHistory


class TestOrderModel:

    def _order(self):
        order = Order(
            order_code='#ORD-ab12',
            customer_tier='Retailer',
            total_amount=Decimal('300'),
            discount=Decimal('0'),
            net_payable=Decimal('300'),
            amount_paid=Decimal('150'),
            balance_remaining=Decimal('150'),
            payment_status='Partially Paid',
            status=OrderStatus.PROCESSING.value,
        )
        order.items.append(OrderItem(
            product_id=1, product_name='Blue Tarp', quantity=3,
            unit_price=Decimal('100'), total_price=Decimal('300')
        ))
        order.status_history.append(OrderStatusHistory(status='Processing', changed_at=datetime(2024, 1, 2)))
        return order

    def test_to_dict_nests_payment(self):
        data = self._order().to_dict()
        assert data['net_payable'] == 300.0
        assert data['payment'] == {
            'amount_paid': 150.0,
            'balance_remaining': 150.0,
            'status': 'Partially Paid',
        }
        assert data['status_history'] == [{'status': 'Processing', 'changed_at': '2024-01-02T00:00:00'}]
        assert 'items' not in data

    def test_to_dict_with_items(self):
        items = self._order().to_dict(include_items=True)['items']
        assert len(items) == 1
        assert items[0]['product_name'] == 'Blue Tarp'
        assert items[0]['quantity'] == 3

    def test_only_cancelled_is_terminal(self):
        order = self._order()
        assert order.is_terminal is False
        order.status = OrderStatus.CANCELLED.value
        assert order.is_terminal is True


class TestAppUserModel:

    def test_password_hashing(self):
        user = AppUser(email='staff@test.com')
        user.set_password('securepassword')
        assert user.password_hash != 'securepassword'
        assert user.check_password('securepassword')
        assert not user.check_password('wrong')

    def test_user_without_password_cannot_log_in(self):
        assert not AppUser(email='staff@test.com').check_password('anything')
