"""
Unit tests for pricing and payment-state derivation.
"""

import re
from decimal import Decimal
from types import SimpleNamespace

import pytest

from orderdesk.exceptions import ConflictError, ValidationError
from orderdesk.models import Order, OrderStatus, PaymentStatus
from orderdesk.services.pricing_service import (
    apply_payment_state, clamp_payment, derive_payment_state, generate_order_code,
    record_status, resolve_unit_price, to_money
)


class TestDerivePaymentState:

    def test_nothing_paid_is_unpaid_and_pending(self):
        state = derive_payment_state(Decimal('300'), Decimal('0'))
        assert state.payment_status == PaymentStatus.UNPAID
        assert state.order_status == OrderStatus.PENDING
        assert state.balance_remaining == Decimal('300')

    def test_partial_payment_is_processing(self):
        state = derive_payment_state(Decimal('300'), Decimal('150'))
        assert state.payment_status == PaymentStatus.PARTIALLY_PAID
        assert state.order_status == OrderStatus.PROCESSING
        assert state.balance_remaining == Decimal('150')

    def test_full_payment_is_completed(self):
        state = derive_payment_state(Decimal('300'), Decimal('300'))
        assert state.payment_status == PaymentStatus.PAID
        assert state.order_status == OrderStatus.COMPLETED
        assert state.balance_remaining == Decimal('0')

    def test_zero_net_payable_with_nothing_paid_stays_unpaid(self):
        state = derive_payment_state(Decimal('0'), Decimal('0'))
        assert state.payment_status == PaymentStatus.UNPAID
        assert state.order_status == OrderStatus.PENDING


class TestResolveUnitPrice:

    product = SimpleNamespace(price_retail=Decimal('100'), price_wholesale=Decimal('80'))

    def test_wholesaler_pays_wholesale(self):
        assert resolve_unit_price('Wholesaler', self.product) == Decimal('80')

    def test_retailer_pays_retail(self):
        assert resolve_unit_price('Retailer', self.product) == Decimal('100')

    def test_unknown_tier_falls_back_to_retail(self):
        assert resolve_unit_price('Distributor', self.product) == Decimal('100')


class TestToMoney:

    def test_parses_strings_and_numbers(self):
        assert to_money('12.50') == Decimal('12.50')
        assert to_money(7) == Decimal('7')

    def test_default_used_for_missing_value(self):
        assert to_money(None, default=0) == Decimal('0')
        assert to_money('', default=0) == Decimal('0')

    def test_missing_without_default_is_required(self):
        with pytest.raises(ValidationError, match='discount is required'):
            to_money(None, 'discount')

    @pytest.mark.parametrize('value', ['abc', True, 'NaN', 'Infinity'])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            to_money(value)

    def test_rejects_negative(self):
        with pytest.raises(ValidationError, match='cannot be negative'):
            to_money('-1', 'amount_paid')

    @pytest.mark.parametrize('raw,expected', [
        ('0.004', '0.00'),
        ('0.005', '0.01'),
        ('19.999', '20.00'),
        (12.345, '12.35'),
    ])
    def test_rounds_to_whole_cents(self, raw, expected):
        amount = to_money(raw)
        assert amount == Decimal(expected)
        assert amount.as_tuple().exponent == -2

    def test_rejects_values_too_large_to_store(self):
        with pytest.raises(ValidationError, match='too large'):
            to_money('1e40')


def test_clamp_payment_never_exceeds_net_payable():
    assert clamp_payment(Decimal('500'), Decimal('300')) == Decimal('300')
    assert clamp_payment(Decimal('100'), Decimal('300')) == Decimal('100')


def test_order_code_format():
    for _ in range(20):
        assert re.fullmatch(r'#ORD-[a-z0-9]{4}', generate_order_code())


class TestApplyPaymentState:

    def _order(self, total='300', discount='0', paid='0'):
        return Order(
            order_code='#ORD-test',
            total_amount=Decimal(total),
            discount=Decimal(discount),
            amount_paid=Decimal(paid),
        )

    def test_derives_header_fields(self):
        order = self._order(total='300', discount='50', paid='100')
        apply_payment_state(order)

        assert order.net_payable == Decimal('250')
        assert order.balance_remaining == Decimal('150')
        assert order.payment_status == PaymentStatus.PARTIALLY_PAID.value
        assert order.status == OrderStatus.PROCESSING.value
        assert [h.status for h in order.status_history] == ['Processing']

    def test_history_only_grows_on_change(self):
        order = self._order()
        apply_payment_state(order)
        apply_payment_state(order)
        assert [h.status for h in order.status_history] == ['Pending']

        order.amount_paid = Decimal('300')
        apply_payment_state(order)
        assert [h.status for h in order.status_history] == ['Pending', 'Completed']

    def test_payment_fields_only(self):
        order = self._order(paid='0')
        apply_payment_state(order, derive_status=False)
        record_status(order, OrderStatus.PROCESSING)

        assert order.payment_status == PaymentStatus.UNPAID.value
        assert order.status == OrderStatus.PROCESSING.value

    def test_cancelled_orders_are_refused(self):
        order = self._order()
        order.status = OrderStatus.CANCELLED.value
        with pytest.raises(ConflictError) as exc_info:
            apply_payment_state(order)
        assert exc_info.value.payload['current_status'] == 'Cancelled'
