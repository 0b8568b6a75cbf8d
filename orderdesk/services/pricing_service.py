"""
Pricing and payment-state rules shared by every order-touching operation.

Everything here is a pure function of its inputs, except apply_payment_state
which writes the derived fields onto an Order instance (without flushing).
"""
import secrets
import string
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import NamedTuple, Optional

from orderdesk.exceptions import ConflictError, ValidationError
from orderdesk.models import (
    CustomerTier, OrderStatus, OrderStatusHistory, PaymentStatus, TERMINAL_ORDER_STATUSES
)

ORDER_CODE_PREFIX = '#ORD-'
ORDER_CODE_ALPHABET = string.ascii_lowercase + string.digits
ORDER_CODE_SUFFIX_LENGTH = 4

ZERO = Decimal('0')
CENT = Decimal('0.01')


class PaymentState(NamedTuple):
    payment_status: PaymentStatus
    order_status: OrderStatus
    balance_remaining: Decimal


def to_money(value, field: str = 'amount', default=None) -> Decimal:
    """Parse a non-negative money value, rounded half-up to whole cents."""
    if value is None or value == '':
        if default is None:
            raise ValidationError(f'{field} is required', payload={'field': field})
        value = default
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be a number', payload={'field': field})
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number', payload={'field': field})
    if not amount.is_finite():
        raise ValidationError(f'{field} must be a number', payload={'field': field})
    if amount < 0:
        raise ValidationError(f'{field} cannot be negative', payload={'field': field})
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f'{field} is too large', payload={'field': field})


def resolve_unit_price(tier: str, product) -> Decimal:
    """Wholesalers pay the wholesale price; every other tier pays retail."""
    if tier == CustomerTier.WHOLESALER.value:
        return product.price_wholesale
    return product.price_retail


def derive_payment_state(net_payable: Decimal, amount_paid: Decimal) -> PaymentState:
    """
    Map (net_payable, amount_paid) to payment and order status.

    amount_paid == 0        -> Unpaid / Pending
    balance_remaining > 0   -> Partially Paid / Processing
    otherwise               -> Paid / Completed
    """
    balance_remaining = net_payable - amount_paid
    if amount_paid == 0:
        return PaymentState(PaymentStatus.UNPAID, OrderStatus.PENDING, balance_remaining)
    if balance_remaining > 0:
        return PaymentState(PaymentStatus.PARTIALLY_PAID, OrderStatus.PROCESSING, balance_remaining)
    return PaymentState(PaymentStatus.PAID, OrderStatus.COMPLETED, balance_remaining)


def clamp_payment(amount: Decimal, net_payable: Decimal) -> Decimal:
    """A payment can never register more than what is owed."""
    return min(amount, net_payable)


def ensure_not_terminal(order) -> None:
    if order.status in TERMINAL_ORDER_STATUSES:
        raise ConflictError(
            f'Order {order.order_code} is {order.status} and can no longer be modified',
            payload={'order_id': order.id, 'current_status': order.status}
        )


def record_status(order, status: OrderStatus, now: Optional[datetime] = None) -> bool:
    """
    Set order.status and append a history entry if it actually changed.

    Returns True when a history entry was appended.
    """
    if order.status == status.value:
        return False
    order.status = status.value
    order.status_history.append(
        OrderStatusHistory(status=status.value, changed_at=now or datetime.now())
    )
    return True


def apply_payment_state(order, now: Optional[datetime] = None, derive_status: bool = True) -> PaymentState:
    """
    Recompute net payable, balance and statuses on an order.

    This is the only place Pending/Processing/Completed are assigned from
    payment data. With derive_status=False only the payment fields are
    written. Terminal orders are rejected with ConflictError.
    """
    ensure_not_terminal(order)

    total_amount = order.total_amount if order.total_amount is not None else ZERO
    discount = order.discount if order.discount is not None else ZERO
    amount_paid = order.amount_paid if order.amount_paid is not None else ZERO

    order.net_payable = total_amount - discount
    state = derive_payment_state(order.net_payable, amount_paid)

    order.amount_paid = amount_paid
    order.balance_remaining = state.balance_remaining
    order.payment_status = state.payment_status.value
    if derive_status:
        record_status(order, state.order_status, now)
    return state


def generate_order_code() -> str:
    """Return a candidate order code such as '#ORD-4x9k'."""
    suffix = ''.join(secrets.choice(ORDER_CODE_ALPHABET) for _ in range(ORDER_CODE_SUFFIX_LENGTH))
    return f'{ORDER_CODE_PREFIX}{suffix}'
