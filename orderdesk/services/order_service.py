"""
Order engine - order lifecycle and payment reconciliation.

Creating an order is a two-pass operation inside one transaction:
    1. Lock every requested product and verify it exists and has enough
       stock. Nothing is mutated in this pass.
    2. Price the lines against the customer's tier, persist the order and
       decrement stock through the stock ledger.
Any failure rolls the whole transaction back.

Payment status and the Pending/Processing/Completed statuses are always
derived from (net_payable, amount_paid) by pricing_service; the only
explicit status transition is cancellation.
"""
import csv
import io
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import joinedload

from orderdesk.exceptions import (
    ConflictError, InsufficientStockError, NotFoundError, ValidationError
)
from orderdesk.models import (
    Customer, CustomerTier, Order, OrderItem, OrderStatus, Product, StockAction, StockHistory, StockSource
)
from orderdesk.services.cache_service import invalidate_analytics
from orderdesk.services.pricing_service import (
    ZERO, apply_payment_state, clamp_payment, ensure_not_terminal, generate_order_code,
    record_status, resolve_unit_price, to_money
)
from orderdesk.services.stock_service import apply_stock_delta, lock_products, parse_quantity
from orderdesk.utils.formatters import format_money

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    'created_at': Order.created_at,
    'total_amount': Order.total_amount,
    'net_payable': Order.net_payable,
}

MAX_PAGE_SIZE = 100


class PaymentReceipt(NamedTuple):
    order: Order
    amount_applied: Decimal
    excess: Decimal
    message: str


# =====================================================
# LINE HELPERS
# =====================================================

def parse_id(value, field: str) -> int:
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'{field} is required', payload={'field': field})
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', payload={'field': field})
    if isinstance(value, float) and value != parsed:
        raise ValidationError(f'{field} must be an integer', payload={'field': field})
    return parsed


def normalize_lines(lines) -> Dict[int, int]:
    """
    Turn raw request lines into {product_id: quantity}.

    Accepts either 'product_id' or 'product' as the key. Duplicate products
    are merged by summing their quantities.
    """
    if not lines or not isinstance(lines, (list, tuple)):
        raise ValidationError('At least one item is required', payload={'field': 'items'})

    requested: Dict[int, int] = {}
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError(f'items[{index}] must be an object', payload={'field': 'items'})
        raw_id = line.get('product_id', line.get('product'))
        product_id = parse_id(raw_id, f'items[{index}].product_id')
        qty = parse_quantity(line.get('quantity'), field=f'items[{index}].quantity')
        requested[product_id] = requested.get(product_id, 0) + qty
    return requested


def check_availability(session, requested: Dict[int, int]) -> Dict[int, Product]:
    """
    First pass: lock the products and verify existence and stock.

    Raises NotFoundError for an unknown product and InsufficientStockError
    for the first line that cannot be fulfilled.
    """
    products = lock_products(session, requested.keys())

    for product_id in requested:
        if product_id not in products:
            raise NotFoundError('Product not found', payload={'product_id': product_id})

    for product_id, qty in requested.items():
        product = products[product_id]
        if product.stock < qty:
            raise InsufficientStockError(product.name, product.stock, qty, product_id=product.id)

    return products


def price_lines(order: Order, requested: Dict[int, int], products: Dict[int, Product], tier: str) -> Decimal:
    """Append one priced OrderItem per product and return the order total."""
    total = ZERO
    for product_id, qty in requested.items():
        product = products[product_id]
        unit_price = resolve_unit_price(tier, product)
        line_total = unit_price * qty
        order.items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=qty,
            unit_price=unit_price,
            total_price=line_total,
        ))
        total += line_total
    return total


def _ensure_discount_fits(total: Decimal, discount: Decimal) -> None:
    if discount > total:
        raise ValidationError(
            'Discount cannot exceed the order total',
            payload={'field': 'discount', 'total_amount': float(total), 'discount': float(discount)}
        )


def _allocate_order_code(session, max_attempts: int) -> str:
    for _ in range(max_attempts):
        code = generate_order_code()
        taken = session.query(Order.id).filter(Order.order_code == code).first()
        if not taken:
            return code
        logger.warning(f"Order code collision on {code}, retrying")
    raise ConflictError(
        'Could not allocate a unique order code, please retry',
        payload={'attempts': max_attempts}
    )


def _get_order_for_update(session, order_id) -> Order:
    order = (
        session.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .first()
    )
    if not order:
        raise NotFoundError('Order not found', payload={'order_id': order_id})
    return order


def build_order(
    session,
    customer: Customer,
    requested: Dict[int, int],
    discount: Decimal = ZERO,
    amount_paid: Decimal = ZERO,
    special_instructions: Optional[str] = None,
    user_id: Optional[int] = None,
    source: StockSource = StockSource.ORDER,
    max_code_attempts: int = 5,
    initial_status: Optional[OrderStatus] = None,
) -> Order:
    """
    Validate, price and persist an order and decrement its stock (no commit).

    Shared by direct order creation and request approval. When
    initial_status is given it is used instead of the payment-derived status.
    """
    products = check_availability(session, requested)

    now = datetime.now()
    order = Order(
        order_code=_allocate_order_code(session, max_code_attempts),
        customer=customer,
        created_by_id=user_id,
        customer_tier=customer.tier,
        discount=discount,
        special_instructions=special_instructions,
        created_at=now,
    )
    order.total_amount = price_lines(order, requested, products, customer.tier)
    _ensure_discount_fits(order.total_amount, discount)
    order.amount_paid = clamp_payment(amount_paid, order.total_amount - discount)
    apply_payment_state(order, now, derive_status=initial_status is None)
    if initial_status is not None:
        record_status(order, initial_status, now)

    session.add(order)
    session.flush()

    for product_id, qty in requested.items():
        apply_stock_delta(
            session, products[product_id], StockAction.REDUCE.value, qty,
            source=source, user_id=user_id, reference_id=order.id,
            remarks=f'Order {order.order_code}'
        )
    return order


# =====================================================
# LIFECYCLE OPERATIONS
# =====================================================

def create_order(
    session,
    customer_id,
    lines,
    discount=0,
    amount_paid=0,
    special_instructions: Optional[str] = None,
    user_id: Optional[int] = None,
    max_code_attempts: int = 5,
) -> Order:
    """
    Create an order for a customer and reserve its stock.

    Items are priced by the customer's tier at creation time (wholesale for
    Wholesaler, retail otherwise). An initial payment larger than the net
    payable is clamped.

    Raises:
        ValidationError: Malformed lines, quantities or money values, or a
            discount larger than the total.
        NotFoundError: Unknown customer or product.
        InsufficientStockError: A line exceeds the product's stock.
    """
    customer_id = parse_id(customer_id, 'customer_id')
    requested = normalize_lines(lines)
    discount = to_money(discount, 'discount', default=0)
    initial_paid = to_money(amount_paid, 'amount_paid', default=0)

    try:
        customer = session.get(Customer, customer_id)
        if not customer:
            raise NotFoundError('Customer not found', payload={'customer_id': customer_id})

        order = build_order(
            session, customer, requested,
            discount=discount,
            amount_paid=initial_paid,
            special_instructions=special_instructions,
            user_id=user_id,
            max_code_attempts=max_code_attempts,
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Order {order.order_code} created for customer {customer_id}: "
        f"{len(requested)} products, net {order.net_payable}, status {order.status}"
    )
    invalidate_analytics()
    return order


def _reconcile_item_stock(session, order: Order, requested: Dict[int, int], user_id: Optional[int]) -> Dict[int, Product]:
    """
    Apply the per-product difference between the current and the new items
    to stock. Increases are validated before anything is written.
    """
    previous: Dict[int, int] = {}
    for item in order.items:
        if item.product_id is not None:
            previous[item.product_id] = previous.get(item.product_id, 0) + item.quantity

    products = lock_products(session, set(requested) | set(previous))
    for product_id in requested:
        if product_id not in products:
            raise NotFoundError('Product not found', payload={'product_id': product_id})

    deltas = {
        product_id: requested.get(product_id, 0) - previous.get(product_id, 0)
        for product_id in sorted(set(requested) | set(previous))
    }

    for product_id, delta in deltas.items():
        product = products.get(product_id)
        if delta > 0 and product.stock < delta:
            raise InsufficientStockError(product.name, product.stock, delta, product_id=product.id)

    for product_id, delta in deltas.items():
        product = products.get(product_id)
        # Product deleted since the order was placed
        if delta == 0 or product is None:
            continue
        action = StockAction.REDUCE if delta > 0 else StockAction.ADD
        apply_stock_delta(
            session, product, action.value, abs(delta),
            source=StockSource.ORDER_EDIT, user_id=user_id, reference_id=order.id,
            remarks=f'Order {order.order_code} edited'
        )
    return products


def update_order(
    session,
    order_id,
    changes: dict,
    user_id: Optional[int] = None,
    reprice_from_current_tier: bool = False,
    reconcile_stock: bool = False,
) -> Order:
    """
    Edit an order's items, discount, amount paid or special instructions.

    New items replace the old ones and are priced by the tier stored on the
    order, or by the customer's current tier when reprice_from_current_tier
    is set. Stock is only adjusted for replaced items when reconcile_stock
    is set. The existing amount paid is clamped to the new net payable.

    A 'status' of Cancelled is routed to cancel_order; any other explicit
    status is ignored since statuses are derived from payment data.
    """
    changes = changes or {}
    if changes.get('status') == OrderStatus.CANCELLED.value:
        return cancel_order(session, order_id, user_id=user_id)

    discount = None
    if changes.get('discount') is not None:
        discount = to_money(changes['discount'], 'discount')
    amount_paid = None
    if changes.get('amount_paid') is not None:
        amount_paid = to_money(changes['amount_paid'], 'amount_paid')
    requested = None
    if changes.get('items') is not None:
        requested = normalize_lines(changes['items'])

    try:
        order = _get_order_for_update(session, order_id)
        ensure_not_terminal(order)
        now = datetime.now()

        if requested is not None:
            tier = order.customer_tier
            if reprice_from_current_tier and order.customer:
                tier = order.customer.tier
                order.customer_tier = tier

            if reconcile_stock:
                products = _reconcile_item_stock(session, order, requested, user_id)
            else:
                found = session.query(Product).filter(Product.id.in_(list(requested))).all()
                products = {p.id: p for p in found}
                for product_id in requested:
                    if product_id not in products:
                        raise NotFoundError('Product not found', payload={'product_id': product_id})

            order.items.clear()
            session.flush()
            order.total_amount = price_lines(order, requested, products, tier)

        if discount is not None:
            order.discount = discount
        _ensure_discount_fits(order.total_amount, order.discount)

        net_payable = order.total_amount - order.discount
        if amount_paid is not None:
            order.amount_paid = clamp_payment(amount_paid, net_payable)
        else:
            order.amount_paid = clamp_payment(order.amount_paid, net_payable)

        if 'special_instructions' in changes:
            order.special_instructions = changes['special_instructions']

        apply_payment_state(order, now)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Order {order.order_code} updated: net {order.net_payable}, "
        f"paid {order.amount_paid}, status {order.status}"
    )
    invalidate_analytics()
    return order


def set_amount_paid(session, order_id, amount, user_id: Optional[int] = None) -> Order:
    """Overwrite the amount paid (clamped to the net payable)."""
    if amount is None or amount == '':
        raise ValidationError('Valid amount_paid is required', payload={'field': 'amount_paid'})
    return update_order(session, order_id, {'amount_paid': amount}, user_id=user_id)


def record_payment(session, order_id, amount, currency_symbol: str = '₹') -> PaymentReceipt:
    """
    Add a payment to an order.

    The applied amount is capped at the outstanding balance; whatever exceeds
    it is reported back as `excess` and not recorded.
    """
    if amount is None or amount == '':
        raise ValidationError('Valid amount_paid is required', payload={'field': 'amount_paid'})
    amount = to_money(amount, 'amount_paid')

    try:
        order = _get_order_for_update(session, order_id)
        ensure_not_terminal(order)

        net_payable = order.total_amount - order.discount
        outstanding = max(net_payable - order.amount_paid, ZERO)
        applied = min(amount, outstanding)
        excess = amount - applied

        order.amount_paid = order.amount_paid + applied
        apply_payment_state(order)
        session.commit()
    except Exception:
        session.rollback()
        raise

    message = f'Payment of {format_money(applied, currency_symbol)} recorded successfully'
    if excess > 0:
        message += f'. {format_money(excess, currency_symbol)} exceeded the balance and was not applied'

    logger.info(
        f"Payment on order {order.order_code}: applied {applied}, excess {excess}, "
        f"status {order.payment_status}"
    )
    invalidate_analytics()
    return PaymentReceipt(order, applied, excess, message)


ORDER_STOCK_SOURCES = (StockSource.ORDER, StockSource.ORDER_REQUEST, StockSource.ORDER_EDIT)


def _stock_taken_by_order(session, order: Order) -> Dict[int, int]:
    """
    Net units the ledger has taken from each product for this order.

    Item edits without reconciliation never reach the ledger, so the current
    items can differ from what was actually removed from stock.
    """
    signed_qty = case(
        (StockHistory.action == StockAction.REDUCE.value, StockHistory.quantity),
        else_=-StockHistory.quantity,
    )
    rows = (
        session.query(StockHistory.product_id, func.sum(signed_qty))
        .filter(
            StockHistory.reference_id == order.id,
            StockHistory.source.in_([source.value for source in ORDER_STOCK_SOURCES]),
            StockHistory.product_id.isnot(None),
            StockHistory.created_at >= order.created_at,
        )
        .group_by(StockHistory.product_id)
        .all()
    )
    return {product_id: int(net) for product_id, net in rows if net and net > 0}


def cancel_order(session, order_id, user_id: Optional[int] = None) -> Order:
    """
    Cancel an order and return to stock what the ledger took for it.

    Cancelled is terminal: cancelling again raises ConflictError.
    """
    try:
        order = _get_order_for_update(session, order_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise ConflictError(
                f'Order {order.order_code} is already Cancelled',
                payload={'order_id': order.id, 'current_status': order.status}
            )

        quantities = _stock_taken_by_order(session, order)

        products = lock_products(session, quantities.keys())
        for product_id, qty in sorted(quantities.items()):
            product = products.get(product_id)
            if product is None:
                continue
            apply_stock_delta(
                session, product, StockAction.ADD.value, qty,
                source=StockSource.ORDER_CANCEL, user_id=user_id, reference_id=order.id,
                remarks=f'Order {order.order_code} cancelled'
            )

        now = datetime.now()
        order.cancelled_at = now
        record_status(order, OrderStatus.CANCELLED, now)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order {order.order_code} cancelled, {sum(quantities.values())} units restocked")
    invalidate_analytics()
    return order


def delete_order(session, order_id) -> None:
    """Delete an order with its items and history. Stock is not restored."""
    try:
        order = session.get(Order, order_id)
        if not order:
            raise NotFoundError('Order not found', payload={'order_id': order_id})
        order_code = order.order_code
        session.delete(order)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order {order_code} deleted")
    invalidate_analytics()


# =====================================================
# QUERIES
# =====================================================

def list_orders(
    session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    customer_tier: Optional[str] = None,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    sort_by: str = 'created_at',
    sort_order: str = 'desc',
) -> Tuple[List[Order], int]:
    """
    Paginated order listing.

    customer_tier matches the tier stored on the order, not the customer's
    current tier.

    Returns:
        (orders on the page, total matching orders)
    """
    query = session.query(Order).join(Customer, Customer.id == Order.customer_id)

    if search:
        query = query.filter(func.lower(Customer.name).like(f'%{search.strip().lower()}%'))
    if customer_tier:
        query = query.filter(Order.customer_tier == customer_tier)
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)

    total = query.count()

    column = SORTABLE_FIELDS.get(sort_by, Order.created_at)
    ordering = column.asc() if sort_order == 'asc' else column.desc()

    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    orders = (
        query.options(joinedload(Order.customer))
        .order_by(ordering, Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return orders, total


def get_order_details(session, order_id) -> Order:
    order = (
        session.query(Order)
        .options(joinedload(Order.customer), joinedload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError('Order not found', payload={'order_id': order_id})
    return order


def get_recent_orders(session, limit: int = 5) -> List[dict]:
    orders = (
        session.query(Order)
        .options(joinedload(Order.customer))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            'id': order.id,
            'order_code': order.order_code,
            'customer_name': order.customer.name if order.customer else None,
            'amount': float(order.net_payable or 0),
            'discount': float(order.discount or 0),
            'status': order.status,
            'payment_status': order.payment_status,
            'date': order.created_at.isoformat() if order.created_at else None,
        }
        for order in orders
    ]


def get_orders_by_customer_tier(session, tier: str) -> List[Order]:
    """Orders placed at the given tier, using the tier stored on each order."""
    valid_tiers = [t.value for t in CustomerTier]
    if tier not in valid_tiers:
        raise ValidationError(
            f'Invalid customer tier. Use one of: {", ".join(valid_tiers)}',
            payload={'field': 'tier'}
        )
    return (
        session.query(Order)
        .options(joinedload(Order.customer))
        .filter(Order.customer_tier == tier)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


EXPORT_COLUMNS = [
    'Order Code', 'Date', 'Customer', 'Tier', 'Status', 'Payment Status',
    'Product', 'Quantity', 'Unit Price', 'Line Total',
    'Order Total', 'Discount', 'Net Payable', 'Amount Paid', 'Balance',
]


def export_orders_csv(session) -> str:
    """One CSV row per order item, with the order header repeated."""
    orders = (
        session.query(Order)
        .options(joinedload(Order.customer), joinedload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for order in orders:
        header = [
            order.order_code,
            order.created_at.strftime('%Y-%m-%d %H:%M') if order.created_at else '',
            order.customer.name if order.customer else '',
            order.customer_tier,
            order.status,
            order.payment_status,
        ]
        totals = [
            order.total_amount, order.discount, order.net_payable,
            order.amount_paid, order.balance_remaining,
        ]
        for item in order.items:
            writer.writerow(header + [
                item.product_name, item.quantity, item.unit_price, item.total_price
            ] + totals)
    return buffer.getvalue()
