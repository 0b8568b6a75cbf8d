"""
Order request queue.

Customers submit unpriced proposals; an administrator approves them (which
turns them into committed orders through the order engine) or rejects them.
A request is decided exactly once.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from orderdesk.exceptions import ConflictError, NotFoundError, ValidationError
from orderdesk.models import (
    Customer, Order, OrderRequest, OrderRequestItem, OrderRequestStatus, OrderStatus, StockSource
)
from orderdesk.services.cache_service import invalidate_analytics
from orderdesk.services.order_service import build_order, normalize_lines, parse_id

logger = logging.getLogger(__name__)

DEFAULT_LIST_STATUSES = (OrderRequestStatus.PENDING.value, OrderRequestStatus.REJECTED.value)


def _get_request_for_update(session, request_id) -> OrderRequest:
    order_request = (
        session.query(OrderRequest)
        .filter(OrderRequest.id == request_id)
        .with_for_update()
        .first()
    )
    if not order_request:
        raise NotFoundError('Order request not found', payload={'request_id': request_id})
    return order_request


def _ensure_pending(order_request: OrderRequest) -> None:
    if order_request.status != OrderRequestStatus.PENDING.value:
        raise ConflictError(
            f'Order request has already been {order_request.status.lower()}',
            payload={'request_id': order_request.id, 'current_status': order_request.status}
        )


def submit(
    session,
    customer_id,
    lines,
    note: Optional[str] = None,
    special_instructions: Optional[str] = None,
) -> OrderRequest:
    """
    Store a customer's proposal as Pending.

    Products are neither priced nor checked for existence or stock here;
    that happens at approval time.
    """
    customer_id = parse_id(customer_id, 'customer_id')
    requested = normalize_lines(lines)

    try:
        customer = session.get(Customer, customer_id)
        if not customer:
            raise NotFoundError('Customer not found', payload={'customer_id': customer_id})

        order_request = OrderRequest(
            customer=customer,
            status=OrderRequestStatus.PENDING.value,
            customer_note=note,
            special_instructions=special_instructions,
            requested_at=datetime.now(),
        )
        for product_id, qty in requested.items():
            order_request.items.append(OrderRequestItem(product_id=product_id, quantity=qty))

        session.add(order_request)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order request {order_request.id} submitted by customer {customer_id}")
    return order_request


def approve(
    session,
    request_id,
    decider_user_id: Optional[int] = None,
    decision_note: Optional[str] = None,
    max_code_attempts: int = 5,
) -> Order:
    """
    Turn a Pending request into an order.

    Products and stock are re-validated now, since stock may have moved
    since submission. The new order starts as Processing with nothing paid.
    On any failure the request stays Pending and no stock is touched.
    """
    try:
        order_request = _get_request_for_update(session, request_id)
        _ensure_pending(order_request)

        requested = {}
        for item in order_request.items:
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        if not requested:
            raise ValidationError('Order request has no items', payload={'request_id': request_id})

        order = build_order(
            session,
            order_request.customer,
            requested,
            special_instructions=order_request.special_instructions,
            user_id=decider_user_id,
            source=StockSource.ORDER_REQUEST,
            max_code_attempts=max_code_attempts,
            initial_status=OrderStatus.PROCESSING,
        )

        order_request.status = OrderRequestStatus.APPROVED.value
        order_request.decision_note = decision_note
        order_request.decided_by_id = decider_user_id
        order_request.decided_at = datetime.now()
        order_request.order_id = order.id
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order request {request_id} approved as order {order.order_code} (user {decider_user_id})")
    invalidate_analytics()
    return order


def reject(
    session,
    request_id,
    decider_user_id: Optional[int] = None,
    decision_note: Optional[str] = None,
) -> OrderRequest:
    """Mark a Pending request as Rejected. No stock or order is touched."""
    try:
        order_request = _get_request_for_update(session, request_id)
        _ensure_pending(order_request)

        order_request.status = OrderRequestStatus.REJECTED.value
        order_request.decision_note = decision_note
        order_request.decided_by_id = decider_user_id
        order_request.decided_at = datetime.now()
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Order request {request_id} rejected (user {decider_user_id})")
    return order_request


def get_request(session, request_id) -> OrderRequest:
    order_request = (
        session.query(OrderRequest)
        .options(joinedload(OrderRequest.customer))
        .filter(OrderRequest.id == request_id)
        .first()
    )
    if not order_request:
        raise NotFoundError('Order request not found', payload={'request_id': request_id})
    return order_request


def list_requests(
    session,
    statuses: Optional[List[str]] = None,
    search: Optional[str] = None,
    sort: str = 'newest',
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[OrderRequest], int]:
    """
    Paginated request listing, Pending and Rejected by default.

    Returns:
        (requests on the page, total matching requests)
    """
    statuses = list(statuses) if statuses else list(DEFAULT_LIST_STATUSES)
    valid = {s.value for s in OrderRequestStatus}
    unknown = [s for s in statuses if s not in valid]
    if unknown:
        raise ValidationError(
            f'Invalid request status: {", ".join(unknown)}',
            payload={'field': 'status'}
        )

    query = (
        session.query(OrderRequest)
        .join(Customer, Customer.id == OrderRequest.customer_id)
        .filter(OrderRequest.status.in_(statuses))
    )
    if search:
        query = query.filter(func.lower(Customer.name).like(f'%{search.strip().lower()}%'))

    total = query.count()

    if sort == 'oldest':
        ordering = (OrderRequest.requested_at.asc(), OrderRequest.id.asc())
    else:
        ordering = (OrderRequest.requested_at.desc(), OrderRequest.id.desc())

    page = max(page, 1)
    limit = min(max(limit, 1), 100)

    requests = (
        query.options(joinedload(OrderRequest.customer))
        .order_by(*ordering)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return requests, total
