"""
Stock ledger service.

Every change to Product.stock goes through apply_stock_delta, which performs
an atomic conditional UPDATE and appends an immutable StockHistory row. Direct
inventory adjustments (adjust_stock) and the order engine share this path.
"""
import logging
from datetime import datetime, date, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func

from orderdesk.exceptions import InsufficientStockError, NotFoundError, ValidationError
from orderdesk.models import Product, StockAction, StockHistory, StockSource
from orderdesk.services.cache_service import invalidate_analytics

logger = logging.getLogger(__name__)


def parse_quantity(value, field: str = 'quantity') -> int:
    """Parse a whole, strictly positive quantity."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f'{field} must be a whole number greater than 0', payload={'field': field})
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a whole number greater than 0', payload={'field': field})
    if not qty.is_finite() or qty != qty.to_integral_value() or qty < 1:
        raise ValidationError(f'{field} must be a whole number greater than 0', payload={'field': field})
    return int(qty)


def lock_products(session, product_ids: Iterable[int]) -> Dict[int, Product]:
    """Load products FOR UPDATE (ordered by id to avoid lock inversion)."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    products = (
        session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .with_for_update()
        .all()
    )
    return {p.id: p for p in products}


def apply_stock_delta(
    session,
    product: Product,
    action: str,
    quantity: int,
    source: StockSource = StockSource.MANUAL,
    user_id: Optional[int] = None,
    remarks: Optional[str] = None,
    reference_id: Optional[int] = None,
) -> StockHistory:
    """
    Apply one stock change and record it in the ledger (no commit).

    Reductions use `UPDATE ... SET stock = stock - q WHERE stock >= q`, so two
    concurrent writers can never take stock below zero: the loser matches no
    row and gets InsufficientStockError.
    """
    if quantity is None or quantity <= 0:
        raise ValidationError('quantity must be greater than 0', payload={'field': 'quantity'})

    query = session.query(Product).filter(Product.id == product.id)
    if action == StockAction.ADD.value:
        rows = query.update({Product.stock: Product.stock + quantity}, synchronize_session=False)
    elif action == StockAction.REDUCE.value:
        rows = query.filter(Product.stock >= quantity).update(
            {Product.stock: Product.stock - quantity}, synchronize_session=False
        )
    else:
        raise ValidationError('Invalid stock action', payload={'action': action})

    session.refresh(product)
    if rows == 0:
        raise InsufficientStockError(product.name, product.stock, quantity, product_id=product.id)

    new_stock = product.stock
    if action == StockAction.ADD.value:
        previous_stock = new_stock - quantity
    else:
        previous_stock = new_stock + quantity

    entry = StockHistory(
        product_id=product.id,
        product_name=product.name,
        action=action,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        source=source.value,
        reference_id=reference_id,
        remarks=remarks,
        updated_by_id=user_id,
        created_at=datetime.now(),
    )
    session.add(entry)
    return entry


def adjust_stock(
    session,
    product_id: int,
    action: str,
    quantity,
    user_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> StockHistory:
    """
    Direct inventory adjustment ('add' or 'reduce'), committed on success.

    A reduction larger than the current stock fails with
    InsufficientStockError; nothing is written in that case.
    """
    if action not in (StockAction.ADD.value, StockAction.REDUCE.value):
        raise ValidationError('Invalid stock action', payload={'action': action})
    qty = parse_quantity(quantity)

    try:
        product = (
            session.query(Product)
            .filter(Product.id == product_id)
            .with_for_update()
            .first()
        )
        if not product:
            raise NotFoundError('Product not found', payload={'product_id': product_id})

        if action == StockAction.REDUCE.value and product.stock < qty:
            raise InsufficientStockError(product.name, product.stock, qty, product_id=product.id)

        entry = apply_stock_delta(
            session, product, action, qty,
            source=StockSource.MANUAL, user_id=user_id, remarks=remarks
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Stock {action} of {qty} on product {product_id}: "
        f"{entry.previous_stock} -> {entry.new_stock} (user {user_id})"
    )
    invalidate_analytics()
    return entry


# =====================================================
# READ OPERATIONS
# =====================================================

def get_stock_history(session, product_id: int) -> List[StockHistory]:
    """Ledger entries for a product, newest first."""
    return (
        session.query(StockHistory)
        .filter(StockHistory.product_id == product_id)
        .order_by(StockHistory.created_at.desc(), StockHistory.id.desc())
        .all()
    )


def get_inventory_overview(session, low_stock_threshold: int = 10) -> dict:
    """Product count, total units on hand, low and out-of-stock counts."""
    total_products = session.query(func.count(Product.id)).scalar() or 0
    total_stock = session.query(func.coalesce(func.sum(Product.stock), 0)).scalar() or 0
    low_stock = session.query(func.count(Product.id)).filter(
        Product.stock > 0,
        Product.stock < low_stock_threshold
    ).scalar() or 0
    out_of_stock = session.query(func.count(Product.id)).filter(Product.stock == 0).scalar() or 0

    return {
        'total_products': total_products,
        'total_stock': int(total_stock),
        'low_stock': low_stock,
        'out_of_stock': out_of_stock,
    }


def get_low_stock_products(session, low_stock_threshold: int = 10) -> List[Product]:
    """Products that still have stock but less than the threshold."""
    return (
        session.query(Product)
        .filter(Product.stock > 0, Product.stock < low_stock_threshold)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )


def get_recent_stock_updates(session, limit: int = 5) -> List[StockHistory]:
    return (
        session.query(StockHistory)
        .order_by(StockHistory.created_at.desc(), StockHistory.id.desc())
        .limit(limit)
        .all()
    )


def get_stock_activity(session, days: int = 7, today: Optional[date] = None) -> List[dict]:
    """
    Units added and reduced per day for the last `days` days (oldest first).
    """
    today = today or date.today()
    start_day = today - timedelta(days=days - 1)
    start_dt = datetime.combine(start_day, time.min)
    end_dt = datetime.combine(today, time.min) + timedelta(days=1)

    entries = session.query(StockHistory).filter(
        StockHistory.created_at >= start_dt,
        StockHistory.created_at < end_dt
    ).all()

    buckets = {}
    for offset in range(days):
        day = start_day + timedelta(days=offset)
        buckets[day] = {'date': f"{day.strftime('%b')} {day.day}", 'added': 0, 'reduced': 0}

    for entry in entries:
        bucket = buckets.get(entry.created_at.date())
        if bucket is None:
            continue
        if entry.action == StockAction.ADD.value:
            bucket['added'] += entry.quantity
        else:
            bucket['reduced'] += entry.quantity

    return [buckets[day] for day in sorted(buckets)]


def get_most_updated_products(session, limit: int = 5) -> List[dict]:
    """Products with the most ledger entries."""
    changes = func.count(StockHistory.id).label('changes')
    rows = (
        session.query(Product.id, Product.name, Product.sku, changes)
        .join(StockHistory, StockHistory.product_id == Product.id)
        .group_by(Product.id, Product.name, Product.sku)
        .order_by(changes.desc(), Product.name.asc())
        .limit(limit)
        .all()
    )
    return [
        {'product_id': row.id, 'name': row.name, 'sku': row.sku, 'changes': row.changes}
        for row in rows
    ]
