"""Catalog service - categories and products."""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from orderdesk.exceptions import ConflictError, NotFoundError, ValidationError
from orderdesk.models import Category, Product, ProductUnit, StockAction, StockSource
from orderdesk.services.pricing_service import to_money
from orderdesk.services.stock_service import apply_stock_delta

logger = logging.getLogger(__name__)

SKU_PREFIX = 'TAR-'
MIN_GSM = 100


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _require_text(data: dict, field: str) -> str:
    value = _clean_text(data.get(field))
    if not value:
        raise ValidationError(f'{field} is required', payload={'field': field})
    return value


# =====================================================
# CATEGORIES
# =====================================================

def list_categories(session) -> List[Category]:
    return session.query(Category).order_by(Category.name.asc()).all()


def get_category(session, category_id) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise NotFoundError('Category not found', payload={'category_id': category_id})
    return category


def _ensure_category_name_free(session, name: str, exclude_id=None) -> None:
    query = session.query(Category.id).filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError(f'Category "{name}" already exists', payload={'field': 'name'})


def create_category(session, data: dict) -> Category:
    name = _require_text(data, 'name')
    try:
        _ensure_category_name_free(session, name)
        category = Category(name=name, description=_clean_text(data.get('description')))
        session.add(category)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Category {category.id} '{name}' created")
    return category


def update_category(session, category_id, data: dict) -> Category:
    try:
        category = get_category(session, category_id)
        if 'name' in data:
            name = _require_text(data, 'name')
            _ensure_category_name_free(session, name, exclude_id=category.id)
            category.name = name
        if 'description' in data:
            category.description = _clean_text(data.get('description'))
        session.commit()
    except Exception:
        session.rollback()
        raise
    return category


def delete_category(session, category_id) -> None:
    try:
        category = get_category(session, category_id)
        in_use = session.query(Product.id).filter(Product.category_id == category.id).first()
        if in_use:
            raise ConflictError(
                'Category still has products',
                payload={'category_id': category.id}
            )
        session.delete(category)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Category {category_id} deleted")


# =====================================================
# PRODUCTS
# =====================================================

def next_sku(session) -> str:
    """Next free 'TAR-NNN' code, starting from the product count."""
    number = (session.query(func.count(Product.id)).scalar() or 0) + 1
    while True:
        sku = f'{SKU_PREFIX}{number:03d}'
        if not session.query(Product.id).filter(Product.sku == sku).first():
            return sku
        number += 1


def _parse_gsm(value) -> int:
    if value is None or value == '':
        return MIN_GSM
    try:
        gsm = int(value)
    except (TypeError, ValueError):
        raise ValidationError('gsm must be an integer', payload={'field': 'gsm'})
    if gsm < MIN_GSM:
        raise ValidationError(f'gsm must be at least {MIN_GSM}', payload={'field': 'gsm'})
    return gsm


def _parse_unit(value) -> str:
    if value is None or value == '':
        return ProductUnit.METER.value
    units = [u.value for u in ProductUnit]
    if value not in units:
        raise ValidationError(
            f'unit must be one of: {", ".join(units)}',
            payload={'field': 'unit'}
        )
    return value


def _parse_initial_stock(value) -> int:
    if value is None or value == '':
        return 0
    try:
        stock = int(value)
    except (TypeError, ValueError):
        raise ValidationError('stock must be a whole number', payload={'field': 'stock'})
    if stock < 0:
        raise ValidationError('stock cannot be negative', payload={'field': 'stock'})
    return stock


def list_products(
    session,
    search: Optional[str] = None,
    category_id=None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Product], int]:
    query = session.query(Product)
    if search:
        term = f'%{search.strip().lower()}%'
        query = query.filter(or_(
            func.lower(Product.name).like(term),
            func.lower(Product.sku).like(term),
        ))
    if category_id:
        query = query.filter(Product.category_id == category_id)

    total = query.count()
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    products = (
        query.options(joinedload(Product.category))
        .order_by(Product.name.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return products, total


def get_product(session, product_id) -> Product:
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product not found', payload={'product_id': product_id})
    return product


def create_product(session, data: dict, user_id: Optional[int] = None) -> Product:
    """
    Create a product. A non-zero initial stock is booked as a ledger 'add'
    entry so the product's history starts from zero.
    """
    name = _require_text(data, 'name')
    price_retail = to_money(data.get('price_retail'), 'price_retail')
    price_wholesale = to_money(data.get('price_wholesale'), 'price_wholesale')
    gsm = _parse_gsm(data.get('gsm'))
    unit = _parse_unit(data.get('unit'))
    initial_stock = _parse_initial_stock(data.get('stock'))

    try:
        category = get_category(session, data.get('category_id'))
        sku = _clean_text(data.get('sku')) or next_sku(session)
        if session.query(Product.id).filter(Product.sku == sku).first():
            raise ConflictError(f'SKU "{sku}" is already in use', payload={'field': 'sku'})

        product = Product(
            name=name,
            description=_clean_text(data.get('description')),
            category=category,
            price_retail=price_retail,
            price_wholesale=price_wholesale,
            stock=0,
            unit=unit,
            sku=sku,
            gsm=gsm,
            image_url=_clean_text(data.get('image_url')),
        )
        session.add(product)
        session.flush()

        if initial_stock > 0:
            apply_stock_delta(
                session, product, StockAction.ADD.value, initial_stock,
                source=StockSource.MANUAL, user_id=user_id, remarks='Initial stock'
            )
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConflictError('Product could not be saved (duplicate SKU)', payload={'field': 'sku'})
    except Exception:
        session.rollback()
        raise

    logger.info(f"Product {product.id} '{name}' created with SKU {sku}, stock {initial_stock}")
    return product


def update_product(session, product_id, data: dict) -> Product:
    """Update product attributes. Stock is changed only through inventory adjustments."""
    if 'stock' in data:
        raise ValidationError(
            'Stock cannot be edited directly; use an inventory adjustment',
            payload={'field': 'stock'}
        )

    try:
        product = get_product(session, product_id)
        if 'name' in data:
            product.name = _require_text(data, 'name')
        if 'description' in data:
            product.description = _clean_text(data.get('description'))
        if 'price_retail' in data:
            product.price_retail = to_money(data.get('price_retail'), 'price_retail')
        if 'price_wholesale' in data:
            product.price_wholesale = to_money(data.get('price_wholesale'), 'price_wholesale')
        if 'gsm' in data:
            product.gsm = _parse_gsm(data.get('gsm'))
        if 'unit' in data:
            product.unit = _parse_unit(data.get('unit'))
        if 'image_url' in data:
            product.image_url = _clean_text(data.get('image_url'))
        if 'category_id' in data:
            product.category = get_category(session, data.get('category_id'))
        if 'sku' in data:
            sku = _clean_text(data.get('sku'))
            if not sku:
                raise ValidationError('sku cannot be empty', payload={'field': 'sku'})
            taken = session.query(Product.id).filter(Product.sku == sku, Product.id != product.id).first()
            if taken:
                raise ConflictError(f'SKU "{sku}" is already in use', payload={'field': 'sku'})
            product.sku = sku
        session.commit()
    except Exception:
        session.rollback()
        raise
    return product


def delete_product(session, product_id) -> None:
    """
    Delete a product. Order items and ledger entries keep their name
    snapshot and lose the product reference.
    """
    try:
        product = get_product(session, product_id)
        session.delete(product)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Product {product_id} deleted")
