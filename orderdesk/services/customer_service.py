"""Customer service."""
import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import func, or_

from orderdesk.exceptions import ConflictError, NotFoundError, ValidationError
from orderdesk.models import Customer, CustomerTier, Order

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_tier(value) -> str:
    if value is None or value == '':
        return CustomerTier.RETAILER.value
    tiers = [t.value for t in CustomerTier]
    if value not in tiers:
        raise ValidationError(f'tier must be one of: {", ".join(tiers)}', payload={'field': 'tier'})
    return value


def _parse_email(value) -> str:
    email = _clean(value)
    if not email:
        raise ValidationError('email is required', payload={'field': 'email'})
    email = email.lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError('email is not valid', payload={'field': 'email'})
    return email


def _parse_coordinate(value, field: str, bound: float) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        coordinate = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a number', payload={'field': field})
    if abs(coordinate) > bound:
        raise ValidationError(f'{field} is out of range', payload={'field': field})
    return coordinate


def _ensure_email_free(session, email: str, exclude_id=None) -> None:
    query = session.query(Customer.id).filter(Customer.email == email)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first():
        raise ConflictError('A customer with this email already exists', payload={'field': 'email'})


def list_customers(
    session,
    search: Optional[str] = None,
    tier: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Customer], int]:
    query = session.query(Customer)
    if search:
        term = f'%{search.strip().lower()}%'
        query = query.filter(or_(
            func.lower(Customer.name).like(term),
            func.lower(Customer.email).like(term),
            Customer.phone.like(term),
        ))
    if tier:
        query = query.filter(Customer.tier == _parse_tier(tier))

    total = query.count()
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    customers = (
        query.order_by(Customer.name.asc(), Customer.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return customers, total


def get_customer(session, customer_id) -> Customer:
    customer = session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError('Customer not found', payload={'customer_id': customer_id})
    return customer


def create_customer(session, data: dict) -> Customer:
    name = _clean(data.get('name'))
    if not name:
        raise ValidationError('name is required', payload={'field': 'name'})
    phone = _clean(data.get('phone'))
    if not phone:
        raise ValidationError('phone is required', payload={'field': 'phone'})
    email = _parse_email(data.get('email'))

    try:
        _ensure_email_free(session, email)
        customer = Customer(
            name=name,
            email=email,
            phone=phone,
            tier=_parse_tier(data.get('tier')),
            city=_clean(data.get('city')),
            latitude=_parse_coordinate(data.get('latitude'), 'latitude', 90),
            longitude=_parse_coordinate(data.get('longitude'), 'longitude', 180),
        )
        if data.get('password'):
            customer.set_password(data['password'])
        session.add(customer)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Customer {customer.id} created ({customer.tier})")
    return customer


def update_customer(session, customer_id, data: dict) -> Customer:
    """
    Update a customer. Changing the tier does not reprice existing orders,
    which keep the tier they were placed with.
    """
    try:
        customer = get_customer(session, customer_id)
        if 'name' in data:
            name = _clean(data.get('name'))
            if not name:
                raise ValidationError('name is required', payload={'field': 'name'})
            customer.name = name
        if 'email' in data:
            email = _parse_email(data.get('email'))
            _ensure_email_free(session, email, exclude_id=customer.id)
            customer.email = email
        if 'phone' in data:
            phone = _clean(data.get('phone'))
            if not phone:
                raise ValidationError('phone is required', payload={'field': 'phone'})
            customer.phone = phone
        if 'tier' in data:
            customer.tier = _parse_tier(data.get('tier'))
        if 'city' in data:
            customer.city = _clean(data.get('city'))
        if 'latitude' in data:
            customer.latitude = _parse_coordinate(data.get('latitude'), 'latitude', 90)
        if 'longitude' in data:
            customer.longitude = _parse_coordinate(data.get('longitude'), 'longitude', 180)
        session.commit()
    except Exception:
        session.rollback()
        raise
    return customer


def delete_customer(session, customer_id) -> None:
    try:
        customer = get_customer(session, customer_id)
        has_orders = session.query(Order.id).filter(Order.customer_id == customer.id).first()
        if has_orders:
            raise ConflictError(
                'Customer has orders and cannot be deleted',
                payload={'customer_id': customer.id}
            )
        for order_request in list(customer.order_requests):
            session.delete(order_request)
        session.delete(customer)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"Customer {customer_id} deleted")
