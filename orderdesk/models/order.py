"""Order model."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class OrderStatus(str, enum.Enum):
    """Order status. Pending/Processing/Completed are derived from payment state."""
    PENDING = 'Pending'
    PROCESSING = 'Processing'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'


class PaymentStatus(str, enum.Enum):
    """Payment status of an order."""
    UNPAID = 'Unpaid'
    PARTIALLY_PAID = 'Partially Paid'
    PAID = 'Paid'


# Set only by explicit administrative action and never re-derived
TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.CANCELLED.value})


class Order(Base):
    """
    Order header.
    
    The payment sub-record is flattened into amount_paid / balance_remaining /
    payment_status. net_payable and balance_remaining are recomputed by
    services.pricing_service.apply_payment_state on every mutation.
    """
    
    __tablename__ = 'orders'
    __table_args__ = (
        CheckConstraint('discount >= 0', name='ck_orders_discount_non_negative'),
    )
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    order_code = Column(String(16), nullable=False, unique=True, index=True)
    customer_id = Column(IdType, ForeignKey('customer.id'), nullable=False, index=True)
    created_by_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    # Tier the customer had when the order was placed; items are priced against it
    customer_tier = Column(String(20), nullable=False)
    
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    net_payable = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_remaining = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value, index=True)
    
    special_instructions = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, onupdate=datetime.now)
    
    # Relationships
    customer = relationship('Customer', back_populates='orders')
    created_by = relationship('AppUser')
    items = relationship(
        'OrderItem', back_populates='order',
        cascade='all, delete-orphan', order_by='OrderItem.id'
    )
    status_history = relationship(
        'OrderStatusHistory', back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderStatusHistory.id'
    )
    
    @property
    def is_terminal(self):
        return self.status in TERMINAL_ORDER_STATUSES
    
    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'order_code': self.order_code,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'customer_tier': self.customer_tier,
            'created_by_id': self.created_by_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'total_amount': float(self.total_amount or 0),
            'discount': float(self.discount or 0),
            'net_payable': float(self.net_payable or 0),
            'payment': {
                'amount_paid': float(self.amount_paid or 0),
                'balance_remaining': float(self.balance_remaining or 0),
                'status': self.payment_status,
            },
            'status': self.status,
            'status_history': [entry.to_dict() for entry in self.status_history],
            'special_instructions': self.special_instructions,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data
    
    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.order_code}', status='{self.status}', net={self.net_payable})>"


class OrderStatusHistory(Base):
    """Audit trail entry appended whenever an order's status changes."""
    
    __tablename__ = 'order_status_history'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    status = Column(String(20), nullable=False)
    changed_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    
    order = relationship('Order', back_populates='status_history')
    
    def to_dict(self):
        return {
            'status': self.status,
            'changed_at': self.changed_at.isoformat() if self.changed_at else None,
        }
    
    def __repr__(self):
        return f"<OrderStatusHistory(order_id={self.order_id}, status='{self.status}')>"
