"""Order Request models - customer proposals awaiting an admin decision."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class OrderRequestStatus(str, enum.Enum):
    """Pending transitions exactly once to Approved or Rejected."""
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'


class OrderRequest(Base):
    """
    Order Request.
    
    Carries no prices and reserves no stock. Approval turns it into an Order
    (order_id is populated); rejection has no side effects.
    """
    
    __tablename__ = 'order_request'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    customer_id = Column(IdType, ForeignKey('customer.id'), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderRequestStatus.PENDING.value, index=True)
    customer_note = Column(Text, nullable=True)
    special_instructions = Column(Text, nullable=True)
    decision_note = Column(Text, nullable=True)
    decided_by_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    order_id = Column(IdType, ForeignKey('orders.id', ondelete='SET NULL'), nullable=True)
    requested_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, onupdate=datetime.now)
    
    # Relationships
    customer = relationship('Customer', back_populates='order_requests')
    decided_by = relationship('AppUser')
    order = relationship('Order')
    items = relationship(
        'OrderRequestItem', back_populates='request',
        cascade='all, delete-orphan', order_by='OrderRequestItem.id'
    )
    
    def to_dict(self):
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'status': self.status,
            'customer_note': self.customer_note,
            'special_instructions': self.special_instructions,
            'decision_note': self.decision_note,
            'decided_by_id': self.decided_by_id,
            'decided_at': self.decided_at.isoformat() if self.decided_at else None,
            'order_id': self.order_id,
            'requested_at': self.requested_at.isoformat() if self.requested_at else None,
            'items': [item.to_dict() for item in self.items],
        }
    
    def __repr__(self):
        return f"<OrderRequest(id={self.id}, customer_id={self.customer_id}, status='{self.status}')>"


class OrderRequestItem(Base):
    """Requested line: product and quantity only."""
    
    __tablename__ = 'order_request_item'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_order_request_item_quantity_positive'),
    )
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    request_id = Column(IdType, ForeignKey('order_request.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(IdType, nullable=False)
    quantity = Column(Integer, nullable=False)
    
    request = relationship('OrderRequest', back_populates='items')
    
    def to_dict(self):
        return {
            'product_id': self.product_id,
            'quantity': self.quantity,
        }
    
    def __repr__(self):
        return f"<OrderRequestItem(request_id={self.request_id}, product_id={self.product_id}, qty={self.quantity})>"
