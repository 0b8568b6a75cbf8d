"""Order Item model."""
from sqlalchemy import Column, String, Integer, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class OrderItem(Base):
    """Order line. unit_price is a snapshot taken when the line was priced."""
    
    __tablename__ = 'order_item'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_order_item_quantity_positive'),
    )
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='SET NULL'), nullable=True, index=True)
    product_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    
    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product', back_populates='order_items')
    
    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'sku': self.product.sku if self.product else None,
            'quantity': self.quantity,
            'unit_price': float(self.unit_price),
            'total_price': float(self.total_price),
        }
    
    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
