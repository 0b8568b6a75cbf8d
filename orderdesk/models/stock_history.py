"""Stock History model - append-only ledger of stock changes."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class StockAction(str, enum.Enum):
    """Direction of a stock change."""
    ADD = 'add'
    REDUCE = 'reduce'


class StockSource(str, enum.Enum):
    """What triggered a stock change."""
    MANUAL = 'manual'
    ORDER = 'order'
    ORDER_REQUEST = 'order_request'
    ORDER_EDIT = 'order_edit'
    ORDER_CANCEL = 'order_cancel'


class StockHistory(Base):
    """
    Stock History entry.
    
    Rows are never updated or deleted. product_name is a snapshot so that
    history stays readable after the product itself is removed.
    """
    
    __tablename__ = 'stock_history'
    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_stock_history_quantity_positive'),
    )
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    product_id = Column(IdType, ForeignKey('product.id', ondelete='SET NULL'), nullable=True, index=True)
    product_name = Column(String(200), nullable=False)
    action = Column(String(10), nullable=False)
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    source = Column(String(20), nullable=False, default=StockSource.MANUAL.value)
    reference_id = Column(IdType, nullable=True)  # order id for order-driven changes
    remarks = Column(Text, nullable=True)
    updated_by_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, index=True)
    
    # Relationships
    product = relationship('Product', back_populates='stock_history')
    updated_by = relationship('AppUser')
    
    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'action': self.action,
            'quantity': self.quantity,
            'previous_stock': self.previous_stock,
            'new_stock': self.new_stock,
            'source': self.source,
            'reference_id': self.reference_id,
            'remarks': self.remarks,
            'updated_by': self.updated_by.full_name if self.updated_by else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
    
    def __repr__(self):
        return (
            f"<StockHistory(product_id={self.product_id}, action='{self.action}', "
            f"qty={self.quantity}, {self.previous_stock}->{self.new_stock})>"
        )
