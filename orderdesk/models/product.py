"""Product model."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class ProductUnit(str, enum.Enum):
    """Unit a product is sold in."""
    METER = 'meter'
    KG = 'kg'
    PIECE = 'piece'
    ROLL = 'roll'
    SQ_M = 'sq.m'


class Product(Base):
    """
    Product with two independent price tiers.
    
    `stock` is only mutated through the stock ledger
    (see services.stock_service.apply_stock_delta).
    """
    
    __tablename__ = 'product'
    __table_args__ = (
        CheckConstraint('stock >= 0', name='ck_product_stock_non_negative'),
        CheckConstraint('gsm >= 100', name='ck_product_gsm_min'),
    )
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(IdType, ForeignKey('category.id'), nullable=False)
    price_retail = Column(Numeric(12, 2), nullable=False)
    price_wholesale = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    unit = Column(String(10), nullable=False, default=ProductUnit.METER.value)
    sku = Column(String(50), nullable=True, unique=True)
    gsm = Column(Integer, nullable=False, default=100)
    image_url = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, onupdate=datetime.now)
    
    # Relationships
    category = relationship('Category', back_populates='products')
    # History rows keep a name snapshot; deleting a product only nulls the reference
    stock_history = relationship('StockHistory', back_populates='product')
    order_items = relationship('OrderItem', back_populates='product')
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category_id': self.category_id,
            'category': self.category.name if self.category else None,
            'price_retail': float(self.price_retail) if self.price_retail is not None else None,
            'price_wholesale': float(self.price_wholesale) if self.price_wholesale is not None else None,
            'stock': self.stock,
            'unit': self.unit,
            'sku': self.sku,
            'gsm': self.gsm,
            'image_url': self.image_url,
        }
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', sku='{self.sku}', stock={self.stock})>"
