"""Category model."""
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class Category(Base):
    """Product Category."""
    
    __tablename__ = 'category'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    
    # Relationships
    products = relationship('Product', back_populates='category')
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
        }
    
    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
