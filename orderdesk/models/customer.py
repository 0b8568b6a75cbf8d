"""Customer model."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Float, DateTime
from sqlalchemy.orm import relationship
from werkzeug.security import generate_password_hash, check_password_hash
from orderdesk.database import Base, IdType


class CustomerTier(str, enum.Enum):
    """Price tier; decides which product price applies to a customer's orders."""
    RETAILER = 'Retailer'
    WHOLESALER = 'Wholesaler'


class Customer(Base):
    """Customer (retailer or wholesaler)."""
    
    __tablename__ = 'customer'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(50), nullable=False)
    password_hash = Column(String(255), nullable=True)
    tier = Column(String(20), nullable=False, default=CustomerTier.RETAILER.value)
    city = Column(String(120), nullable=True)
    # Filled by the external geocoding service; never required here
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    profile_img = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now, onupdate=datetime.now)
    
    # Relationships
    orders = relationship('Order', back_populates='customer')
    order_requests = relationship('OrderRequest', back_populates='customer')
    
    def set_password(self, password):
        self.password_hash = generate_password_hash(password, method='scrypt')
    
    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)
    
    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'tier': self.tier,
            'city': self.city,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }
    
    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}', tier='{self.tier}')>"
