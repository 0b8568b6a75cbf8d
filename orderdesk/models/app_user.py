"""AppUser model - staff members operating the back office."""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from werkzeug.security import generate_password_hash, check_password_hash
from orderdesk.database import Base, IdType


class AppUser(Base):
    """Staff user (admin, sales, inventory manager)."""
    
    __tablename__ = 'app_user'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(200), nullable=True)
    role = Column(String(30), nullable=False, default='Admin')  # Admin, Sales, InventoryManager
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    
    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')
    
    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)
    
    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
        }
    
    def __repr__(self):
        return f"<AppUser(id={self.id}, email='{self.email}')>"
