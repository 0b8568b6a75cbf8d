"""Expense model."""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from orderdesk.database import Base, IdType


class ExpenseCategory(str, enum.Enum):
    WORKER = 'Worker'
    RAW_MATERIAL = 'RawMaterial'
    DAILY = 'Daily'
    TRANSPORT = 'Transport'


class Expense(Base):
    """Business expense, read by analytics for profit figures."""
    
    __tablename__ = 'expense'
    
    id = Column(IdType, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    category = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    note = Column(Text, nullable=True)
    expense_date = Column(DateTime(timezone=True), nullable=False, default=datetime.now, index=True)
    added_by_id = Column(IdType, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.now)
    
    added_by = relationship('AppUser')
    
    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'category': self.category,
            'amount': float(self.amount),
            'note': self.note,
            'expense_date': self.expense_date.isoformat() if self.expense_date else None,
            'added_by_id': self.added_by_id,
        }
    
    def __repr__(self):
        return f"<Expense(id={self.id}, title='{self.title}', amount={self.amount})>"
