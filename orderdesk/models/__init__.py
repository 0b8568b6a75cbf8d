"""Models package - exports all SQLAlchemy models."""
from orderdesk.models.app_user import AppUser

# Catalog and customers
from orderdesk.models.category import Category
from orderdesk.models.product import Product, ProductUnit
from orderdesk.models.customer import Customer, CustomerTier

# Orders
from orderdesk.models.order import (
    Order, OrderStatusHistory, OrderStatus, PaymentStatus, TERMINAL_ORDER_STATUSES
)
from orderdesk.models.order_item import OrderItem
from orderdesk.models.order_request import OrderRequest, OrderRequestItem, OrderRequestStatus

# Inventory and finance
from orderdesk.models.stock_history import StockHistory, StockAction, StockSource
from orderdesk.models.expense import Expense, ExpenseCategory

__all__ = [
    'AppUser',
    'Category', 'Product', 'ProductUnit', 'Customer', 'CustomerTier',
    'Order', 'OrderStatusHistory', 'OrderStatus', 'PaymentStatus', 'TERMINAL_ORDER_STATUSES',
    'OrderItem', 'OrderRequest', 'OrderRequestItem', 'OrderRequestStatus',
    'StockHistory', 'StockAction', 'StockSource',
    'Expense', 'ExpenseCategory',
]
