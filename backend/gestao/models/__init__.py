from .auth import User, SessionToken
from .catalog import Category, Product
from .customers import Customer
from .expenses import Expense, RECURRENCE_PERIODS
from .sales import Sale, SaleItem, PAYMENT_METHODS

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'Customer',
    'Expense', 'RECURRENCE_PERIODS',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
]
