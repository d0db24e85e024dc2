from .auth import Role, User
from .inventory import Product
from .sales import Sale, SaleItem
from .expenses import Expense
from .documents import InvoiceSequence

__all__ = [
    'Role', 'User',
    'Product',
    'Sale', 'SaleItem',
    'Expense',
    'InvoiceSequence',
]
