from .tenancy import Tenant
from .auth import User, SessionToken
from .security import SecurityEvent
from .documents import DocumentSequence
from .inventory import Product, StockHistory
from .customers import Customer
from .sales import Transaction, TransactionItem, DebtPayment
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .returns import Return, ReturnItem
from .expenses import ExpenseCategory, Expense, ExpenseAudit

__all__ = [
    'Tenant',
    'User', 'SessionToken', 'SecurityEvent',
    'DocumentSequence',
    'Product', 'StockHistory',
    'Customer',
    'Transaction', 'TransactionItem', 'DebtPayment',
    'PurchaseOrder', 'PurchaseOrderItem',
    'Return', 'ReturnItem',
    'ExpenseCategory', 'Expense', 'ExpenseAudit',
]
