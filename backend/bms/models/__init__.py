from .tenancy import Company
from .auth import User, SessionToken
from .customers import Customer
from .catalog import Item
from .invoices import Invoice, InvoiceLine, InvoicePayment
from .receipts import SalesReceipt, SalesReceiptLine
from .expenses import Expense
from .communications import Notification
from .security import ActivityLog
from .documents import DocumentCounter

__all__ = [
    'Company',
    'User', 'SessionToken',
    'Customer',
    'Item',
    'Invoice', 'InvoiceLine', 'InvoicePayment',
    'SalesReceipt', 'SalesReceiptLine',
    'Expense',
    'Notification',
    'ActivityLog',
    'DocumentCounter',
]
