from .auth import User, UserRole, SessionToken
from .security import SecurityEvent
from .catalog import Product, Customer, Supplier
from .inventory import StockMovement
from .documents import DocumentSequence
from .sales import Sale, SaleItem, PAYMENT_METHODS
from .finance import FinancialMovement, AccountReceivable
from .fiscal import Invoice, InvoiceCorrection, INVOICE_STATUSES
from .settings import CompanySettings, COMPANY_FIELDS

__all__ = [
    'User', 'UserRole', 'SessionToken', 'SecurityEvent',
    'Product', 'Customer', 'Supplier',
    'StockMovement', 'DocumentSequence',
    'Sale', 'SaleItem', 'PAYMENT_METHODS',
    'FinancialMovement', 'AccountReceivable',
    'Invoice', 'InvoiceCorrection', 'INVOICE_STATUSES',
    'CompanySettings', 'COMPANY_FIELDS',
]
