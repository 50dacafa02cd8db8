from .tenancy import Store
from .auth import User, SessionToken
from .catalog import Category, Brand, Unit, Product, BarcodeSequence
from .inventory import Inventory
from .documents import Purchase, PurchaseItem, Sale, SaleItem, DocumentSequence
from .suppliers import Supplier, SupplierLedger, SupplierPayment
from .customers import CustomerType, Customer, CustomerLedger, Payment
from .accounting import AccountGroup, Account, Transaction, TransactionGroup
from .expenses import ExpenseCategory, Expense

__all__ = [
    'Store',
    'User', 'SessionToken',
    'Category', 'Brand', 'Unit', 'Product', 'BarcodeSequence',
    'Inventory',
    'Purchase', 'PurchaseItem', 'Sale', 'SaleItem', 'DocumentSequence',
    'Supplier', 'SupplierLedger', 'SupplierPayment',
    'CustomerType', 'Customer', 'CustomerLedger', 'Payment',
    'AccountGroup', 'Account', 'Transaction', 'TransactionGroup',
    'ExpenseCategory', 'Expense',
]
