from .catalog import Category, Product
from .auth import User, SessionToken
from .sales import Transaction, TransactionDetail, Receipt, PAYMENT_METHODS
from .inventory import InventoryEntry, LEDGER_REASONS

__all__ = [
    'Category', 'Product',
    'User', 'SessionToken',
    'Transaction', 'TransactionDetail', 'Receipt', 'PAYMENT_METHODS',
    'InventoryEntry', 'LEDGER_REASONS',
]
