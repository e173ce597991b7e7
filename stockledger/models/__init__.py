"""Models package - exports all SQLAlchemy models."""
# Reference data
from stockledger.models.product import Product
from stockledger.models.customer import Customer
from stockledger.models.supplier import Supplier
from stockledger.models.cash_account import CashAccount

# Logs
from stockledger.models.stock_movement import StockMovement, MovementKind, DocumentType
from stockledger.models.ledger_entry import LedgerEntry, PartyType
from stockledger.models.cash_posting import CashPosting

# Documents
from stockledger.models.sale import Sale, DocumentStatus, PaymentMode
from stockledger.models.sale_line import SaleLine
from stockledger.models.purchase import Purchase
from stockledger.models.purchase_line import PurchaseLine
from stockledger.models.expense import Expense
from stockledger.models.cash_transfer import CashTransfer
from stockledger.models.held_sale import HeldSale
from stockledger.models.held_sale_line import HeldSaleLine
from stockledger.models.invoice_sequence import InvoiceSequence

__all__ = [
    'Product', 'Customer', 'Supplier', 'CashAccount',
    'StockMovement', 'MovementKind', 'DocumentType',
    'LedgerEntry', 'PartyType', 'CashPosting',
    'Sale', 'DocumentStatus', 'PaymentMode', 'SaleLine',
    'Purchase', 'PurchaseLine', 'Expense', 'CashTransfer',
    'HeldSale', 'HeldSaleLine', 'InvoiceSequence',
]
