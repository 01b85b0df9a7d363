from .catalog import Item, StockMovement
from .sales import Invoice, InvoiceLine, ImmutableRecordError
from .returns import Return, ReturnLine
from .cashbank import CashBankAccount, CashBankTransaction
from .documents import DocumentSequence

__all__ = [
    'Item', 'StockMovement',
    'Invoice', 'InvoiceLine', 'ImmutableRecordError',
    'Return', 'ReturnLine',
    'CashBankAccount', 'CashBankTransaction',
    'DocumentSequence',
]
