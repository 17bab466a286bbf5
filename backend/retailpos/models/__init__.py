from .catalog import Category, Product, Customer, CustomerCreditEntry
from .documents import Document, DocumentLine, DocumentPayment, DocumentSequence
from .returns import Return, ReturnLine
from .registers import Shift

__all__ = [
    'Category', 'Product', 'Customer', 'CustomerCreditEntry',
    'Document', 'DocumentLine', 'DocumentPayment', 'DocumentSequence',
    'Return', 'ReturnLine',
    'Shift',
]
