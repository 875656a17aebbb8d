from .inventory import Item, ItemStatusHistory
from .customers import Customer
from .sales import Sale, SaleLine
from .documents import Purchase, PurchaseLine, ConditionalLoan, ConditionalLine, WriteOff

__all__ = [
    'Item', 'ItemStatusHistory',
    'Customer',
    'Sale', 'SaleLine',
    'Purchase', 'PurchaseLine',
    'ConditionalLoan', 'ConditionalLine',
    'WriteOff',
]
