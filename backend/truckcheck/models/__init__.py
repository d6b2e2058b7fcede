from .checkouts import Checkout, CheckoutItem, CheckoutInvoice
from .inventory import InventoryItem, StockMovement
from .aliases import ItemNameMapping, ItemNameAlias
from .audit import CheckoutEvent

__all__ = [
    'Checkout', 'CheckoutItem', 'CheckoutInvoice',
    'InventoryItem', 'StockMovement',
    'ItemNameMapping', 'ItemNameAlias',
    'CheckoutEvent',
]
