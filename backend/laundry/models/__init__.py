from .branches import Branch, OrderSequence
from .customers import Customer, LoyaltyHistory
from .orders import Order
from .payments import Payment
from .delivery import DeliveryOrder, DriverLocation
from .notifications import Notification

__all__ = [
    'Branch', 'OrderSequence',
    'Customer', 'LoyaltyHistory',
    'Order',
    'Payment',
    'DeliveryOrder', 'DriverLocation',
    'Notification',
]
