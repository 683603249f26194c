from .people import Client, StaffMember
from .catalog import PricelistCategory, PricelistItem
from .inventory import InventoryMovement
from .bookings import GameTable, Booking
from .orders import Order, OrderItem

__all__ = [
    'Client', 'StaffMember',
    'PricelistCategory', 'PricelistItem',
    'InventoryMovement',
    'GameTable', 'Booking',
    'Order', 'OrderItem',
]
