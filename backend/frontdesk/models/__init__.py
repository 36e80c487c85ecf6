# Ontology Models
from frontdesk.models.ontology import (
    Hotel, RoomType, RoomTypePrice, Room, RoomStatusLog, Guest,
    Booking, BookingRoomType, BookingRoom, BookingGuest, CallLog,
    SurchargeRule, Promotion, Order, OrderItem, Invoice, InvoiceLine,
    User, UserPropertyRole
)

__all__ = [
    'Hotel', 'RoomType', 'RoomTypePrice', 'Room', 'RoomStatusLog', 'Guest',
    'Booking', 'BookingRoomType', 'BookingRoom', 'BookingGuest', 'CallLog',
    'SurchargeRule', 'Promotion', 'Order', 'OrderItem', 'Invoice', 'InvoiceLine',
    'User', 'UserPropertyRole'
]
