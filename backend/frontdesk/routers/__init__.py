# API Routers
from frontdesk.routers import auth, rooms, bookings, invoices, orders, users

__all__ = ['auth', 'rooms', 'bookings', 'invoices', 'orders', 'users']
