# Business Services
from frontdesk.services.room_service import RoomService
from frontdesk.services.booking_service import BookingService
from frontdesk.services.checkin_service import CheckInService
from frontdesk.services.checkout_service import CheckOutService
from frontdesk.services.sweep_service import SweepService
from frontdesk.services.order_service import OrderService
from frontdesk.services.invoice_service import InvoiceService
from frontdesk.services.report_service import ReportService
from frontdesk.services.user_service import UserService

__all__ = [
    'RoomService', 'BookingService', 'CheckInService',
    'CheckOutService', 'SweepService', 'OrderService',
    'InvoiceService', 'ReportService', 'UserService'
]
