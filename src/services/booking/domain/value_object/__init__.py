from .booking_id import BookingId as BookingId
from .scheduled_window import ScheduledWindow as ScheduledWindow
