from .booking_events import BookingCancelled as BookingCancelled
from .booking_events import BookingConfirmed as BookingConfirmed
