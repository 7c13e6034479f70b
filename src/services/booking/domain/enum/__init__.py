from .booking_status import CANCELLABLE_STATUSES as CANCELLABLE_STATUSES
from .booking_status import TERMINAL_STATUSES as TERMINAL_STATUSES
from .booking_status import BookingStatus as BookingStatus
