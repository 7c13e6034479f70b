from .entity import Booking as Booking
from .enum import BookingStatus as BookingStatus
from .event import BookingCancelled as BookingCancelled
from .event import BookingConfirmed as BookingConfirmed
from .repository import BookingRepository as BookingRepository
from .value_object import BookingId as BookingId
from .value_object import ScheduledWindow as ScheduledWindow
