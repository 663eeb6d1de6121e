# Import all models for easier access
from .booking import Booking  # noqa: F401
from .event import Event  # noqa: F401
from .user import User, UserRole  # noqa: F401
