from .user import User, ROLES
from .appointment import Appointment, STATUSES
from .outbox import OutboxMessage

__all__ = ["User", "ROLES", "Appointment", "STATUSES", "OutboxMessage"]
