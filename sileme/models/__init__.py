from .user import User, EmergencyContact
from .checkin import CheckIn, Mood
from .notification import Notification, NotificationType, NotificationCategory, Channel

__all__ = [
    "User",
    "EmergencyContact",
    "CheckIn",
    "Mood",
    "Notification",
    "NotificationType",
    "NotificationCategory",
    "Channel",
]
