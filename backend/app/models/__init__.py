from .user import User, UserType
from .home import Home
from .appointment import Appointment
from .home_size_dispute import (
    HomeSizeDisputeRequest,
    HomeSizeEvidencePhoto,
    DisputeStatus,
    RoomType,
    ALLOWED_TRANSITIONS,
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    STATUS_RANK,
)
from .outbox_event import OutboxEvent

__all__ = [
    "User",
    "UserType",
    "Home",
    "Appointment",
    "HomeSizeDisputeRequest",
    "HomeSizeEvidencePhoto",
    "DisputeStatus",
    "RoomType",
    "ALLOWED_TRANSITIONS",
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    "STATUS_RANK",
    "OutboxEvent",
]
