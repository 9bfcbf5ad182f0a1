import enum
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    Enum as SQLAlchemyEnum,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import BaseModel


class DisputeStatus(str, enum.Enum):
    PENDING_HOMEOWNER = "pending_homeowner"
    APPROVED = "approved"
    PENDING_OWNER = "pending_owner"
    OWNER_APPROVED = "owner_approved"
    OWNER_DENIED = "owner_denied"
    EXPIRED = "expired"


OPEN_STATUSES = frozenset({DisputeStatus.PENDING_HOMEOWNER, DisputeStatus.PENDING_OWNER})

TERMINAL_STATUSES = frozenset(
    {
        DisputeStatus.APPROVED,
        DisputeStatus.OWNER_APPROVED,
        DisputeStatus.OWNER_DENIED,
        DisputeStatus.EXPIRED,
    }
)

# Every legal edge of the lifecycle. Anything not listed here is rejected.
ALLOWED_TRANSITIONS: dict[DisputeStatus, frozenset[DisputeStatus]] = {
    DisputeStatus.PENDING_HOMEOWNER: frozenset(
        {DisputeStatus.APPROVED, DisputeStatus.PENDING_OWNER, DisputeStatus.EXPIRED}
    ),
    DisputeStatus.PENDING_OWNER: frozenset(
        {DisputeStatus.OWNER_APPROVED, DisputeStatus.OWNER_DENIED}
    ),
}

# Position in the lattice: pending_homeowner < {approved, pending_owner} < rest
STATUS_RANK: dict[DisputeStatus, int] = {
    DisputeStatus.PENDING_HOMEOWNER: 0,
    DisputeStatus.APPROVED: 1,
    DisputeStatus.PENDING_OWNER: 1,
    DisputeStatus.OWNER_APPROVED: 2,
    DisputeStatus.OWNER_DENIED: 2,
    DisputeStatus.EXPIRED: 2,
}


class RoomType(str, enum.Enum):
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"


class HomeSizeDisputeRequest(BaseModel):
    __tablename__ = "home_size_dispute_requests"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    home_id = Column(Integer, ForeignKey("homes.id"), nullable=False, index=True)
    cleaner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    homeowner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    resolver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    original_beds = Column(Integer, nullable=False)
    original_baths = Column(Numeric(3, 1), nullable=False)
    original_price = Column(Numeric(10, 2), nullable=False)
    reported_beds = Column(Integer, nullable=False)
    reported_baths = Column(Numeric(3, 1), nullable=False)
    # Locked at creation; never recomputed
    recalculated_price = Column(Numeric(10, 2), nullable=False)
    price_delta = Column(Numeric(10, 2), nullable=False)

    # Narrative fields hold PII codec ciphertext
    cleaner_note = Column(Text, nullable=True)
    homeowner_response_text = Column(Text, nullable=True)
    resolver_note = Column(Text, nullable=True)

    # Persist lowercase values to match the enum definition
    status = Column(
        SQLAlchemyEnum(
            DisputeStatus,
            name="homesizedisputestatus",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=DisputeStatus.PENDING_HOMEOWNER,
    )
    expires_at = Column(DateTime, nullable=False)
    homeowner_responded_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    photos = relationship(
        "HomeSizeEvidencePhoto",
        back_populates="dispute_request",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="HomeSizeEvidencePhoto.id",
    )


Index(
    "ix_home_size_disputes_status_expires",
    HomeSizeDisputeRequest.status,
    HomeSizeDisputeRequest.expires_at,
)

# At most one open dispute per appointment
_OPEN_ONLY = "status IN ('pending_homeowner', 'pending_owner')"
Index(
    "uq_home_size_disputes_open_appointment",
    HomeSizeDisputeRequest.appointment_id,
    unique=True,
    sqlite_where=text(_OPEN_ONLY),
    postgresql_where=text(_OPEN_ONLY),
)


class HomeSizeEvidencePhoto(BaseModel):
    __tablename__ = "home_size_evidence_photos"

    id = Column(Integer, primary_key=True, index=True)
    dispute_request_id = Column(
        Integer,
        ForeignKey("home_size_dispute_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_type = Column(
        SQLAlchemyEnum(
            RoomType,
            name="homesizeroomtype",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
    )
    room_number = Column(Integer, nullable=False)
    # Image data URL as submitted (e.g. "data:image/jpeg;base64,...")
    image_blob = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    dispute_request = relationship("HomeSizeDisputeRequest", back_populates="photos")
