"""Plain dispute aggregate built from persisted-row shapes.

``aggregate_from_row`` is the only way a dispute read reaches the projector.
It accepts any mapping (a SQLAlchemy row mapping or a dict built in a test)
and copies values out, so nothing downstream can lazy-load a column that the
query plan did not select.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional, Sequence, Tuple

from ..models.home_size_dispute import DisputeStatus

HOME_PREFIX = "home__"
CLEANER_PREFIX = "cleaner__"
HOMEOWNER_PREFIX = "homeowner__"


def case_number(dispute_id: int) -> str:
    return f"ADJ-{int(dispute_id):06d}"


@dataclass(frozen=True)
class PartyRecord:
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    false_claim_count: Optional[int] = None
    false_home_size_count: Optional[int] = None


@dataclass(frozen=True)
class HomeRecord:
    id: int
    address: Optional[str] = None
    nickname: Optional[str] = None


@dataclass(frozen=True)
class EvidencePhotoRecord:
    id: int
    room_type: str
    room_number: int
    image_blob: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class DisputeAggregate:
    id: int
    appointment_id: int
    home_id: int
    cleaner_id: int
    homeowner_id: int
    status: DisputeStatus
    original_beds: int
    original_baths: Decimal
    original_price: Decimal
    reported_beds: int
    reported_baths: Decimal
    recalculated_price: Decimal
    price_delta: Decimal
    expires_at: datetime
    cleaner_note: Optional[str] = None
    homeowner_response_text: Optional[str] = None
    resolver_note: Optional[str] = None
    resolver_id: Optional[int] = None
    homeowner_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    home: Optional[HomeRecord] = None
    cleaner: Optional[PartyRecord] = None
    homeowner: Optional[PartyRecord] = None
    # None means evidence was not part of the fetch
    photos: Optional[Tuple[EvidencePhotoRecord, ...]] = None

    @property
    def case_number(self) -> str:
        return case_number(self.id)


def _prefixed(row: Mapping[str, Any], prefix: str) -> dict[str, Any]:
    return {key[len(prefix):]: value for key, value in row.items() if key.startswith(prefix)}


def _party(values: dict[str, Any]) -> Optional[PartyRecord]:
    if values.get("id") is None:
        return None
    return PartyRecord(**values)


def _decimal(value: Any) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def photo_from_row(row: Mapping[str, Any]) -> EvidencePhotoRecord:
    room_type = row["room_type"]
    return EvidencePhotoRecord(
        id=row["id"],
        room_type=getattr(room_type, "value", room_type),
        room_number=int(row["room_number"]),
        image_blob=row["image_blob"],
        created_at=row.get("created_at"),
    )


def aggregate_from_row(
    row: Mapping[str, Any],
    photos: Optional[Sequence[Mapping[str, Any]]] = None,
) -> DisputeAggregate:
    """Map a flat row (dispute columns plus prefixed home/party columns)."""
    row = dict(row)
    home_values = _prefixed(row, HOME_PREFIX)
    cleaner_values = _prefixed(row, CLEANER_PREFIX)
    homeowner_values = _prefixed(row, HOMEOWNER_PREFIX)
    return DisputeAggregate(
        id=row["id"],
        appointment_id=row["appointment_id"],
        home_id=row["home_id"],
        cleaner_id=row["cleaner_id"],
        homeowner_id=row["homeowner_id"],
        status=DisputeStatus(row["status"]),
        original_beds=int(row["original_beds"]),
        original_baths=_decimal(row["original_baths"]),
        original_price=_decimal(row["original_price"]),
        reported_beds=int(row["reported_beds"]),
        reported_baths=_decimal(row["reported_baths"]),
        recalculated_price=_decimal(row["recalculated_price"]),
        price_delta=_decimal(row["price_delta"]),
        expires_at=row["expires_at"],
        cleaner_note=row.get("cleaner_note"),
        homeowner_response_text=row.get("homeowner_response_text"),
        resolver_note=row.get("resolver_note"),
        resolver_id=row.get("resolver_id"),
        homeowner_responded_at=row.get("homeowner_responded_at"),
        resolved_at=row.get("resolved_at"),
        created_at=row.get("created_at"),
        home=HomeRecord(**home_values) if home_values.get("id") is not None else None,
        cleaner=_party(cleaner_values),
        homeowner=_party(homeowner_values),
        photos=tuple(photo_from_row(p) for p in photos) if photos is not None else None,
    )
