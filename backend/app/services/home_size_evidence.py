"""Completeness rules for home size evidence photos.

A submission must carry exactly one photo for every reported room:
bedrooms 1..beds and bathrooms 1..ceil(baths). A half bath is a room too.
"""

from __future__ import annotations

import math
from collections import Counter
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..core.config import settings
from ..models.home_size_dispute import RoomType
from ..schemas.home_size_dispute import EvidencePhotoIn
from ..utils.errors import ValidationError


def required_room_count(room_type: RoomType, beds: int, baths: Decimal | float | int) -> int:
    if room_type == RoomType.BEDROOM:
        return int(beds)
    return int(math.ceil(Decimal(str(baths))))


def is_accepted_image(payload: Optional[str], prefixes: Optional[Iterable[str]] = None) -> bool:
    if not payload or not isinstance(payload, str):
        return False
    prefixes = tuple(prefixes if prefixes is not None else settings.DISPUTE_ACCEPTED_IMAGE_PREFIXES)
    lowered = payload[:64].lower()
    for prefix in prefixes:
        if lowered.startswith(prefix.lower()) and len(payload) > len(prefix):
            return True
    return False


def _room_number(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def _room_of(idx: int, photo: EvidencePhotoIn) -> tuple[RoomType, int]:
    try:
        room_type = RoomType(photo.room_type)
    except (TypeError, ValueError):
        raise ValidationError(
            "Room type must be bedroom or bathroom.",
            {f"photos.{idx}.room_type": "invalid"},
        )
    room_number = _room_number(photo.room_number)
    if room_number is None or room_number < 1:
        raise ValidationError(
            "Room number must be a positive integer.",
            {f"photos.{idx}.room_number": "invalid"},
        )
    return room_type, room_number


def validate_evidence(photos: Sequence, reported_beds: int, reported_baths: Decimal | float | int) -> None:
    """Raise ValidationError unless ``photos`` cover each reported room exactly once.

    ``photos`` items are ``EvidencePhotoIn`` objects; anything else is rejected.
    """
    if not photos:
        raise ValidationError(
            "Photos are required to report a home size discrepancy.",
            {"photos": "required"},
        )

    rooms = []
    for idx, photo in enumerate(photos):
        if not isinstance(photo, EvidencePhotoIn):
            raise ValidationError(
                "Each photo must be an object with roomType, roomNumber and image.",
                {f"photos.{idx}": "invalid"},
            )
        if not is_accepted_image(photo.image):
            raise ValidationError(
                "Each photo must be an accepted image data URL.",
                {f"photos.{idx}.image": "invalid_image"},
            )
        rooms.append(_room_of(idx, photo))

    seen = Counter(rooms)
    duplicates = sorted(f"{rt.value}:{num}" for (rt, num), count in seen.items() if count > 1)
    if duplicates:
        raise ValidationError(
            "Only one photo is allowed per room.",
            {"photos": "duplicate:" + ",".join(duplicates)},
        )

    for room_type in RoomType:
        expected = required_room_count(room_type, reported_beds, reported_baths)
        numbers = {num for (rt, num) in seen if rt == room_type}
        wanted = set(range(1, expected + 1))
        missing = sorted(wanted - numbers)
        extra = sorted(numbers - wanted)
        if missing:
            raise ValidationError(
                f"You must provide a photo for each {room_type.value}. "
                f"Expected {expected} {room_type.value} photos, got {len(numbers & wanted)}.",
                {"photos": f"missing_{room_type.value}:" + ",".join(str(n) for n in missing)},
            )
        if extra:
            raise ValidationError(
                f"Photo room numbers exceed the reported {room_type.value} count.",
                {"photos": f"unexpected_{room_type.value}:" + ",".join(str(n) for n in extra)},
            )
