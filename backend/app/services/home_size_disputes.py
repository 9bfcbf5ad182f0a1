"""Home size dispute lifecycle.

pending_homeowner ──approve──▶ approved
        │ ──deny──▶ pending_owner ──approve──▶ owner_approved
        │                         ──deny─────▶ owner_denied
        └──window elapsed──▶ expired

Each transition is one conditional UPDATE guarded by the expected status, plus
its side effects, committed together. Validation and authorization happen
before anything is written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..crud import crud_home_size_dispute as crud
from ..models.home_size_dispute import DisputeStatus, RoomType
from ..models.user import User, UserType
from ..schemas.home_size_dispute import DisputeCreate, ResolverDecision
from ..utils.errors import (
    AuthorizationError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)
from ..utils.outbox import enqueue_outbox
from . import trust_ledger
from .home_size_evidence import validate_evidence
from .home_size_pricing import PricingPolicy, recalculate_price
from .pii_codec import PIICodec, encrypt_optional

logger = logging.getLogger(__name__)

_D = models.HomeSizeDisputeRequest

TOPIC_PREFIX = "home_size_dispute"


def response_window() -> timedelta:
    return timedelta(hours=settings.DISPUTE_RESPONSE_WINDOW_HOURS)


class ClaimSnapshot(NamedTuple):
    id: int
    appointment_id: int
    home_id: int
    cleaner_id: int
    homeowner_id: int
    original_beds: int
    original_baths: Decimal
    reported_beds: int
    reported_baths: Decimal
    recalculated_price: Decimal
    price_delta: Decimal


def _claim_snapshot(db: Session, dispute_id: int) -> ClaimSnapshot:
    row = db.execute(
        select(
            _D.id,
            _D.appointment_id,
            _D.home_id,
            _D.cleaner_id,
            _D.homeowner_id,
            _D.original_beds,
            _D.original_baths,
            _D.reported_beds,
            _D.reported_baths,
            _D.recalculated_price,
            _D.price_delta,
        ).where(_D.id == dispute_id)
    ).one()
    return ClaimSnapshot(*row)


def _emit(db: Session, event: str, claim: ClaimSnapshot, status: DisputeStatus, actor_id: Optional[int]) -> None:
    enqueue_outbox(
        db,
        f"{TOPIC_PREFIX}.{event}",
        {
            "dispute_id": claim.id,
            "appointment_id": claim.appointment_id,
            "home_id": claim.home_id,
            "cleaner_id": claim.cleaner_id,
            "homeowner_id": claim.homeowner_id,
            "status": status.value,
            "price_delta": claim.price_delta,
            "actor_id": actor_id,
        },
    )


def _sizes_equal(beds_a: int, baths_a, beds_b: int, baths_b) -> bool:
    return int(beds_a) == int(beds_b) and Decimal(str(baths_a)) == Decimal(str(baths_b))


# ─── create ────────────────────────────────────────────────────────────────────


def create_dispute(
    db: Session,
    *,
    cleaner: User,
    claim: DisputeCreate,
    codec: PIICodec,
    now: Optional[datetime] = None,
) -> int:
    """Persist a new dispute and its evidence; return the dispute id."""
    now = now or datetime.utcnow()
    if UserType(cleaner.user_type) != UserType.CLEANER:
        raise AuthorizationError("Only cleaners can report a home size discrepancy.")

    appointment = db.get(models.Appointment, claim.appointment_id)
    # Same answer for a missing appointment and someone else's job
    if appointment is None or not appointment.has_cleaner(cleaner.id):
        raise AuthorizationError("You are not assigned to this appointment.")

    home = db.get(models.Home, appointment.home_id)
    if home is None:
        raise NotFoundError("Home not found.", {"home_id": "not_found"})

    if _sizes_equal(claim.reported_beds, claim.reported_baths, home.num_beds, home.num_baths):
        raise ValidationError(
            "Reported size matches the home on record.",
            {"reported_beds": "unchanged", "reported_baths": "unchanged"},
        )

    validate_evidence(claim.photos, claim.reported_beds, claim.reported_baths)

    if crud.open_dispute_exists(db, appointment.id):
        raise ValidationError(
            "An adjustment request already exists for this appointment.",
            {"appointment_id": "dispute_exists"},
        )

    recalculated_price, price_delta = recalculate_price(
        home.num_beds,
        home.num_baths,
        appointment.price,
        claim.reported_beds,
        claim.reported_baths,
        PricingPolicy.from_settings(),
    )
    # Codec failures propagate here, before the row exists
    cleaner_note = encrypt_optional(codec, claim.cleaner_note)

    dispute = models.HomeSizeDisputeRequest(
        appointment_id=appointment.id,
        home_id=home.id,
        cleaner_id=cleaner.id,
        homeowner_id=appointment.homeowner_id,
        original_beds=home.num_beds,
        original_baths=home.num_baths,
        original_price=appointment.price,
        reported_beds=claim.reported_beds,
        reported_baths=claim.reported_baths,
        recalculated_price=recalculated_price,
        price_delta=price_delta,
        cleaner_note=cleaner_note,
        status=DisputeStatus.PENDING_HOMEOWNER,
        expires_at=now + response_window(),
        created_at=now,
        updated_at=now,
    )
    dispute.photos = [
        models.HomeSizeEvidencePhoto(
            room_type=RoomType(photo.room_type),
            room_number=int(photo.room_number),
            image_blob=photo.image,
            created_at=now,
        )
        for photo in claim.photos
    ]
    try:
        db.add(dispute)
        db.flush()
        _emit(db, "created", _claim_snapshot(db, dispute.id), DisputeStatus.PENDING_HOMEOWNER, cleaner.id)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Dispute insert rejected for appointment %s: %s", appointment.id, exc)
        raise ValidationError(
            "An adjustment request already exists for this appointment.",
            {"appointment_id": "dispute_exists"},
        ) from exc
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Home size dispute %s created appointment=%s cleaner=%s photos=%d delta=%s",
        dispute.id,
        appointment.id,
        cleaner.id,
        len(claim.photos),
        price_delta,
    )
    return dispute.id


# ─── shared outcome ────────────────────────────────────────────────────────────


def _apply_reported_size(db: Session, claim: ClaimSnapshot, now: datetime) -> int:
    """Price the disputed appointment at the locked price and resize the home.

    Other upcoming, incomplete appointments for the same home are repriced
    against the new size. Returns how many of those were repriced.
    """
    db.execute(
        update(models.Appointment)
        .where(models.Appointment.id == claim.appointment_id)
        .values(price=claim.recalculated_price, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.execute(
        update(models.Home)
        .where(models.Home.id == claim.home_id)
        .values(num_beds=claim.reported_beds, num_baths=claim.reported_baths, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    policy = PricingPolicy.from_settings()
    upcoming = db.execute(
        select(models.Appointment.id, models.Appointment.price).where(
            models.Appointment.home_id == claim.home_id,
            models.Appointment.id != claim.appointment_id,
            models.Appointment.completed.is_(False),
            models.Appointment.date >= now.date(),
        )
    ).all()
    for appt_id, price in upcoming:
        new_price, _ = recalculate_price(
            claim.original_beds,
            claim.original_baths,
            price,
            claim.reported_beds,
            claim.reported_baths,
            policy,
        )
        db.execute(
            update(models.Appointment)
            .where(models.Appointment.id == appt_id)
            .values(price=new_price, updated_at=now)
            .execution_options(synchronize_session=False)
        )
    if upcoming:
        logger.info(
            "Repriced %d upcoming appointments for home %s after dispute %s",
            len(upcoming),
            claim.home_id,
            claim.id,
        )
    return len(upcoming)


def _stale(db: Session, dispute_id: int, exc: StaleStateError) -> StaleStateError:
    db.rollback()
    current = crud.get_status(db, dispute_id)
    logger.warning("Stale transition on dispute %s (current=%s)", dispute_id, current)
    if current == DisputeStatus.PENDING_HOMEOWNER:
        # Status still open: the response window must have closed
        return StaleStateError(
            "The response window for this dispute has closed.",
            {"status": "expired"},
        )
    if current is not None:
        return StaleStateError(
            "This request has already been processed.",
            {"status": current.value},
        )
    return exc


# ─── homeowner response ────────────────────────────────────────────────────────


def homeowner_respond(
    db: Session,
    *,
    dispute_id: int,
    homeowner: User,
    approve: bool,
    response_text: Optional[str],
    codec: PIICodec,
    now: Optional[datetime] = None,
) -> DisputeStatus:
    now = now or datetime.utcnow()
    parties = crud.get_parties(db, dispute_id)
    if parties is None or parties.homeowner_id != homeowner.id:
        raise AuthorizationError("You are not authorized to respond to this request.")

    # Close the window first if it has lapsed so the stored status is truthful
    expire_stale(db, now=now, dispute_ids=[dispute_id])

    window_open = _D.expires_at > now
    if approve:
        new_status = DisputeStatus.APPROVED
        values = {"homeowner_responded_at": now}
    else:
        new_status = DisputeStatus.PENDING_OWNER
        values = {
            "homeowner_responded_at": now,
            "homeowner_response_text": encrypt_optional(codec, response_text),
        }

    try:
        crud.transition(
            db,
            dispute_id,
            DisputeStatus.PENDING_HOMEOWNER,
            new_status,
            values,
            guards=[window_open],
            now=now,
        )
    except StaleStateError as exc:
        raise _stale(db, dispute_id, exc) from exc

    try:
        claim = _claim_snapshot(db, dispute_id)
        if approve:
            _apply_reported_size(db, claim, now)
            _emit(db, "approved", claim, new_status, homeowner.id)
        else:
            _emit(db, "escalated", claim, new_status, homeowner.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Home size dispute %s %s -> %s by homeowner %s",
        dispute_id,
        DisputeStatus.PENDING_HOMEOWNER.value,
        new_status.value,
        homeowner.id,
    )
    return new_status


# ─── resolver decision ─────────────────────────────────────────────────────────


def owner_resolve(
    db: Session,
    *,
    dispute_id: int,
    resolver: User,
    decision: ResolverDecision,
    note: Optional[str],
    codec: PIICodec,
    now: Optional[datetime] = None,
) -> DisputeStatus:
    now = now or datetime.utcnow()
    if not UserType(resolver.user_type).is_resolver:
        raise AuthorizationError("Owner or HR access required.")
    if crud.get_parties(db, dispute_id) is None:
        raise NotFoundError("Request not found.", {"dispute_id": "not_found"})

    decision = ResolverDecision(decision)
    new_status = (
        DisputeStatus.OWNER_APPROVED
        if decision == ResolverDecision.APPROVE
        else DisputeStatus.OWNER_DENIED
    )
    values = {
        "resolver_id": resolver.id,
        "resolver_note": encrypt_optional(codec, note),
        "resolved_at": now,
    }

    try:
        crud.transition(db, dispute_id, DisputeStatus.PENDING_OWNER, new_status, values, now=now)
    except StaleStateError as exc:
        db.rollback()
        current = crud.get_status(db, dispute_id)
        logger.warning("Stale resolve on dispute %s (current=%s)", dispute_id, current)
        raise StaleStateError(
            "This request is not awaiting owner review.",
            {"status": current.value if current else "unknown"},
        ) from exc

    try:
        claim = _claim_snapshot(db, dispute_id)
        if new_status == DisputeStatus.OWNER_APPROVED:
            _apply_reported_size(db, claim, now)
            trust_ledger.record_false_home_size(db, dispute=claim, resolver=resolver, now=now)
        else:
            trust_ledger.record_false_claim(db, dispute=claim, resolver=resolver, now=now)
        _emit(db, new_status.value, claim, new_status, resolver.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Home size dispute %s %s -> %s by %s %s",
        dispute_id,
        DisputeStatus.PENDING_OWNER.value,
        new_status.value,
        UserType(resolver.user_type).value,
        resolver.id,
    )
    return new_status


# ─── expiry ────────────────────────────────────────────────────────────────────


def expire_stale(
    db: Session,
    *,
    now: Optional[datetime] = None,
    dispute_ids: Optional[Iterable[int]] = None,
) -> List[int]:
    """Move lapsed pending_homeowner disputes to expired; return their ids.

    Expiry is neutral: no price change and no trust-counter change. Each row is
    guarded individually, so a homeowner response racing the sweep wins or
    loses cleanly.
    """
    now = now or datetime.utcnow()
    expired: List[int] = []
    for dispute_id in crud.expirable_ids(db, now, dispute_ids):
        try:
            crud.transition(
                db,
                dispute_id,
                DisputeStatus.PENDING_HOMEOWNER,
                DisputeStatus.EXPIRED,
                guards=[_D.expires_at <= now],
                now=now,
            )
            _emit(db, "expired", _claim_snapshot(db, dispute_id), DisputeStatus.EXPIRED, None)
            db.commit()
        except StaleStateError:
            db.rollback()
            continue
        expired.append(dispute_id)
        logger.info(
            "Home size dispute %s %s -> %s (window elapsed)",
            dispute_id,
            DisputeStatus.PENDING_HOMEOWNER.value,
            DisputeStatus.EXPIRED.value,
        )
    return expired
