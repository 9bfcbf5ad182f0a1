from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, NamedTuple, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, aliased

from .. import models
from ..models.home_size_dispute import ALLOWED_TRANSITIONS, DisputeStatus
from ..services.dispute_access import QueryPlan
from ..services.dispute_aggregate import (
    CLEANER_PREFIX,
    HOME_PREFIX,
    HOMEOWNER_PREFIX,
    DisputeAggregate,
    aggregate_from_row,
)
from ..utils.errors import StaleStateError

_D = models.HomeSizeDisputeRequest


class DisputeParties(NamedTuple):
    id: int
    appointment_id: int
    home_id: int
    cleaner_id: int
    homeowner_id: int
    status: DisputeStatus


def get_parties(db: Session, dispute_id: int) -> Optional[DisputeParties]:
    """Identify who may see a dispute without touching any role-gated column."""
    row = db.execute(
        select(
            _D.id,
            _D.appointment_id,
            _D.home_id,
            _D.cleaner_id,
            _D.homeowner_id,
            _D.status,
        ).where(_D.id == dispute_id)
    ).first()
    if row is None:
        return None
    return DisputeParties(*row)


def fetch_disputes(
    db: Session,
    plan: QueryPlan,
    *conditions: Any,
    limit: Optional[int] = None,
) -> List[DisputeAggregate]:
    """Load disputes selecting exactly the columns ``plan`` allows.

    Evidence photos are queried only when the plan includes them.
    """
    home = aliased(models.Home)
    cleaner = aliased(models.User)
    homeowner = aliased(models.User)

    columns = [getattr(_D, name).label(name) for name in plan.dispute_columns]
    columns += [getattr(home, name).label(HOME_PREFIX + name) for name in plan.home_columns]
    columns += [getattr(cleaner, name).label(CLEANER_PREFIX + name) for name in plan.cleaner_columns]
    columns += [getattr(homeowner, name).label(HOMEOWNER_PREFIX + name) for name in plan.homeowner_columns]

    stmt = select(*columns).select_from(_D)
    if plan.home_columns:
        stmt = stmt.outerjoin(home, home.id == _D.home_id)
    if plan.cleaner_columns:
        stmt = stmt.outerjoin(cleaner, cleaner.id == _D.cleaner_id)
    if plan.homeowner_columns:
        stmt = stmt.outerjoin(homeowner, homeowner.id == _D.homeowner_id)
    stmt = stmt.where(*conditions).order_by(_D.created_at.desc(), _D.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)

    rows = db.execute(stmt).mappings().all()
    if not plan.include_photos:
        return [aggregate_from_row(row) for row in rows]

    photos_by_dispute: dict[int, list] = {row["id"]: [] for row in rows}
    if photos_by_dispute:
        photo = models.HomeSizeEvidencePhoto
        photo_rows = db.execute(
            select(
                photo.id,
                photo.dispute_request_id,
                photo.room_type,
                photo.room_number,
                photo.image_blob,
                photo.created_at,
            )
            .where(photo.dispute_request_id.in_(list(photos_by_dispute)))
            .order_by(photo.room_type, photo.room_number, photo.id)
        ).mappings().all()
        for photo_row in photo_rows:
            photos_by_dispute[photo_row["dispute_request_id"]].append(photo_row)
    return [aggregate_from_row(row, photos_by_dispute[row["id"]]) for row in rows]


def get_status(db: Session, dispute_id: int) -> Optional[DisputeStatus]:
    value = db.execute(select(_D.status).where(_D.id == dispute_id)).scalar_one_or_none()
    return DisputeStatus(value) if value is not None else None


def open_dispute_exists(db: Session, appointment_id: int) -> bool:
    row = db.execute(
        select(_D.id)
        .where(
            _D.appointment_id == appointment_id,
            _D.status.in_([DisputeStatus.PENDING_HOMEOWNER, DisputeStatus.PENDING_OWNER]),
        )
        .limit(1)
    ).first()
    return row is not None


def transition(
    db: Session,
    dispute_id: int,
    expected: DisputeStatus,
    new: DisputeStatus,
    values: Optional[dict] = None,
    guards: Iterable[Any] = (),
    now: Optional[datetime] = None,
) -> None:
    """Atomically move a dispute from ``expected`` to ``new``.

    The status check is part of the UPDATE itself, so of two racing callers
    at most one sees its row updated; the other gets StaleStateError.
    """
    if new not in ALLOWED_TRANSITIONS.get(expected, frozenset()):
        raise StaleStateError(
            f"Illegal transition {expected.value} -> {new.value}.",
            {"status": expected.value},
        )
    stmt = (
        update(_D)
        .where(_D.id == dispute_id, _D.status == expected, *guards)
        .values(status=new, updated_at=now or datetime.utcnow(), **(values or {}))
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        raise StaleStateError(
            "This dispute is no longer awaiting that action.",
            {"status": "stale"},
        )


def expirable_ids(
    db: Session, now: datetime, dispute_ids: Optional[Iterable[int]] = None
) -> List[int]:
    stmt = select(_D.id).where(
        _D.status == DisputeStatus.PENDING_HOMEOWNER,
        _D.expires_at <= now,
    )
    if dispute_ids is not None:
        stmt = stmt.where(_D.id.in_(list(dispute_ids)))
    return list(db.execute(stmt.order_by(_D.id)).scalars().all())
