from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models
from ..crud import crud_home_size_dispute
from ..models.home_size_dispute import DisputeStatus, OPEN_STATUSES, TERMINAL_STATUSES
from ..models.user import User
from ..schemas.home_size_dispute import (
    DisputeCreate,
    DisputeView,
    HomeownerResponseIn,
    OwnerResolveIn,
)
from ..services import home_size_disputes
from ..services.dispute_access import ViewerRole, build_query_plan
from ..services.dispute_projector import project_dispute
from ..services.pii_codec import PIICodec, get_pii_codec
from ..utils.errors import AuthorizationError, NotFoundError
from .dependencies import get_current_active_user, get_db

router = APIRouter(tags=["home-size-disputes"])
logger = logging.getLogger(__name__)

_D = models.HomeSizeDisputeRequest


def _viewer_role(user: User) -> ViewerRole:
    return ViewerRole.for_user_type(user.user_type)


def _authorize_read(db: Session, dispute_id: int, user: User) -> ViewerRole:
    """Resolve the caller's role for one dispute or refuse.

    Non-resolvers get 403 for a dispute that does not exist, so existence is
    only disclosed to someone already entitled to it.
    """
    role = _viewer_role(user)
    parties = crud_home_size_dispute.get_parties(db, dispute_id)
    if parties is None:
        if role.is_resolver:
            raise NotFoundError("Request not found.", {"dispute_id": "not_found"})
        raise AuthorizationError()
    if role == ViewerRole.CLEANER and parties.cleaner_id != user.id:
        raise AuthorizationError()
    if role == ViewerRole.HOMEOWNER and parties.homeowner_id != user.id:
        raise AuthorizationError()
    return role


def _read_one(db: Session, dispute_id: int, role: ViewerRole, codec: PIICodec):
    plan = build_query_plan(role)
    found = crud_home_size_dispute.fetch_disputes(db, plan, _D.id == dispute_id, limit=1)
    if not found:
        raise NotFoundError("Request not found.", {"dispute_id": "not_found"})
    return project_dispute(found[0], plan, codec)


@router.post("", response_model=DisputeView, status_code=status.HTTP_201_CREATED)
def create_home_size_dispute(
    claim: DisputeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    """Report that a home is larger or smaller than its listing."""
    dispute_id = home_size_disputes.create_dispute(
        db, cleaner=current_user, claim=claim, codec=codec
    )
    return _read_one(db, dispute_id, ViewerRole.CLEANER, codec)


@router.get("/pending", response_model=List[DisputeView])
def list_pending_disputes(
    role: ViewerRole = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    if role != _viewer_role(current_user):
        raise AuthorizationError("Requested role does not match your account.")

    now = datetime.utcnow()
    if role.is_resolver:
        conditions = [_D.status == DisputeStatus.PENDING_OWNER]
    elif role == ViewerRole.HOMEOWNER:
        conditions = [
            _D.homeowner_id == current_user.id,
            _D.status == DisputeStatus.PENDING_HOMEOWNER,
        ]
    else:
        conditions = [_D.cleaner_id == current_user.id, _D.status.in_(list(OPEN_STATUSES))]

    candidates = db.execute(
        select(_D.id).where(
            _D.status == DisputeStatus.PENDING_HOMEOWNER,
            *conditions,
        )
    ).scalars().all()
    if candidates:
        home_size_disputes.expire_stale(db, now=now, dispute_ids=candidates)

    plan = build_query_plan(role)
    disputes = crud_home_size_dispute.fetch_disputes(db, plan, *conditions)
    return [project_dispute(d, plan, codec) for d in disputes]


@router.get("/history/{home_id}", response_model=List[DisputeView])
def list_home_dispute_history(
    home_id: int,
    limit: Optional[int] = Query(None, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    role = _viewer_role(current_user)
    homeowner_id = db.execute(
        select(models.Home.homeowner_id).where(models.Home.id == home_id)
    ).scalar_one_or_none()
    if homeowner_id is None:
        if role.is_resolver:
            raise NotFoundError("Home not found.", {"home_id": "not_found"})
        raise AuthorizationError()
    if not role.is_resolver and not (
        role == ViewerRole.HOMEOWNER and homeowner_id == current_user.id
    ):
        raise AuthorizationError()

    home_size_disputes.expire_stale(
        db,
        dispute_ids=db.execute(select(_D.id).where(_D.home_id == home_id)).scalars().all(),
    )
    plan = build_query_plan(role)
    disputes = crud_home_size_dispute.fetch_disputes(
        db,
        plan,
        _D.home_id == home_id,
        _D.status.in_(list(TERMINAL_STATUSES)),
        limit=limit,
    )
    return [project_dispute(d, plan, codec) for d in disputes]


@router.get("/{dispute_id}", response_model=DisputeView)
def read_home_size_dispute(
    dispute_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    role = _authorize_read(db, dispute_id, current_user)
    home_size_disputes.expire_stale(db, dispute_ids=[dispute_id])
    return _read_one(db, dispute_id, role, codec)


@router.post("/{dispute_id}/homeowner-response", response_model=DisputeView)
def respond_to_home_size_dispute(
    dispute_id: int,
    body: HomeownerResponseIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    home_size_disputes.homeowner_respond(
        db,
        dispute_id=dispute_id,
        homeowner=current_user,
        approve=body.approve,
        response_text=body.response_text,
        codec=codec,
    )
    return _read_one(db, dispute_id, ViewerRole.HOMEOWNER, codec)


@router.post("/{dispute_id}/owner-resolve", response_model=DisputeView)
def resolve_home_size_dispute(
    dispute_id: int,
    body: OwnerResolveIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    codec: PIICodec = Depends(get_pii_codec),
):
    home_size_disputes.owner_resolve(
        db,
        dispute_id=dispute_id,
        resolver=current_user,
        decision=body.decision,
        note=body.note,
        codec=codec,
    )
    return _read_one(db, dispute_id, _viewer_role(current_user), codec)
