from datetime import datetime, timedelta
from decimal import Decimal
import json

import pytest
from sqlalchemy import select

from app import models
from app.models.home_size_dispute import DisputeStatus, STATUS_RANK
from app.schemas.home_size_dispute import ResolverDecision
from app.services import home_size_disputes as svc
from app.utils.errors import (
    AuthorizationError,
    CodecError,
    NotFoundError,
    StaleStateError,
    ValidationError,
)

from dispute_helpers import BrokenCodec, FakeCodec, make_claim, photos_for, seed, setup_db

CODEC = FakeCodec()


def _create(db, world, **kwargs):
    return svc.create_dispute(
        db,
        cleaner=world.cleaner,
        claim=make_claim(world.appointment.id, **kwargs),
        codec=CODEC,
    )


def _dispute(db, dispute_id):
    db.expire_all()
    return db.get(models.HomeSizeDisputeRequest, dispute_id)


def _topics(db):
    return [e.topic for e in db.execute(select(models.OutboxEvent).order_by(models.OutboxEvent.id)).scalars()]


def test_create_dispute_locks_price_and_opens_window():
    db = setup_db()
    world = seed(db)
    before = datetime.utcnow()

    dispute_id = _create(db, world)

    dispute = _dispute(db, dispute_id)
    assert dispute.status == DisputeStatus.PENDING_HOMEOWNER
    assert dispute.original_beds == 2
    assert dispute.original_baths == Decimal("1")
    assert dispute.original_price == Decimal("100")
    assert dispute.recalculated_price == Decimal("250")
    assert dispute.price_delta == Decimal("150")
    assert dispute.recalculated_price > dispute.original_price
    window = dispute.expires_at - before
    assert timedelta(hours=23, minutes=59) < window <= timedelta(hours=24, seconds=5)
    assert dispute.cleaner_note == "enc::Two extra bedrooms upstairs"
    assert sorted((p.room_type.value, p.room_number) for p in dispute.photos) == [
        ("bathroom", 1),
        ("bathroom", 2),
        ("bedroom", 1),
        ("bedroom", 2),
        ("bedroom", 3),
        ("bedroom", 4),
    ]
    assert _topics(db) == ["home_size_dispute.created"]
    payload = json.loads(db.execute(select(models.OutboxEvent.payload_json)).scalar_one())
    assert payload["dispute_id"] == dispute_id
    assert payload["price_delta"] == "150.00"


def test_create_rejects_unchanged_size():
    db = setup_db()
    world = seed(db)
    with pytest.raises(ValidationError) as exc:
        _create(db, world, beds=2, baths=Decimal("1"))
    assert exc.value.status_code == 400
    assert db.execute(select(models.HomeSizeDisputeRequest)).first() is None


def test_create_rejects_incomplete_evidence_without_writing():
    db = setup_db()
    world = seed(db)
    with pytest.raises(ValidationError):
        _create(db, world, photos=photos_for(2, 2))
    assert db.execute(select(models.HomeSizeDisputeRequest)).first() is None
    assert _topics(db) == []


def test_only_assigned_cleaner_can_report():
    db = setup_db()
    world = seed(db)
    with pytest.raises(AuthorizationError):
        svc.create_dispute(db, cleaner=world.other_cleaner, claim=make_claim(world.appointment.id), codec=CODEC)
    with pytest.raises(AuthorizationError):
        svc.create_dispute(db, cleaner=world.homeowner, claim=make_claim(world.appointment.id), codec=CODEC)
    with pytest.raises(AuthorizationError):
        svc.create_dispute(db, cleaner=world.cleaner, claim=make_claim(9999), codec=CODEC)


def test_second_open_dispute_for_appointment_rejected():
    db = setup_db()
    world = seed(db)
    _create(db, world)
    with pytest.raises(ValidationError) as exc:
        _create(db, world, beds=3)
    assert exc.value.field_errors == {"appointment_id": "dispute_exists"}


def test_codec_failure_aborts_create():
    db = setup_db()
    world = seed(db)
    with pytest.raises(CodecError):
        svc.create_dispute(db, cleaner=world.cleaner, claim=make_claim(world.appointment.id), codec=BrokenCodec())
    assert db.execute(select(models.HomeSizeDisputeRequest)).first() is None


def test_homeowner_approval_applies_reported_size():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)

    status = svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=True, response_text=None, codec=CODEC
    )

    assert status == DisputeStatus.APPROVED
    dispute = _dispute(db, dispute_id)
    assert dispute.homeowner_responded_at is not None
    assert dispute.recalculated_price == Decimal("250")
    assert db.get(models.Appointment, world.appointment.id).price == Decimal("250")
    home = db.get(models.Home, world.home.id)
    assert (home.num_beds, home.num_baths) == (4, Decimal("2"))
    # Upcoming work at the same home moves with the new size; finished work does not
    assert db.get(models.Appointment, world.upcoming.id).price == Decimal("270")
    assert db.get(models.Appointment, world.past.id).price == Decimal("90")
    assert db.get(models.User, world.cleaner.id).false_claim_count == 0
    assert db.get(models.User, world.homeowner.id).false_home_size_count == 0
    assert _topics(db)[-1] == "home_size_dispute.approved"


def test_homeowner_denial_escalates_and_stores_response():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)

    status = svc.homeowner_respond(
        db,
        dispute_id=dispute_id,
        homeowner=world.homeowner,
        approve=False,
        response_text="actually 2/1",
        codec=CODEC,
    )

    assert status == DisputeStatus.PENDING_OWNER
    dispute = _dispute(db, dispute_id)
    assert dispute.homeowner_response_text == "enc::actually 2/1"
    assert db.get(models.Appointment, world.appointment.id).price == Decimal("100")
    assert _topics(db)[-1] == "home_size_dispute.escalated"


def test_other_homeowner_cannot_respond():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    with pytest.raises(AuthorizationError):
        svc.homeowner_respond(
            db, dispute_id=dispute_id, homeowner=world.other_homeowner, approve=True, response_text=None, codec=CODEC
        )
    assert _dispute(db, dispute_id).status == DisputeStatus.PENDING_HOMEOWNER


def test_second_homeowner_response_is_stale():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=True, response_text=None, codec=CODEC
    )
    with pytest.raises(StaleStateError) as exc:
        svc.homeowner_respond(
            db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text="no", codec=CODEC
        )
    assert exc.value.status_code == 409
    assert exc.value.field_errors == {"status": "approved"}
    assert _dispute(db, dispute_id).status == DisputeStatus.APPROVED


def test_owner_approval_sides_with_cleaner():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text="actually 2/1", codec=CODEC
    )

    status = svc.owner_resolve(
        db,
        dispute_id=dispute_id,
        resolver=world.owner,
        decision=ResolverDecision.APPROVE,
        note="Photos show four bedrooms",
        codec=CODEC,
    )

    assert status == DisputeStatus.OWNER_APPROVED
    dispute = _dispute(db, dispute_id)
    assert dispute.resolver_id == world.owner.id
    assert dispute.resolver_note == "enc::Photos show four bedrooms"
    assert dispute.resolved_at is not None
    assert db.get(models.Appointment, world.appointment.id).price == Decimal("250")
    homeowner = db.get(models.User, world.homeowner.id)
    assert homeowner.false_home_size_count == 1
    assert "HOME SIZE DISCREPANCY" in homeowner.owner_private_notes
    assert db.get(models.User, world.cleaner.id).false_claim_count == 0
    assert _topics(db)[-1] == "home_size_dispute.owner_approved"


def test_hr_denial_sides_with_homeowner():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text="actually 2/1", codec=CODEC
    )

    status = svc.owner_resolve(
        db, dispute_id=dispute_id, resolver=world.hr, decision="deny", note=None, codec=CODEC
    )

    assert status == DisputeStatus.OWNER_DENIED
    assert db.get(models.Appointment, world.appointment.id).price == Decimal("100")
    home = db.get(models.Home, world.home.id)
    assert (home.num_beds, home.num_baths) == (2, Decimal("1"))
    cleaner = db.get(models.User, world.cleaner.id)
    assert cleaner.false_claim_count == 1
    assert "HR verified" in cleaner.owner_private_notes
    assert db.get(models.User, world.homeowner.id).false_home_size_count == 0


def test_resolution_happens_exactly_once():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text=None, codec=CODEC
    )
    svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.owner, decision="deny", note=None, codec=CODEC)

    with pytest.raises(StaleStateError):
        svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.hr, decision="approve", note=None, codec=CODEC)
    with pytest.raises(StaleStateError):
        svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.owner, decision="deny", note=None, codec=CODEC)

    cleaner = db.get(models.User, world.cleaner.id)
    homeowner = db.get(models.User, world.homeowner.id)
    assert cleaner.false_claim_count + homeowner.false_home_size_count == 1
    assert _dispute(db, dispute_id).status == DisputeStatus.OWNER_DENIED


def test_resolve_requires_pending_owner():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    with pytest.raises(StaleStateError) as exc:
        svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.owner, decision="approve", note=None, codec=CODEC)
    assert exc.value.field_errors == {"status": "pending_homeowner"}


def test_resolve_requires_resolver_role():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text=None, codec=CODEC
    )
    with pytest.raises(AuthorizationError):
        svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.cleaner, decision="approve", note=None, codec=CODEC)
    with pytest.raises(NotFoundError):
        svc.owner_resolve(db, dispute_id=9999, resolver=world.owner, decision="approve", note=None, codec=CODEC)


def test_statuses_never_move_backwards():
    db = setup_db()
    world = seed(db)
    dispute_id = _create(db, world)
    observed = [_dispute(db, dispute_id).status]

    svc.homeowner_respond(
        db, dispute_id=dispute_id, homeowner=world.homeowner, approve=False, response_text=None, codec=CODEC
    )
    observed.append(_dispute(db, dispute_id).status)
    svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.owner, decision="approve", note=None, codec=CODEC)
    observed.append(_dispute(db, dispute_id).status)

    attempts = [
        lambda: svc.homeowner_respond(
            db, dispute_id=dispute_id, homeowner=world.homeowner, approve=True, response_text=None, codec=CODEC
        ),
        lambda: svc.owner_resolve(db, dispute_id=dispute_id, resolver=world.owner, decision="deny", note=None, codec=CODEC),
    ]
    for attempt in attempts:
        with pytest.raises(StaleStateError):
            attempt()
        observed.append(_dispute(db, dispute_id).status)
    assert svc.expire_stale(db, now=datetime.utcnow() + timedelta(days=30)) == []
    observed.append(_dispute(db, dispute_id).status)

    ranks = [STATUS_RANK[s] for s in observed]
    assert ranks == sorted(ranks)
    assert observed[-1] == DisputeStatus.OWNER_APPROVED
