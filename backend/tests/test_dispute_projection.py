from datetime import datetime
from decimal import Decimal

import pytest

from app.crud import crud_home_size_dispute
from app.models import HomeSizeDisputeRequest
from app.services import home_size_disputes as svc
from app.services.dispute_access import ViewKind, ViewerRole, build_query_plan
from app.services.dispute_aggregate import aggregate_from_row
from app.services.dispute_projector import project_dispute

from dispute_helpers import FakeCodec, make_claim, seed, setup_db

CODEC = FakeCodec()

COMMON_KEYS = {
    "id",
    "caseNumber",
    "appointmentId",
    "homeId",
    "status",
    "originalBeds",
    "originalBaths",
    "originalPrice",
    "reportedBeds",
    "reportedBaths",
    "recalculatedPrice",
    "priceDelta",
    "cleanerNote",
    "expiresAt",
    "homeownerRespondedAt",
    "resolvedAt",
    "createdAt",
    "home",
    "viewerRole",
}
CLEANER_KEYS = COMMON_KEYS | {"homeowner"}
HOMEOWNER_KEYS = COMMON_KEYS | {"cleaner", "homeownerResponseText"}
RESOLVER_KEYS = COMMON_KEYS | {
    "cleaner",
    "homeowner",
    "homeownerResponseText",
    "resolverNote",
    "resolverId",
    "photos",
}


def _escalated(db):
    world = seed(db)
    dispute_id = svc.create_dispute(
        db, cleaner=world.cleaner, claim=make_claim(world.appointment.id), codec=CODEC
    )
    svc.homeowner_respond(
        db,
        dispute_id=dispute_id,
        homeowner=world.homeowner,
        approve=False,
        response_text="actually 2/1",
        codec=CODEC,
    )
    return world, dispute_id


def _view(db, dispute_id, role):
    plan = build_query_plan(role)
    (aggregate,) = crud_home_size_dispute.fetch_disputes(db, plan, HomeSizeDisputeRequest.id == dispute_id)
    return project_dispute(aggregate, plan, CODEC).model_dump(by_alias=True)


def test_plans_never_select_fields_above_role():
    cleaner = build_query_plan(ViewerRole.CLEANER)
    homeowner = build_query_plan("homeowner")
    owner = build_query_plan(ViewerRole.OWNER)
    hr = build_query_plan(ViewerRole.HR)

    for hidden in ("homeowner_response_text", "resolver_note", "resolver_id"):
        assert not cleaner.selects(hidden)
    assert homeowner.selects("homeowner_response_text")
    assert not homeowner.selects("resolver_note")
    assert not cleaner.include_photos and not homeowner.include_photos
    assert "false_claim_count" not in homeowner.cleaner_columns
    assert "email" not in cleaner.homeowner_columns
    assert owner.view == hr.view == ViewKind.RESOLVER
    assert owner.include_photos
    assert owner.dispute_columns == hr.dispute_columns


def test_cleaner_view_omits_homeowner_response():
    db = setup_db()
    world, dispute_id = _escalated(db)
    view = _view(db, dispute_id, ViewerRole.CLEANER)

    assert set(view) == CLEANER_KEYS
    assert "homeownerResponseText" not in view
    assert "photos" not in view
    assert view["caseNumber"] == f"ADJ-{dispute_id:06d}"
    assert view["cleanerNote"] == "Two extra bedrooms upstairs"
    assert view["homeowner"] == {"id": world.homeowner.id, "firstName": "Hana"}
    assert view["home"]["address"] == "12 Harbour Road"


def test_homeowner_view_shows_own_response_only():
    db = setup_db()
    world, dispute_id = _escalated(db)
    view = _view(db, dispute_id, ViewerRole.HOMEOWNER)

    assert set(view) == HOMEOWNER_KEYS
    assert view["homeownerResponseText"] == "actually 2/1"
    assert view["cleaner"] == {"id": world.cleaner.id, "firstName": "Casey"}


@pytest.mark.parametrize("role", [ViewerRole.OWNER, ViewerRole.HR])
def test_resolver_view_is_complete(role):
    db = setup_db()
    world, dispute_id = _escalated(db)
    view = _view(db, dispute_id, role)

    assert set(view) == RESOLVER_KEYS
    assert view["viewerRole"] == "resolver"
    assert view["cleaner"] == {
        "id": world.cleaner.id,
        "firstName": "Casey",
        "lastName": "Clean",
        "email": "casey@test.com",
        "falseClaimCount": 0,
    }
    assert set(view["homeowner"]) == {"id", "firstName", "lastName", "email", "falseHomeSizeCount"}
    assert len(view["photos"]) == 6
    assert set(view["photos"][0]) == {"id", "roomType", "roomNumber", "photoUrl", "createdAt"}
    assert view["photos"][0]["photoUrl"].startswith("data:image/jpeg;base64,")


def test_projection_tolerates_plaintext_and_nulls():
    plan = build_query_plan(ViewerRole.OWNER)
    row = {
        "id": 7,
        "appointment_id": 1,
        "home_id": 2,
        "cleaner_id": 3,
        "homeowner_id": 4,
        "status": "pending_owner",
        "original_beds": 2,
        "original_baths": Decimal("1"),
        "original_price": Decimal("100"),
        "reported_beds": 3,
        "reported_baths": Decimal("1"),
        "recalculated_price": Decimal("150"),
        "price_delta": Decimal("50"),
        "expires_at": datetime(2030, 1, 2),
        "cleaner_note": "legacy plaintext note",
        "homeowner_response_text": None,
        "resolver_note": "enc::checked",
        "home__id": 2,
        "home__address": None,
        "home__nickname": "Cabin",
        "cleaner__id": 3,
        "cleaner__first_name": "Plain",
        "cleaner__last_name": None,
        "cleaner__email": "enc::c@test.com",
        "cleaner__false_claim_count": 2,
        "homeowner__id": None,
    }
    view = project_dispute(aggregate_from_row(row, photos=[]), plan, CODEC).model_dump(by_alias=True)

    assert view["caseNumber"] == "ADJ-000007"
    assert view["cleanerNote"] == "legacy plaintext note"
    assert view["homeownerResponseText"] is None
    assert view["resolverNote"] == "checked"
    assert view["home"] == {"id": 2, "address": None, "nickname": "Cabin"}
    assert view["cleaner"]["firstName"] == "Plain"
    assert view["cleaner"]["email"] == "c@test.com"
    assert view["cleaner"]["falseClaimCount"] == 2
    assert view["homeowner"] is None
    assert view["photos"] == []


def test_listing_orders_newest_first():
    db = setup_db()
    world, first = _escalated(db)
    svc.owner_resolve(db, dispute_id=first, resolver=world.owner, decision="deny", note=None, codec=CODEC)
    db.get(type(world.appointment), world.upcoming.id).assigned_cleaner_ids = [world.cleaner.id]
    db.commit()
    second = svc.create_dispute(
        db, cleaner=world.cleaner, claim=make_claim(world.upcoming.id, beds=3), codec=CODEC
    )

    plan = build_query_plan(ViewerRole.OWNER)
    ids = [a.id for a in crud_home_size_dispute.fetch_disputes(db, plan)]
    assert ids == [second, first]
