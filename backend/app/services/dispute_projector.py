"""Shape a dispute aggregate into the view its viewer is entitled to.

The projector only reads what the aggregate carries. Each PII or narrative
field is decrypted once, best effort.
"""

from __future__ import annotations

from typing import Optional

from ..schemas.home_size_dispute import (
    CleanerDetail,
    CleanerDisputeView,
    EvidencePhotoView,
    HomeSummary,
    HomeownerDetail,
    HomeownerDisputeView,
    PartySummary,
    ResolverDisputeView,
)
from .dispute_access import QueryPlan, ViewKind
from .dispute_aggregate import DisputeAggregate, HomeRecord, PartyRecord
from .pii_codec import PIICodec, decrypt_best_effort


def _common(aggregate: DisputeAggregate, codec: PIICodec) -> dict:
    return {
        "id": aggregate.id,
        "case_number": aggregate.case_number,
        "appointment_id": aggregate.appointment_id,
        "home_id": aggregate.home_id,
        "status": aggregate.status,
        "original_beds": aggregate.original_beds,
        "original_baths": aggregate.original_baths,
        "original_price": aggregate.original_price,
        "reported_beds": aggregate.reported_beds,
        "reported_baths": aggregate.reported_baths,
        "recalculated_price": aggregate.recalculated_price,
        "price_delta": aggregate.price_delta,
        "cleaner_note": decrypt_best_effort(codec, aggregate.cleaner_note),
        "expires_at": aggregate.expires_at,
        "homeowner_responded_at": aggregate.homeowner_responded_at,
        "resolved_at": aggregate.resolved_at,
        "created_at": aggregate.created_at,
        "home": _home(aggregate.home, codec),
    }


def _home(home: Optional[HomeRecord], codec: PIICodec) -> Optional[HomeSummary]:
    if home is None:
        return None
    return HomeSummary(
        id=home.id,
        address=decrypt_best_effort(codec, home.address),
        nickname=home.nickname,
    )


def _summary(party: Optional[PartyRecord], codec: PIICodec) -> Optional[PartySummary]:
    if party is None:
        return None
    return PartySummary(id=party.id, first_name=decrypt_best_effort(codec, party.first_name))


def _cleaner_detail(party: Optional[PartyRecord], codec: PIICodec) -> Optional[CleanerDetail]:
    if party is None:
        return None
    return CleanerDetail(
        id=party.id,
        first_name=decrypt_best_effort(codec, party.first_name),
        last_name=decrypt_best_effort(codec, party.last_name),
        email=decrypt_best_effort(codec, party.email),
        false_claim_count=party.false_claim_count or 0,
    )


def _homeowner_detail(party: Optional[PartyRecord], codec: PIICodec) -> Optional[HomeownerDetail]:
    if party is None:
        return None
    return HomeownerDetail(
        id=party.id,
        first_name=decrypt_best_effort(codec, party.first_name),
        last_name=decrypt_best_effort(codec, party.last_name),
        email=decrypt_best_effort(codec, party.email),
        false_home_size_count=party.false_home_size_count or 0,
    )


def project_dispute(aggregate: DisputeAggregate, plan: QueryPlan, codec: PIICodec):
    if plan.view == ViewKind.CLEANER:
        return CleanerDisputeView(
            **_common(aggregate, codec),
            homeowner=_summary(aggregate.homeowner, codec),
        )
    if plan.view == ViewKind.HOMEOWNER:
        return HomeownerDisputeView(
            **_common(aggregate, codec),
            cleaner=_summary(aggregate.cleaner, codec),
            homeowner_response_text=decrypt_best_effort(codec, aggregate.homeowner_response_text),
        )
    return ResolverDisputeView(
        **_common(aggregate, codec),
        cleaner=_cleaner_detail(aggregate.cleaner, codec),
        homeowner=_homeowner_detail(aggregate.homeowner, codec),
        homeowner_response_text=decrypt_best_effort(codec, aggregate.homeowner_response_text),
        resolver_note=decrypt_best_effort(codec, aggregate.resolver_note),
        resolver_id=aggregate.resolver_id,
        photos=[
            EvidencePhotoView(
                id=photo.id,
                room_type=photo.room_type,
                room_number=photo.room_number,
                photo_url=photo.image_blob,
                created_at=photo.created_at,
            )
            for photo in (aggregate.photos or ())
        ],
    )
