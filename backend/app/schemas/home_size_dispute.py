from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models.home_size_dispute import DisputeStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Requests ──────────────────────────────────────────────────────────────────


class EvidencePhotoIn(_CamelModel):
    # Untyped so shape problems surface as claim validation errors (400)
    room_type: Optional[Any] = None
    room_number: Optional[Any] = None
    image: Optional[Any] = None


class DisputeCreate(_CamelModel):
    appointment_id: int
    reported_beds: Annotated[int, Field(ge=0, le=30)]
    reported_baths: Annotated[Decimal, Field(ge=0, le=30, multiple_of=Decimal("0.5"))]
    cleaner_note: Optional[Annotated[str, Field(max_length=2000)]] = None
    photos: List[Any] = Field(default_factory=list)

    @field_validator("photos", mode="after")
    @classmethod
    def _wrap_photo_objects(cls, photos: List[Any]) -> List[Any]:
        # Non-object entries are left as-is for the evidence rules to reject
        return [EvidencePhotoIn.model_validate(p) if isinstance(p, dict) else p for p in photos]


class HomeownerResponseIn(_CamelModel):
    approve: bool
    response_text: Optional[Annotated[str, Field(max_length=2000)]] = None


class ResolverDecision(str, enum.Enum):
    APPROVE = "approve"
    DENY = "deny"


class OwnerResolveIn(_CamelModel):
    decision: ResolverDecision
    note: Optional[Annotated[str, Field(max_length=2000)]] = None


# ─── Role views ────────────────────────────────────────────────────────────────
# Field names are the wire contract. Views forbid extra keys so a field that a
# role is not entitled to cannot be attached to its projection.


class _View(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class HomeSummary(_View):
    id: int
    address: Optional[str] = None
    nickname: Optional[str] = None


class PartySummary(_View):
    id: int
    first_name: Optional[str] = None


class CleanerDetail(_View):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    false_claim_count: int = 0


class HomeownerDetail(_View):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    false_home_size_count: int = 0


class EvidencePhotoView(_View):
    id: int
    room_type: str
    room_number: int
    photo_url: str
    created_at: Optional[datetime] = None


class DisputeViewBase(_View):
    id: int
    case_number: str
    appointment_id: int
    home_id: int
    status: DisputeStatus
    original_beds: int
    original_baths: Decimal
    original_price: Decimal
    reported_beds: int
    reported_baths: Decimal
    recalculated_price: Decimal
    price_delta: Decimal
    cleaner_note: Optional[str] = None
    expires_at: datetime
    homeowner_responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    home: Optional[HomeSummary] = None


class CleanerDisputeView(DisputeViewBase):
    viewer_role: Literal["cleaner"] = "cleaner"
    homeowner: Optional[PartySummary] = None


class HomeownerDisputeView(DisputeViewBase):
    viewer_role: Literal["homeowner"] = "homeowner"
    cleaner: Optional[PartySummary] = None
    homeowner_response_text: Optional[str] = None


class ResolverDisputeView(DisputeViewBase):
    viewer_role: Literal["resolver"] = "resolver"
    cleaner: Optional[CleanerDetail] = None
    homeowner: Optional[HomeownerDetail] = None
    homeowner_response_text: Optional[str] = None
    resolver_note: Optional[str] = None
    resolver_id: Optional[int] = None
    photos: List[EvidencePhotoView] = Field(default_factory=list)


DisputeView = Annotated[
    Union[CleanerDisputeView, HomeownerDisputeView, ResolverDisputeView],
    Field(discriminator="viewer_role"),
]
