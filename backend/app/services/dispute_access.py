"""Role-based query plans for home size disputes.

Every read path asks ``build_query_plan`` what to select before the query
runs. Fields a role may not see are never selected, so they cannot reach a
projection by accident.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple

from ..models.user import UserType


class ViewerRole(str, enum.Enum):
    CLEANER = "cleaner"
    HOMEOWNER = "homeowner"
    OWNER = "owner"
    HR = "hr"

    @property
    def is_resolver(self) -> bool:
        return self in (ViewerRole.OWNER, ViewerRole.HR)

    @classmethod
    def for_user_type(cls, user_type: UserType) -> "ViewerRole":
        return cls(UserType(user_type).value)


class ViewKind(str, enum.Enum):
    CLEANER = "cleaner"
    HOMEOWNER = "homeowner"
    RESOLVER = "resolver"


_BASE_DISPUTE_COLUMNS: Tuple[str, ...] = (
    "id",
    "appointment_id",
    "home_id",
    "cleaner_id",
    "homeowner_id",
    "status",
    "original_beds",
    "original_baths",
    "original_price",
    "reported_beds",
    "reported_baths",
    "recalculated_price",
    "price_delta",
    "cleaner_note",
    "expires_at",
    "homeowner_responded_at",
    "resolved_at",
    "created_at",
)

_HOME_COLUMNS: Tuple[str, ...] = ("id", "address", "nickname")
_PARTY_MINIMAL: Tuple[str, ...] = ("id", "first_name")
_PARTY_FULL: Tuple[str, ...] = ("id", "first_name", "last_name", "email")


@dataclass(frozen=True)
class QueryPlan:
    role: ViewerRole
    view: ViewKind
    dispute_columns: Tuple[str, ...]
    home_columns: Tuple[str, ...]
    cleaner_columns: Tuple[str, ...]
    homeowner_columns: Tuple[str, ...]
    include_photos: bool

    def selects(self, column: str) -> bool:
        return column in self.dispute_columns


def build_query_plan(role: ViewerRole | str) -> QueryPlan:
    role = ViewerRole(role)
    if role == ViewerRole.CLEANER:
        return QueryPlan(
            role=role,
            view=ViewKind.CLEANER,
            dispute_columns=_BASE_DISPUTE_COLUMNS,
            home_columns=_HOME_COLUMNS,
            cleaner_columns=(),
            homeowner_columns=_PARTY_MINIMAL,
            include_photos=False,
        )
    if role == ViewerRole.HOMEOWNER:
        return QueryPlan(
            role=role,
            view=ViewKind.HOMEOWNER,
            dispute_columns=_BASE_DISPUTE_COLUMNS + ("homeowner_response_text",),
            home_columns=_HOME_COLUMNS,
            cleaner_columns=_PARTY_MINIMAL,
            homeowner_columns=(),
            include_photos=False,
        )
    return QueryPlan(
        role=role,
        view=ViewKind.RESOLVER,
        dispute_columns=_BASE_DISPUTE_COLUMNS
        + ("homeowner_response_text", "resolver_note", "resolver_id"),
        home_columns=_HOME_COLUMNS,
        cleaner_columns=_PARTY_FULL + ("false_claim_count",),
        homeowner_columns=_PARTY_FULL + ("false_home_size_count",),
        include_photos=True,
    )
