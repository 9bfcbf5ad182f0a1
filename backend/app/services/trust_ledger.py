"""Trust counters on users, bumped by resolver outcomes only.

The counters feed the account-standing policy, which lives elsewhere. This
module never decrements them. One dispute can bump at most one counter
once, because the only caller runs inside the single pending_owner edge.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models.user import User, UserType
from .dispute_aggregate import case_number

logger = logging.getLogger(__name__)


def _fmt_size(beds, baths) -> str:
    return f"{beds}bd/{baths}ba"


def _resolver_label(resolver_type: UserType) -> str:
    return "HR" if resolver_type == UserType.HR else "owner"


def _append_note_and_increment(db: Session, user_id: int, counter, note: str) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            {
                counter: counter + 1,
                User.owner_private_notes: func.coalesce(
                    User.owner_private_notes.concat("\n" + note), note
                ),
            }
        )
        .execution_options(synchronize_session=False)
    )


def record_false_claim(db: Session, *, dispute, resolver: User, now: datetime) -> None:
    """The resolver sided with the homeowner: the cleaner's claim was false."""
    note = (
        f"[{now.isoformat()}] FALSE CLAIM: Cleaner claimed home was "
        f"{_fmt_size(dispute.reported_beds, dispute.reported_baths)} but "
        f"{_resolver_label(resolver.user_type)} verified it was correctly listed as "
        f"{_fmt_size(dispute.original_beds, dispute.original_baths)}. "
        f"Case {case_number(dispute.id)}, resolver #{resolver.id}."
    )
    _append_note_and_increment(db, dispute.cleaner_id, User.false_claim_count, note)
    logger.info(
        "trust_ledger false_claim user_id=%s dispute_id=%s", dispute.cleaner_id, dispute.id
    )


def record_false_home_size(db: Session, *, dispute, resolver: User, now: datetime) -> None:
    """The resolver sided with the cleaner: the homeowner's listing was wrong."""
    note = (
        f"[{now.isoformat()}] HOME SIZE DISCREPANCY: Homeowner disputed cleaner's claim but "
        f"{_resolver_label(resolver.user_type)} found home was incorrectly sized. "
        f"Original: {_fmt_size(dispute.original_beds, dispute.original_baths)}, "
        f"Actual: {_fmt_size(dispute.reported_beds, dispute.reported_baths)}. "
        f"Case {case_number(dispute.id)}, resolver #{resolver.id}."
    )
    _append_note_and_increment(db, dispute.homeowner_id, User.false_home_size_count, note)
    logger.info(
        "trust_ledger false_home_size user_id=%s dispute_id=%s", dispute.homeowner_id, dispute.id
    )
