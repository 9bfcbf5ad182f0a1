from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.outbox_event import OutboxEvent
from .json import dumps as _json_dumps


logger = logging.getLogger(__name__)


def enqueue_outbox(db: Session, topic: str, payload: dict[str, Any], due_at: Optional[datetime] = None) -> OutboxEvent:
    """Stage an outbox event row for the external notifier.

    The row joins the caller's transaction; it becomes visible only when the
    caller commits, so a rolled-back transition never emits an event.
    """
    payload_str = _json_dumps(payload)
    event = OutboxEvent(topic=topic, payload_json=payload_str, attempt_count=0, due_at=due_at)
    db.add(event)
    logger.info("outbox_enqueue topic=%s bytes=%s", topic, len(payload_str))
    return event
