from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text, Index
from sqlalchemy.sql import func

from ..database import Base


class OutboxEvent(Base):
    """Events awaiting delivery by the external notifier."""

    __tablename__ = "outbox_events"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    topic = Column(String(255), nullable=False)
    payload_json = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    attempt_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_error = Column(Text, nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)


# Fast scan for undelivered
Index("ix_outbox_undelivered_created", OutboxEvent.delivered_at, OutboxEvent.created_at)
Index("ix_outbox_topic_delivered", OutboxEvent.topic, OutboxEvent.delivered_at)
