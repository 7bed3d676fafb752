from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from farealert.database import Base, utc_now


CHANNEL_PRICE_ALERT = "price_alert"

STATUS_PENDING = "pending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"


class QueuedMessage(Base):
    """
    Outbound delivery work item.

    The pipeline creates rows in the pending state; the external delivery
    worker moves them to sent or failed.
    """
    __tablename__ = "queued_messages"

    id = Column(Integer, primary_key=True, index=True)
    channel = Column(String(30), default=CHANNEL_PRICE_ALERT, nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id", ondelete="CASCADE"), nullable=True)
    alert_event_id = Column(
        Integer,
        ForeignKey("alert_events.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    payload = Column(JSON, nullable=False, default=dict)
    status = Column(String(10), default=STATUS_PENDING, nullable=False, index=True)
    error_message = Column(Text, nullable=True)

    email_opened = Column(Boolean, default=False, nullable=False)
    link_clicked = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)
    sent_at = Column(DateTime, nullable=True)

    alert_event = relationship("AlertEvent", back_populates="messages")

    def __repr__(self) -> str:
        return f"<QueuedMessage {self.id}: {self.channel} -> {self.user_id} [{self.status}]>"
