from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from farealert.database import Base, utc_now


class AlertEvent(Base):
    """
    Durable record of one fired price alert.

    Immutable after creation except for the engagement flags, which the
    delivery-tracking callbacks set. enqueue_failed marks an alert whose
    queued message could not be written; the delivery worker picks those up.
    """
    __tablename__ = "alert_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    destination_id = Column(
        Integer,
        ForeignKey("destinations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)

    price = Column(Numeric(10, 2), nullable=False)
    tracking_threshold = Column(Numeric(10, 2), nullable=False)
    deal_quality = Column(String(20), nullable=False)
    savings_percent = Column(Numeric(8, 2), nullable=False)
    avg_90day_price = Column(Numeric(10, 2), nullable=True)
    all_time_low = Column(Numeric(10, 2), nullable=True)
    outbound_date = Column(Date, nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    sent_at = Column(DateTime, nullable=True)
    enqueue_failed = Column(Boolean, default=False, nullable=False)

    email_opened = Column(Boolean, default=False, nullable=False)
    opened_at = Column(DateTime, nullable=True)
    link_clicked = Column(Boolean, default=False, nullable=False)
    clicked_at = Column(DateTime, nullable=True)

    destination = relationship("Destination")
    messages = relationship("QueuedMessage", back_populates="alert_event")

    def __repr__(self) -> str:
        return f"<AlertEvent {self.id}: user={self.user_id} ${self.price} {self.deal_quality}>"
