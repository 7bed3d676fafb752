from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from farealert.config import get_settings
from farealert.database import Base, utc_now

settings = get_settings()


class Subscription(Base):
    """
    A user's price tracking record for one destination.

    Owned by user-facing flows; the pipeline only writes last_alert_sent_at.
    Pausing sets is_active to False rather than deleting the row.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    destination_id = Column(
        Integer,
        ForeignKey("destinations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    price_threshold = Column(Numeric(10, 2), nullable=False)
    alert_cooldown_days = Column(Integer, default=settings.default_cooldown_days, nullable=False)
    min_deal_quality = Column(String(20), nullable=True)  # DealQuality value, e.g. "GREAT"
    min_price_drop_percent = Column(Numeric(5, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_alert_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    destination = relationship("Destination", back_populates="subscriptions")

    __table_args__ = (
        UniqueConstraint("user_id", "destination_id", name="uix_user_destination"),
    )

    def __repr__(self) -> str:
        return f"<Subscription {self.id}: user={self.user_id} destination={self.destination_id}>"
