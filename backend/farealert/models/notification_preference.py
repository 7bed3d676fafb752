from sqlalchemy import Column, Integer, String, Boolean, DateTime

from farealert.config import get_settings
from farealert.database import Base, utc_now

settings = get_settings()


DIGEST_INSTANT = "instant"
DIGEST_DAILY = "daily"
DIGEST_WEEKLY = "weekly"


class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    user_id = Column(String(64), primary_key=True)

    email_notifications_enabled = Column(Boolean, default=True, nullable=False)
    digest_frequency = Column(String(10), default=DIGEST_INSTANT, nullable=False)  # instant, daily, weekly
    max_alerts_per_week = Column(Integer, default=settings.default_max_alerts_per_week, nullable=False)
    quiet_hours_start = Column(Integer, nullable=True)  # Hour 0-23, e.g., 22 for 10 PM
    quiet_hours_end = Column(Integer, nullable=True)    # Hour 0-23, e.g., 8 for 8 AM
    timezone = Column(String(50), default=settings.default_timezone, nullable=False)

    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
