"""
Notification Queue: durable alert records and their outbound work items.

Every fired alert produces an AlertEvent and a pending QueuedMessage linked to
it, written in one transaction together with the subscription's
last_alert_sent_at. If only the message insert fails, the AlertEvent is kept
and flagged enqueue_failed so the delivery worker can pick it up.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional
from urllib.parse import quote

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farealert.config import get_settings
from farealert.database import as_naive_utc, utc_now
from farealert.exceptions import StoreWriteError
from farealert.models import AlertEvent, Destination, QueuedMessage, Subscription
from farealert.models.queued_message import CHANNEL_PRICE_ALERT, STATUS_PENDING
from farealert.services.deal_classifier import DealClassification
from farealert.services.eligibility import weekly_window_start
from farealert.services.price_store import StatisticsSnapshot

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class AlertRecord:
    alert_event_id: int
    queued_message_id: Optional[int] = None

    @property
    def enqueued(self) -> bool:
        return self.queued_message_id is not None


def build_alert_payload(
    destination: Destination,
    subscription: Subscription,
    price: Decimal,
    classification: DealClassification,
    stats: Optional[StatisticsSnapshot],
    outbound_date: Optional[date],
    alert_event_id: int,
) -> Dict[str, Any]:
    return {
        "alert_id": alert_event_id,
        "destination": destination.city_name,
        "airport_code": destination.airport_code,
        "country": destination.country,
        "current_price": float(price),
        "user_threshold": float(subscription.price_threshold),
        "deal_quality": classification.quality.value,
        "savings_percent": round(classification.savings_percent, 2),
        "recommendation": classification.recommendation,
        "avg_90day": stats.avg_90day if stats else None,
        "all_time_low": stats.all_time_low if stats else None,
        "outbound_date": outbound_date.isoformat() if outbound_date else None,
    }


class NotificationQueue:
    def __init__(self, db: Session, base_url: Optional[str] = None):
        self.db = db
        self.base_url = (base_url or settings.base_url).rstrip("/")

    def tracking_links(self, message_id: int, target_url: Optional[str] = None) -> Dict[str, str]:
        target = target_url or f"{self.base_url}/dashboard/alerts"
        return {
            "open_tracking_url": f"{self.base_url}/track/open?queue_id={message_id}",
            "click_tracking_url": f"{self.base_url}/track/click?queue_id={message_id}&url={quote(target, safe='')}",
        }

    def count_recent_alerts(self, user_id: str, now: datetime) -> int:
        """AlertEvents created for the user in the trailing 7 days."""
        return self.db.query(func.count(AlertEvent.id)).filter(
            AlertEvent.user_id == user_id,
            AlertEvent.created_at >= weekly_window_start(now),
        ).scalar() or 0

    def enqueue(
        self,
        user_id: str,
        destination_id: int,
        alert_event_id: int,
        payload: Dict[str, Any],
    ) -> int:
        """
        Add a pending price-alert message linked to its AlertEvent.

        Runs inside a savepoint and does not commit; the caller owns the
        transaction boundary. Raises StoreWriteError.
        """
        message = QueuedMessage(
            channel=CHANNEL_PRICE_ALERT,
            user_id=user_id,
            destination_id=destination_id,
            alert_event_id=alert_event_id,
            payload=payload,
            status=STATUS_PENDING,
        )
        try:
            with self.db.begin_nested():
                self.db.add(message)
                self.db.flush()
                message.payload = {**payload, **self.tracking_links(message.id)}
                self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to enqueue message for alert {alert_event_id}: {e}")
            raise StoreWriteError(f"Could not enqueue message: {e}") from e
        return message.id

    def record_alert(
        self,
        subscription: Subscription,
        destination: Destination,
        price: Decimal,
        classification: DealClassification,
        stats: Optional[StatisticsSnapshot],
        outbound_date: Optional[date],
        now: datetime,
    ) -> AlertRecord:
        """Write the AlertEvent, its queued message and the subscription's last-alert time."""
        now = as_naive_utc(now)
        event = AlertEvent(
            user_id=subscription.user_id,
            destination_id=destination.id,
            subscription_id=subscription.id,
            price=Decimal(str(price)),
            tracking_threshold=subscription.price_threshold,
            deal_quality=classification.quality.value,
            savings_percent=Decimal(str(round(classification.savings_percent, 2))),
            avg_90day_price=Decimal(str(stats.avg_90day)) if stats and stats.avg_90day is not None else None,
            all_time_low=Decimal(str(stats.all_time_low)) if stats and stats.all_time_low is not None else None,
            outbound_date=outbound_date,
            created_at=now,
        )
        try:
            self.db.add(event)
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record alert for subscription {subscription.id}: {e}")
            raise StoreWriteError(f"Could not record alert event: {e}") from e

        payload = build_alert_payload(
            destination, subscription, price, classification, stats, outbound_date, event.id
        )
        message_id = None
        try:
            message_id = self.enqueue(subscription.user_id, destination.id, event.id, payload)
        except StoreWriteError:
            event.enqueue_failed = True
            logger.error(f"Alert {event.id} recorded but not queued; left for the delivery worker")

        subscription.last_alert_sent_at = now
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to commit alert for subscription {subscription.id}: {e}")
            raise StoreWriteError(f"Could not commit alert: {e}") from e

        return AlertRecord(alert_event_id=event.id, queued_message_id=message_id)

    def mark_opened(self, message_id: int, now: Optional[datetime] = None) -> bool:
        return self._mark(message_id, "email_opened", "opened_at", now)

    def mark_clicked(self, message_id: int, now: Optional[datetime] = None) -> bool:
        return self._mark(message_id, "link_clicked", "clicked_at", now)

    def _mark(self, message_id: int, flag: str, timestamp_attr: str, now: Optional[datetime]) -> bool:
        """Set an engagement flag on a message and its AlertEvent. Repeat calls are no-ops."""
        message = self.db.query(QueuedMessage).filter(QueuedMessage.id == message_id).first()
        if message is None:
            logger.debug(f"Tracking callback for unknown message {message_id}")
            return False

        now = as_naive_utc(now) if now else utc_now()
        setattr(message, flag, True)
        payload = message.payload or {}
        if not payload.get(flag):
            message.payload = {**payload, flag: True}

        if message.alert_event_id is not None:
            event = self.db.query(AlertEvent).filter(AlertEvent.id == message.alert_event_id).first()
            if event is not None and not getattr(event, flag):
                setattr(event, flag, True)
                setattr(event, timestamp_attr, now)

        self.db.commit()
        return True
