# SQLAlchemy models
from farealert.models.destination import Destination
from farealert.models.price_observation import PriceObservation
from farealert.models.price_statistics import PriceStatistics
from farealert.models.subscription import Subscription
from farealert.models.notification_preference import NotificationPreference
from farealert.models.alert_event import AlertEvent
from farealert.models.queued_message import QueuedMessage

__all__ = [
    # Pipeline-owned writes
    "PriceObservation",
    "PriceStatistics",
    "AlertEvent",
    "QueuedMessage",
    # Read by the pipeline, owned by user/admin flows
    "Destination",
    "Subscription",
    "NotificationPreference",
]
