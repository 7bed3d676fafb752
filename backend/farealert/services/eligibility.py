"""
Eligibility Engine: decides whether a subscription fires an alert for a price.

Everything here is pure. The current time is always passed in, and the
number of alerts the user already received this week is supplied by the
caller, so decisions are deterministic for a given set of inputs.

Gates, in order (all must pass):
1. subscription active, notifications enabled, instant delivery
2. price at or under the subscription threshold (and a known deal quality)
3. minimum deal quality floor
4. minimum price drop floor
5. cooldown since the last alert (EXCEPTIONAL deals bypass it)
6. weekly alert cap (never bypassed)
7. quiet hours in the user's timezone (never bypassed)
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from farealert.config import get_settings
from farealert.database import as_naive_utc
from farealert.models.notification_preference import DIGEST_INSTANT
from farealert.services.deal_classifier import DealClassification, DealQuality, parse_quality, quality_at_least

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_DAYS = get_settings().default_cooldown_days
WEEKLY_WINDOW = timedelta(days=7)


@dataclass(frozen=True)
class EligibilityDecision:
    eligible: bool
    reason: str

    def __bool__(self) -> bool:
        return self.eligible


def _reject(reason: str) -> EligibilityDecision:
    return EligibilityDecision(False, reason)


def hours_since(last: Optional[datetime], now: datetime) -> float:
    if last is None:
        return math.inf
    return (as_naive_utc(now) - as_naive_utc(last)).total_seconds() / 3600


def is_cooldown_active(last_alert_sent_at: Optional[datetime], cooldown_days: Optional[int], now: datetime) -> bool:
    if cooldown_days is None:
        cooldown_days = DEFAULT_COOLDOWN_DAYS
    return hours_since(last_alert_sent_at, now) < cooldown_days * 24


def local_hour(now: datetime, tz_name: Optional[str]) -> int:
    """Hour of day (0-23) of a UTC instant in the given IANA timezone."""
    utc_instant = as_naive_utc(now).replace(tzinfo=timezone.utc)
    try:
        zone = ZoneInfo(tz_name) if tz_name else timezone.utc
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, evaluating quiet hours in UTC")
        zone = timezone.utc
    return utc_instant.astimezone(zone).hour


def is_quiet_hour(hour: int, quiet_start: Optional[int], quiet_end: Optional[int]) -> bool:
    """True if hour falls in [quiet_start, quiet_end) on a wrap-around 24h clock."""
    if quiet_start is None or quiet_end is None or quiet_start == quiet_end:
        return False
    # Handle overnight quiet hours (e.g., 22:00 - 08:00)
    if quiet_start > quiet_end:
        return hour >= quiet_start or hour < quiet_end
    return quiet_start <= hour < quiet_end


def weekly_window_start(now: datetime) -> datetime:
    return as_naive_utc(now) - WEEKLY_WINDOW


def check_eligibility(
    subscription,
    preference,
    price: Union[float, Decimal],
    classification: DealClassification,
    now: datetime,
    alerts_this_week: int = 0,
) -> EligibilityDecision:
    if not subscription.is_active:
        return _reject("subscription paused")
    if preference is None:
        return _reject("no notification preferences")
    if not preference.email_notifications_enabled:
        return _reject("notifications disabled")
    if (preference.digest_frequency or DIGEST_INSTANT) != DIGEST_INSTANT:
        return _reject(f"{preference.digest_frequency} digest subscriber")

    if float(price) > float(subscription.price_threshold):
        return _reject(f"price {float(price):.2f} above threshold {float(subscription.price_threshold):.2f}")
    if classification.quality == DealQuality.UNKNOWN:
        return _reject("deal quality unknown")

    floor = parse_quality(subscription.min_deal_quality)
    if floor is not None and not quality_at_least(classification.quality, floor):
        return _reject(f"quality {classification.quality.value} below floor {floor.value}")

    if subscription.min_price_drop_percent is not None:
        if classification.savings_percent < float(subscription.min_price_drop_percent):
            return _reject(
                f"savings {classification.savings_percent:.1f}% below floor "
                f"{float(subscription.min_price_drop_percent):.1f}%"
            )

    if classification.quality != DealQuality.EXCEPTIONAL and is_cooldown_active(
        subscription.last_alert_sent_at, subscription.alert_cooldown_days, now
    ):
        return _reject("cooldown active")

    cap = preference.max_alerts_per_week
    if cap is not None and alerts_this_week >= cap:
        return _reject(f"weekly cap reached ({alerts_this_week}/{cap})")

    hour = local_hour(now, preference.timezone)
    if is_quiet_hour(hour, preference.quiet_hours_start, preference.quiet_hours_end):
        return _reject(f"quiet hours (local hour {hour})")

    return EligibilityDecision(True, "eligible")


def is_eligible(
    subscription,
    preference,
    price: Union[float, Decimal],
    classification: DealClassification,
    now: datetime,
    alerts_this_week: int = 0,
) -> bool:
    return check_eligibility(subscription, preference, price, classification, now, alerts_this_week).eligible
