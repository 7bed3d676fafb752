"""
Price check pipeline orchestration.

One run authenticates against the fare-search API, then walks every active
destination in turn:

    FETCH -> RECORD -> REFRESH_STATS -> CLASSIFY -> EVALUATE/ENQUEUE per subscription

Destinations are processed sequentially with a fixed delay between fare
searches to respect the API rate limit. A failing destination is recorded in
the run result and never stops the run; only failing to obtain the initial
credential aborts it.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Type, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farealert.config import get_settings
from farealert.database import utc_now
from farealert.exceptions import FareAlertError, FatalAuthError, NotFoundError, StoreWriteError
from farealert.models import Destination, NotificationPreference, Subscription
from farealert.services.deal_classifier import DealClassification, classify
from farealert.services.eligibility import check_eligibility
from farealert.services.fare_gateway import AmadeusFareGateway
from farealert.services.notification_queue import NotificationQueue
from farealert.services.price_store import PriceStore, StatisticsSnapshot

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class DestinationOutcome:
    destination: str
    price: float
    quality: str
    savings: float
    alerts_triggered: int = 0
    alerts_unsent: int = 0
    alerts_failed: int = 0

    def to_dict(self) -> Dict:
        return {
            "destination": self.destination,
            "price": self.price,
            "quality": self.quality,
            "savings": self.savings,
            "alertsTriggered": self.alerts_triggered,
            "alertsUnsent": self.alerts_unsent,
            "alertsFailed": self.alerts_failed,
        }


@dataclass
class DestinationError:
    destination: str
    error: str
    error_type: Type[FareAlertError] = FareAlertError

    @property
    def skipped(self) -> bool:
        return self.error_type is NotFoundError

    @classmethod
    def from_exception(cls, destination: str, exc: Exception) -> "DestinationError":
        error_type = type(exc) if isinstance(exc, FareAlertError) else FareAlertError
        return cls(destination=destination, error=str(exc) or type(exc).__name__, error_type=error_type)

    def to_dict(self) -> Dict:
        data = {
            "destination": self.destination,
            "error": self.error,
            "errorType": self.error_type.__name__,
        }
        if self.skipped:
            data["skipped"] = True
        return data


DestinationResult = Union[DestinationOutcome, DestinationError]


@dataclass
class PipelineRunResult:
    success: bool = True
    alerts_triggered: int = 0
    results: List[DestinationResult] = field(default_factory=list)
    error: Optional[str] = None
    cancelled: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def destinations_checked(self) -> int:
        return len(self.results)

    @property
    def failures(self) -> List[DestinationError]:
        return [r for r in self.results if isinstance(r, DestinationError)]

    @property
    def outcomes(self) -> List[DestinationOutcome]:
        return [r for r in self.results if isinstance(r, DestinationOutcome)]

    @property
    def alerts_unsent(self) -> int:
        return sum(o.alerts_unsent for o in self.outcomes)

    @property
    def alerts_failed(self) -> int:
        return sum(o.alerts_failed for o in self.outcomes)

    def to_dict(self) -> Dict:
        data = {
            "success": self.success,
            "destinationsChecked": self.destinations_checked,
            "alertsTriggered": self.alerts_triggered,
            "alertsUnsent": self.alerts_unsent,
            "alertsFailed": self.alerts_failed,
            "results": [r.to_dict() for r in self.results],
        }
        if self.error:
            data["error"] = self.error
        if self.cancelled:
            data["cancelled"] = True
        return data


class PriceCheckPipeline:
    def __init__(
        self,
        db: Session,
        gateway: AmadeusFareGateway,
        origin: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rate_limit_delay: Optional[float] = None,
        lookahead_days: Optional[int] = None,
        price_store: Optional[PriceStore] = None,
        queue: Optional[NotificationQueue] = None,
    ):
        self.db = db
        self.gateway = gateway
        self.origin = origin or settings.origin_airport
        self.rate_limit_delay = settings.rate_limit_delay_seconds if rate_limit_delay is None else rate_limit_delay
        self.lookahead_days = settings.departure_lookahead_days if lookahead_days is None else lookahead_days
        self.price_store = price_store or PriceStore(db, clock=clock)
        self.queue = queue or NotificationQueue(db)
        self._clock = clock
        self._sleep = sleep
        self._cancel_requested = False

    def request_cancel(self) -> None:
        """Stop before the next destination; results collected so far are kept."""
        self._cancel_requested = True

    async def run(self, timeout: Optional[float] = None) -> PipelineRunResult:
        result = PipelineRunResult(started_at=self._clock())
        self._cancel_requested = False
        try:
            await asyncio.wait_for(self._run(result), timeout)
        except asyncio.TimeoutError:
            result.cancelled = True
            logger.warning(
                f"Price check timed out after {timeout}s; "
                f"returning {result.destinations_checked} destination result(s)"
            )
        result.finished_at = self._clock()
        return result

    async def _run(self, result: PipelineRunResult) -> None:
        logger.info("Starting price check run")
        self.gateway.begin_run()

        try:
            await self.gateway.authenticate()
        except FatalAuthError as e:
            logger.error(f"Price check aborted, fare-search authentication failed: {e}")
            result.success = False
            result.error = str(e)
            return

        try:
            destinations = self.db.query(Destination).filter(
                Destination.is_active == True
            ).order_by(Destination.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Price check aborted, could not load destinations: {e}")
            result.success = False
            result.error = f"Could not load destinations: {e}"
            return

        if not destinations:
            logger.warning("No active destinations found")
            return

        logger.info(f"Checking prices for {len(destinations)} destinations from {self.origin}")
        departure_date = self._clock().date() + timedelta(days=self.lookahead_days)

        for index, destination in enumerate(destinations):
            if self._cancel_requested:
                result.cancelled = True
                logger.warning("Price check cancelled")
                break

            # Rate limiting - wait between fare searches, not after the last one
            if index > 0:
                await self._sleep(self.rate_limit_delay)

            entry = await self.check_destination(destination, departure_date)
            result.results.append(entry)
            if isinstance(entry, DestinationOutcome):
                result.alerts_triggered += entry.alerts_triggered

        logger.info(
            f"Price check complete. Checked {result.destinations_checked} destinations, "
            f"triggered {result.alerts_triggered} alerts ({result.alerts_unsent} unsent, "
            f"{result.alerts_failed} not recorded), {len(result.failures)} failures"
        )

    async def check_destination(self, destination: Destination, departure_date: date) -> DestinationResult:
        name = destination.city_name
        try:
            logger.info(f"Checking {destination.display_name}...")
            lookup = await self.gateway.fetch_lowest_price(self.origin, destination.airport_code, departure_date)
            if not lookup.is_found:
                error = lookup.as_error()
                logger.warning(f"❌ {destination.display_name}: {error}")
                return DestinationError.from_exception(name, error)

            now = self._clock()
            # Recording must land before the refresh, which must land before classification
            self.price_store.record_observation(destination.id, lookup.price, departure_date, observed_at=now)
            stats = self.price_store.refresh_statistics(destination.id, as_of=now)
            classification = classify(lookup.price, stats)

            outcome = DestinationOutcome(
                destination=name,
                price=float(lookup.price),
                quality=classification.quality.value,
                savings=round(classification.savings_percent, 2),
            )
            self._notify_subscribers(destination, lookup.price, classification, stats, departure_date, now, outcome)

            logger.info(
                f"✅ {destination.display_name}: ${lookup.price} {classification.quality.value} "
                f"({classification.savings_percent:.1f}% vs avg), {outcome.alerts_triggered} alert(s)"
            )
            return outcome

        except StoreWriteError as e:
            logger.error(f"❌ {destination.display_name}: store write failed, skipping classification: {e}")
            return DestinationError.from_exception(name, e)
        except Exception as e:
            logger.exception(f"❌ Unexpected error processing {destination.display_name}")
            self.db.rollback()
            return DestinationError.from_exception(name, e)

    def _notify_subscribers(
        self,
        destination: Destination,
        price: Decimal,
        classification: DealClassification,
        stats: StatisticsSnapshot,
        departure_date: date,
        now: datetime,
        outcome: DestinationOutcome,
    ) -> None:
        subscriptions = self.db.query(Subscription).filter(
            Subscription.destination_id == destination.id,
            Subscription.is_active == True
        ).order_by(Subscription.id).all()
        if not subscriptions:
            return

        user_ids = {s.user_id for s in subscriptions}
        preferences = {
            p.user_id: p
            for p in self.db.query(NotificationPreference).filter(
                NotificationPreference.user_id.in_(user_ids)
            ).all()
        }

        for subscription in subscriptions:
            alerts_this_week = self.queue.count_recent_alerts(subscription.user_id, now)
            decision = check_eligibility(
                subscription,
                preferences.get(subscription.user_id),
                price,
                classification,
                now,
                alerts_this_week,
            )
            if not decision:
                logger.debug(f"Skipping alert for user {subscription.user_id}: {decision.reason}")
                continue

            try:
                record = self.queue.record_alert(
                    subscription, destination, price, classification, stats, departure_date, now
                )
            except StoreWriteError as e:
                outcome.alerts_failed += 1
                logger.error(f"Could not record alert for user {subscription.user_id}: {e}")
                continue

            outcome.alerts_triggered += 1
            if not record.enqueued:
                outcome.alerts_unsent += 1
            logger.info(f"Alert triggered for user {subscription.user_id} ({classification.quality.value})")
