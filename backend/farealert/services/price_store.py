"""
Price Store: the append-only observation log and its derived statistics.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farealert.config import get_settings
from farealert.database import as_naive_utc, utc_now
from farealert.exceptions import StoreWriteError
from farealert.models import PriceObservation, PriceStatistics

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class StatisticsSnapshot:
    destination_id: int
    sample_count: int = 0
    avg_90day: Optional[float] = None
    percentile_25: Optional[float] = None
    percentile_50: Optional[float] = None
    all_time_low: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.sample_count > 0 and self.avg_90day is not None

    @classmethod
    def from_row(cls, row: PriceStatistics) -> "StatisticsSnapshot":
        return cls(
            destination_id=row.destination_id,
            sample_count=row.sample_count or 0,
            avg_90day=_to_float(row.avg_90day),
            percentile_25=_to_float(row.percentile_25),
            percentile_50=_to_float(row.percentile_50),
            all_time_low=_to_float(row.all_time_low),
        )


def _to_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def percentile(sorted_values: List[float], fraction: float) -> float:
    """
    Continuous percentile with linear interpolation between closest ranks.

    fraction is in [0, 1]; sorted_values must be non-empty and ascending.
    """
    if not sorted_values:
        raise ValueError("percentile of empty sequence")
    position = (len(sorted_values) - 1) * fraction
    lower = math.floor(position)
    upper = math.ceil(position)
    if lower == upper:
        return sorted_values[lower]
    weight = position - lower
    return sorted_values[lower] + (sorted_values[upper] - sorted_values[lower]) * weight


def compute_statistics(
    destination_id: int,
    window_prices: List[float],
    all_time_low: Optional[float],
) -> StatisticsSnapshot:
    """Aggregate one destination's window of prices. Values are rounded to cents."""
    if not window_prices:
        return StatisticsSnapshot(
            destination_id=destination_id,
            sample_count=0,
            all_time_low=round(all_time_low, 2) if all_time_low is not None else None,
        )

    ordered = sorted(window_prices)
    low = min(ordered[0], all_time_low) if all_time_low is not None else ordered[0]
    return StatisticsSnapshot(
        destination_id=destination_id,
        sample_count=len(ordered),
        avg_90day=round(sum(ordered) / len(ordered), 2),
        percentile_25=round(percentile(ordered, 0.25), 2),
        percentile_50=round(percentile(ordered, 0.50), 2),
        all_time_low=round(low, 2),
    )


class PriceStore:
    def __init__(
        self,
        db: Session,
        window_days: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.window_days = window_days or settings.statistics_window_days
        self._clock = clock

    def record_observation(
        self,
        destination_id: int,
        price: Union[Decimal, float],
        outbound_date: date,
        observed_at: Optional[datetime] = None,
    ) -> int:
        """Append one observation and return its id. Existing rows are never touched."""
        if price is None or Decimal(str(price)) <= 0:
            raise ValueError(f"Observed price must be positive, got {price!r}")

        observation = PriceObservation(
            destination_id=destination_id,
            price=Decimal(str(price)),
            outbound_date=outbound_date,
            observed_at=as_naive_utc(observed_at) if observed_at else self._clock(),
        )
        try:
            self.db.add(observation)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record observation for destination {destination_id}: {e}")
            raise StoreWriteError(f"Could not record observation: {e}") from e

        return observation.id

    def get_window_prices(self, destination_id: int, as_of: datetime) -> List[float]:
        cutoff = as_of - timedelta(days=self.window_days)
        rows = self.db.query(PriceObservation.price).filter(
            PriceObservation.destination_id == destination_id,
            PriceObservation.observed_at >= cutoff,
            PriceObservation.observed_at <= as_of,
        ).all()
        return [float(r[0]) for r in rows]

    def refresh_statistics(self, destination_id: int, as_of: Optional[datetime] = None) -> StatisticsSnapshot:
        """
        Recompute and upsert the statistics row for a destination.

        Idempotent for an unchanged log and the same as_of. An empty log yields
        a snapshot with sample_count 0 and no percentiles.
        """
        as_of = as_naive_utc(as_of) if as_of else self._clock()

        try:
            window_prices = self.get_window_prices(destination_id, as_of)
            lowest = self.db.query(func.min(PriceObservation.price)).filter(
                PriceObservation.destination_id == destination_id,
                PriceObservation.observed_at <= as_of,
            ).scalar()
            snapshot = compute_statistics(destination_id, window_prices, _to_float(lowest))

            row = self.db.query(PriceStatistics).filter(
                PriceStatistics.destination_id == destination_id
            ).first()
            if row is None:
                row = PriceStatistics(destination_id=destination_id)
                self.db.add(row)

            row.sample_count = snapshot.sample_count
            row.avg_90day = _to_decimal(snapshot.avg_90day)
            row.percentile_25 = _to_decimal(snapshot.percentile_25)
            row.percentile_50 = _to_decimal(snapshot.percentile_50)
            row.all_time_low = _to_decimal(snapshot.all_time_low)
            row.refreshed_at = as_of
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to refresh statistics for destination {destination_id}: {e}")
            raise StoreWriteError(f"Could not refresh statistics: {e}") from e

        logger.debug(
            f"Statistics for destination {destination_id}: n={snapshot.sample_count} "
            f"avg={snapshot.avg_90day} low={snapshot.all_time_low}"
        )
        return snapshot

    def get_statistics(self, destination_id: int) -> StatisticsSnapshot:
        row = self.db.query(PriceStatistics).filter(
            PriceStatistics.destination_id == destination_id
        ).first()
        if row is None:
            return StatisticsSnapshot(destination_id=destination_id)
        return StatisticsSnapshot.from_row(row)


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None
