from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from farealert.database import Base, utc_now


class PriceStatistics(Base):
    """
    Derived statistics snapshot, one row per destination.

    A cache over price_observations, rebuilt by PriceStore.refresh_statistics.
    Only all_time_low <= percentile_25 <= percentile_50 holds by construction;
    the average may sit anywhere relative to the percentiles.
    """
    __tablename__ = "price_statistics"

    destination_id = Column(
        Integer,
        ForeignKey("destinations.id", ondelete="CASCADE"),
        primary_key=True
    )

    sample_count = Column(Integer, default=0, nullable=False)
    avg_90day = Column(Numeric(10, 2), nullable=True)
    percentile_25 = Column(Numeric(10, 2), nullable=True)
    percentile_50 = Column(Numeric(10, 2), nullable=True)
    all_time_low = Column(Numeric(10, 2), nullable=True)

    refreshed_at = Column(DateTime, default=utc_now, nullable=False)

    destination = relationship("Destination", back_populates="statistics")
