from sqlalchemy import Column, Integer, Date, DateTime, Numeric, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from farealert.database import Base, utc_now


class PriceObservation(Base):
    """
    One lowest-fare sample for a destination at a point in time.

    Append-only: rows are never updated or deleted by the pipeline. This log is
    the audit trail behind every deal classification.
    """
    __tablename__ = "price_observations"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    destination_id = Column(
        Integer,
        ForeignKey("destinations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    price = Column(Numeric(10, 2), nullable=False)
    outbound_date = Column(Date, nullable=False)  # Departure date used for the search
    observed_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    destination = relationship("Destination", back_populates="observations")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_price_observations_positive"),
    )

    def __repr__(self) -> str:
        return f"<PriceObservation {self.id}: ${self.price} on {self.observed_at}>"
