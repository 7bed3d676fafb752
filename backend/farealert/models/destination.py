from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from farealert.database import Base, utc_now


class Destination(Base):
    """
    A tracked destination, priced from the deployment's fixed origin.

    Created by admin configuration; the pipeline only reads it.
    """
    __tablename__ = "destinations"

    id = Column(Integer, primary_key=True, index=True)
    airport_code = Column(String(10), nullable=False, unique=True, index=True)
    city_name = Column(String(100), nullable=False)
    country = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    observations = relationship("PriceObservation", back_populates="destination", cascade="all, delete-orphan")
    statistics = relationship("PriceStatistics", back_populates="destination", uselist=False, cascade="all, delete-orphan")
    subscriptions = relationship("Subscription", back_populates="destination", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return f"{self.city_name} ({self.airport_code})"

    def __repr__(self) -> str:
        return f"<Destination {self.id}: {self.airport_code}>"
