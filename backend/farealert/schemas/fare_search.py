"""
Strict models for the fare-search API payloads.

Anything that does not match is rejected as malformed instead of being coerced
into a price.
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class AccessTokenResponse(BaseModel):
    access_token: str = Field(min_length=1)
    expires_in: int = Field(default=1799, gt=0)  # seconds


class OfferPrice(BaseModel):
    total: Decimal = Field(gt=0)
    currency: Optional[str] = None


class FlightOffer(BaseModel):
    price: OfferPrice


class FlightOffersResponse(BaseModel):
    data: List[FlightOffer]

    @property
    def lowest_price(self) -> Optional[Decimal]:
        """Cheapest offer total, or None when the search returned no offers."""
        if not self.data:
            return None
        return min(offer.price.total for offer in self.data)
