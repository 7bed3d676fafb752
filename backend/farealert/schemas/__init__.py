from farealert.schemas.fare_search import AccessTokenResponse, FlightOffer, FlightOffersResponse, OfferPrice
from farealert.schemas.pipeline import PipelineOverview

__all__ = ["AccessTokenResponse", "FlightOffer", "FlightOffersResponse", "OfferPrice", "PipelineOverview"]
