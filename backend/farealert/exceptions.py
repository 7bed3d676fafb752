"""
Error taxonomy for the price check pipeline.

FatalAuthError ends a run before any destination is checked. Everything
else is caught at the destination boundary and reported in that
destination's result entry.
"""


class FareAlertError(Exception):
    """Base class for pipeline errors."""


class FatalAuthError(FareAlertError):
    """A fare-search credential could not be obtained."""


class DestinationFetchError(FareAlertError):
    """The fare search for one destination failed."""

    def __init__(self, destination_code: str, message: str, status_code=None):
        self.destination_code = destination_code
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(DestinationFetchError):
    """The fare search answered, but the payload did not match the expected schema."""


class NotFoundError(FareAlertError):
    """No fare is available for a destination/date."""


class StoreWriteError(FareAlertError):
    """A write to the data store failed and was rolled back."""
