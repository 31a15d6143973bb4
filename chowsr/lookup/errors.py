from __future__ import annotations


class RestaurantLookupError(Exception):
    """Base class for everything the lookup pipeline raises on purpose."""


class NoResults(RestaurantLookupError):
    """The lookup worked but there is nothing to show (unknown place, empty area)."""


class LookupTimeout(RestaurantLookupError):
    """The whole lookup ran past its time budget and was cancelled."""


class UpstreamError(RestaurantLookupError):
    """An OSM service answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchFailure(RestaurantLookupError):
    """Every Overpass backend failed; ``last_error`` is the final attempt's error."""

    def __init__(self, message: str, last_error: Exception | None = None):
        super().__init__(message)
        self.last_error = last_error
