"""Exception types shared across ingestion, storage and the api."""

from __future__ import annotations

from typing import Optional


class SpaceWeatherError(Exception):
    """Base class for errors raised by space_weather_hq."""


class TransportError(SpaceWeatherError):
    """A remote fetch failed.

    ``status_code`` is the HTTP status for non-success responses and ``None``
    for network-level failures or unusable response bodies.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class ParseError(SpaceWeatherError, ValueError):
    """A raw event field could not be parsed."""


class NoDataYetError(SpaceWeatherError):
    """No hourly bucket has been produced or persisted yet (cold start)."""


class IngestionUnavailableError(SpaceWeatherError):
    """A manual run was requested but no pipeline or scheduler is configured."""
