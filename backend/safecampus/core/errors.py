"""Error types shared by the store boundary and the realtime engine."""

from __future__ import annotations


class PreconditionError(Exception):
    """An action was attempted without the identity or location it needs."""


class InvalidCoordinatesError(ValueError):
    """Latitude/longitude are not finite or out of range."""


class StoreError(Exception):
    """The incident store could not complete a request."""


class TransientStoreError(StoreError):
    """Retryable I/O failure talking to the store."""


class MalformedRecordError(StoreError):
    """The store returned a row that does not validate as an incident."""


class RateLimitError(StoreError):
    """Too many requests for one key inside the limiter window."""

    def __init__(self, message: str, retry_after: float) -> None:
        super().__init__(message)
        self.retry_after = retry_after
