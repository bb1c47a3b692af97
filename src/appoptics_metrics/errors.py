"""Exception types raised by the metrics client."""

from __future__ import annotations

from typing import Any


class MetricsError(Exception):
    """Base exception for metrics client errors."""
    pass


class CredentialsMissing(MetricsError):
    """No API key set before a network operation."""
    def __init__(self, message: str = "API key must be set before making requests"):
        super().__init__(message)


class NoMetricsProvided(MetricsError):
    """Delete/update called without any target metric names."""
    pass


class PersisterRejected(MetricsError):
    """Persister returned a falsy result instead of raising."""
    pass


class NotMergeable(MetricsError):
    """Object cannot be merged into a queue."""
    pass


class InvalidArgument(MetricsError, ValueError):
    """Malformed call shape or missing required option."""
    pass


class NormalizationFailure(InvalidArgument):
    """A raw measurement could not be resolved into a canonical entry."""
    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class InvalidMeasureTime(NormalizationFailure):
    """Measure time is earlier than the minimum accepted epoch."""
    pass


class TransportFailure(MetricsError):
    """
    Request failed at the HTTP level.

    status_code is None when no response was received (connection
    refused, timeout, ...).
    """
    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ClientError(TransportFailure):
    """4xx response not otherwise classified."""
    pass


class Unauthorized(ClientError):
    """401 - bad or missing credentials."""
    pass


class Forbidden(ClientError):
    """403 - credentials lack access."""
    pass


class NotFound(ClientError):
    """404 - named resource does not exist."""
    pass


class ServerError(TransportFailure):
    """5xx response."""
    pass


def error_for_status(status_code: int, message: str, body: Any = None) -> TransportFailure:
    """Map an HTTP error status to the matching exception instance."""
    if status_code == 401:
        cls = Unauthorized
    elif status_code == 403:
        cls = Forbidden
    elif status_code == 404:
        cls = NotFound
    elif 400 <= status_code < 500:
        cls = ClientError
    elif status_code >= 500:
        cls = ServerError
    else:
        cls = TransportFailure
    return cls(message, status_code=status_code, body=body)
