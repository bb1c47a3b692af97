"""
AppOptics Metrics Client Library

Submit measurements to, and query, the AppOptics metrics API.

Usage:
    # Client object (recommended)
    from appoptics_metrics import Client

    client = Client()
    client.authenticate("my-token")

    # Submit immediately
    client.submit(cpu=54)
    client.submit({"cpu": {"source": "myapp", "value": 75}})

    # Queue measurements and send them in batches
    queue = client.new_queue(per_request=300, tags={"host": "web-1"})
    queue.add({"disk.free": 1223121})
    queue.add(memory=2321)
    queue.submit()

    # Query
    series = client.get_series("cpu", resolution=60, duration=3600)

    # Functional API on a default client (also available)
    import appoptics_metrics

    appoptics_metrics.authenticate("my-token")
    appoptics_metrics.submit(cpu=54)
"""

__version__ = "0.1.0"

from .annotator import Annotator
from .client import (
    # Core classes
    Client,
    get_default_client,
    # Convenience functions
    annotate,
    authenticate,
    delete_metrics,
    get_composite,
    get_measurements,
    get_metric,
    get_series,
    metrics,
    submit,
    update_metric,
    update_metrics,
)
from .config import ClientConfig
from .connection import Connection
from .errors import (
    ClientError,
    CredentialsMissing,
    Forbidden,
    InvalidArgument,
    InvalidMeasureTime,
    MetricsError,
    NoMetricsProvided,
    NormalizationFailure,
    NotFound,
    NotMergeable,
    PersisterRejected,
    ServerError,
    TransportFailure,
    Unauthorized,
)
from .measurements import MIN_MEASURE_TIME, MeasurementEntry
from .persistence import DirectPersister, Persister, TestPersister
from .queue import FailedBatch, Queue

__all__ = [
    # Core classes
    "Client",
    "ClientConfig",
    "Queue",
    "Connection",
    "Annotator",
    "get_default_client",
    # Persistence
    "Persister",
    "DirectPersister",
    "TestPersister",
    # Data types
    "MeasurementEntry",
    "FailedBatch",
    "MIN_MEASURE_TIME",
    # Convenience functions
    "annotate",
    "authenticate",
    "delete_metrics",
    "get_composite",
    "get_measurements",
    "get_metric",
    "get_series",
    "metrics",
    "submit",
    "update_metric",
    "update_metrics",
    # Exceptions
    "MetricsError",
    "CredentialsMissing",
    "NoMetricsProvided",
    "InvalidArgument",
    "NormalizationFailure",
    "InvalidMeasureTime",
    "NotMergeable",
    "PersisterRejected",
    "TransportFailure",
    "ClientError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "ServerError",
]
