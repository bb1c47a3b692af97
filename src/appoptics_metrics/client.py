"""Main client class and convenience functions."""

from __future__ import annotations

import logging
import platform
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import quote

import httpx

from . import collection
from .annotator import Annotator
from .config import ClientConfig
from .connection import Connection
from .errors import CredentialsMissing, InvalidArgument, NoMetricsProvided
from .measurements import to_epoch
from .persistence import PERSISTENCE_TYPES, Persister, create_persister
from .queue import Queue


logger = logging.getLogger(__name__)


def _time_query(options: Mapping[str, Any]) -> dict[str, Any]:
    """Copy query options, converting datetime start/end times to epoch seconds."""
    query = dict(options)
    for key in ("start_time", "end_time"):
        if key in query:
            query[key] = to_epoch(query[key])
    return query


@dataclass
class Client:
    """
    Client for the metrics API.

    Usage:
        client = Client()
        client.authenticate("my-token")
        client.submit(cpu=54)
        series = client.get_series("cpu", resolution=60, duration=3600)

        # Or with custom config
        client = Client(config=ClientConfig(
            api_key="my-token",
            api_endpoint="https://api.example.com",
        ))

        # Batched submission
        queue = client.new_queue(tags={"host": "web-1"})
        queue.add(cpu=54, memory=2321)
        queue.submit()
    """
    config: ClientConfig = field(default_factory=ClientConfig)

    # Custom httpx transport (mocking, connection pooling policy)
    transport: httpx.BaseTransport | None = None

    # Time source handed to queues
    clock: Callable[[], float] = time.time

    _connection: Connection | None = field(default=None, init=False)
    _queue: Queue | None = field(default=None, init=False)
    _annotator: Annotator | None = field(default=None, init=False)
    _agent_identifier: str = field(default="", init=False)
    _custom_user_agent: str | None = field(default=None, init=False)

    # -- credentials and connection -----------------------------------------

    def authenticate(self, api_key: str) -> None:
        """Set the API token, discarding any existing connection."""
        self.flush_authentication()
        self.config.api_key = api_key

    def flush_authentication(self) -> None:
        """Purge current credentials and connection."""
        self.config.api_key = None
        self._reset_connection()

    @property
    def api_key(self) -> str | None:
        return self.config.api_key

    @property
    def api_endpoint(self) -> str:
        return self.config.api_endpoint

    @api_endpoint.setter
    def api_endpoint(self, endpoint: str) -> None:
        self.config.api_endpoint = endpoint
        self._reset_connection()

    @property
    def connection(self) -> Connection:
        """
        Current connection, built on first use.

        Raises:
            CredentialsMissing: If no API key is set
        """
        if not self.config.api_key:
            raise CredentialsMissing()
        if self._connection is None:
            self._connection = Connection(
                self.config.api_key,
                self.config.api_endpoint,
                user_agent=self.user_agent,
                proxy=self.config.proxy,
                timeout=self.config.timeout,
                open_timeout=self.config.open_timeout,
                retry_count=self.config.retry_count,
                retry_backoff=self.config.retry_backoff,
                custom_headers=self.config.custom_headers,
                transport=self.transport,
            )
            logger.debug(f"Connection created for {self.config.api_endpoint}")
        return self._connection

    def agent_identifier(self, *args: str) -> str:
        """
        Get or set the agent identifier sent in the User-Agent header.

        agent_identifier()                          -> current value
        agent_identifier("flintstone/0.5 (dev_id:fred)")
        agent_identifier("flintstone", "0.5", "fred")
        agent_identifier("")                        -> remove
        """
        if len(args) == 1:
            self._agent_identifier = args[0]
            self._reset_connection()
        elif len(args) == 3:
            self._agent_identifier = f"{args[0]}/{args[1]} (dev_id:{args[2]})"
            self._reset_connection()
        elif len(args) != 0:
            raise InvalidArgument("agent_identifier takes 0, 1 or 3 arguments")
        return self._agent_identifier

    @property
    def custom_user_agent(self) -> str | None:
        return self._custom_user_agent

    @custom_user_agent.setter
    def custom_user_agent(self, agent: str | None) -> None:
        """Override the whole User-Agent; see agent_identifier for the usual case."""
        self._custom_user_agent = agent
        self._reset_connection()

    @property
    def user_agent(self) -> str:
        if self._custom_user_agent:
            return self._custom_user_agent
        from . import __version__
        ua = (
            f"appoptics-metrics-python/{__version__} "
            f"(python {platform.python_version()}; {platform.system().lower()})"
        )
        if self._agent_identifier:
            ua = f"{ua} {self._agent_identifier}"
        return ua

    # -- persistence and queues ---------------------------------------------

    @property
    def persistence(self) -> str:
        """Persistence type used by new persisters ("direct" or "test")."""
        return self.config.persistence

    @persistence.setter
    def persistence(self, kind: str) -> None:
        if kind not in PERSISTENCE_TYPES:
            raise InvalidArgument(f"Unknown persistence type {kind!r}, expected one of {PERSISTENCE_TYPES}")
        self.config.persistence = kind
        if self._queue is not None:
            self._queue.persister = None

    @property
    def persister(self) -> Persister | None:
        """Persister of the default submit queue, if one has been used."""
        return self._queue.persister if self._queue is not None else None

    def create_persister(self) -> Persister:
        return create_persister(self.persistence, lambda: self.connection)

    def new_queue(self, **options: Any) -> Queue:
        """Create a new queue which uses this client."""
        options.setdefault("per_request", self.config.per_request)
        options.setdefault("clock", self.clock)
        return Queue(client=self, **options)

    def submit(self, measurements: Mapping[Any, Any] | None = None, /, **kwargs: Any) -> bool:
        """
        Submit measurements immediately.

        Uses a fire-and-forget queue: failed batches are dropped and
        reported through the return value and the queue's failed_batches.
        """
        if self._queue is None:
            self._queue = self.new_queue(skip_measurement_times=True, clear_failures=True)
        self._queue.add(measurements, **kwargs)
        return self._queue.submit()

    # -- metrics --------------------------------------------------------------

    def metrics(self, name: str | None = None) -> list[dict[str, Any]]:
        """List metrics, optionally only those whose name contains ``name``."""
        query = {"name": name} if name else {}
        return collection.paginated_metrics(self.connection, query)

    def get_metric(self, name: str, **options: Any) -> dict[str, Any]:
        """
        Retrieve a metric, with data points when query options are given.

        Args:
            name: Metric name
            **options: Query options (count, start_time, end_time,
                resolution, tags, ...). resolution defaults to 1.
        """
        query = _time_query(options)
        if query:
            query.setdefault("resolution", 1)
        conn = self.connection
        url = conn.build_url(f"metrics/{quote(str(name), safe='')}", query)
        return conn.read_json(conn.get(url))

    def get_series(self, metric_name: str, **options: Any) -> Any:
        """
        Retrieve series of measurements for a metric.

        Requires at least one of resolution, duration or start_time.
        resolution defaults to 1 and, without a time range, duration
        defaults to 3600.
        """
        if not options:
            raise InvalidArgument("resolution and duration or start_time must be set")
        query = _time_query(options)
        query.setdefault("resolution", 1)
        if "start_time" not in query and "end_time" not in query:
            query.setdefault("duration", 3600)
        conn = self.connection
        url = conn.build_url(f"measurements/{quote(str(metric_name), safe='')}", query)
        return conn.read_json(conn.get(url)).get("series")

    def get_measurements(self, metric_name: str, **options: Any) -> Any:
        """Data points for a metric; needs at least start_time or count."""
        if not options:
            raise InvalidArgument("you must provide at least a start_time or count")
        return self.get_metric(metric_name, **options).get("measurements")

    def get_composite(self, definition: str, **options: Any) -> dict[str, Any]:
        """
        Retrieve measurements for a composite metric definition.

        start_time and resolution are required, end_time is optional.
        """
        if not options.get("start_time") or not options.get("resolution"):
            raise InvalidArgument("You must provide a start_time and resolution")
        query = _time_query(options)
        query["compose"] = definition
        conn = self.connection
        return conn.read_json(conn.get(conn.build_url("metrics", query)))

    def update_metric(self, name: str, **attributes: Any) -> dict[str, Any]:
        """Update (or create) a single metric with the given attributes."""
        conn = self.connection
        url = conn.build_url(f"metrics/{quote(str(name), safe='')}")
        return conn.read_json(conn.put(url, attributes))

    def update_metrics(self, **params: Any) -> dict[str, Any]:
        """
        Update multiple metrics.

        Example:
            client.update_metrics(names="foo*", exclude=["foobar"], display_min=0)
        """
        if not params.get("names"):
            raise NoMetricsProvided("Metric names missing")
        conn = self.connection
        return conn.read_json(conn.put(conn.build_url("metrics"), params))

    def delete_metrics(self, *metric_names: str, **params: Any) -> bool:
        """
        Permanently delete metrics.

        Example:
            client.delete_metrics("foo", "bar")
            client.delete_metrics(names="foo*", exclude=["foobar"])
        """
        if metric_names:
            params["names"] = [str(name) for name in metric_names]
        if not params.get("names"):
            raise NoMetricsProvided("Metric name missing")
        conn = self.connection
        conn.delete(conn.build_url("metrics"), params)
        return True

    # -- snapshots and annotations ------------------------------------------

    def create_snapshot(self, **options: Any) -> dict[str, Any]:
        conn = self.connection
        return conn.read_json(conn.post(conn.build_url("snapshots"), options))

    def get_snapshot(self, snapshot_id: int | str) -> dict[str, Any]:
        """Retrieve a snapshot to check its progress or find its image_href."""
        conn = self.connection
        url = conn.build_url(f"snapshots/{quote(str(snapshot_id), safe='')}")
        return conn.read_json(conn.get(url))

    @property
    def annotator(self) -> Annotator:
        if self._annotator is None:
            self._annotator = Annotator(client=self)
        return self._annotator

    def annotate(self, stream: str, title: str, **options: Any) -> dict[str, Any]:
        return self.annotator.add(stream, title, **options)

    # -- lifecycle ------------------------------------------------------------

    def close(self) -> None:
        self._reset_connection()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _reset_connection(self) -> None:
        if self._connection is not None:
            self._connection.close()
        self._connection = None


# Module-level default client
_default_client: Client | None = None


def get_default_client() -> Client:
    """Get or create the default client."""
    global _default_client
    if _default_client is None:
        _default_client = Client()
    return _default_client


def authenticate(api_key: str) -> None:
    """Authenticate the default client."""
    get_default_client().authenticate(api_key)


def submit(measurements: Mapping[Any, Any] | None = None, /, **kwargs: Any) -> bool:
    """
    Submit measurements using the default client.

    Usage:
        import appoptics_metrics
        appoptics_metrics.authenticate("my-token")
        appoptics_metrics.submit(cpu=54)
    """
    return get_default_client().submit(measurements, **kwargs)


def metrics(name: str | None = None) -> list[dict[str, Any]]:
    return get_default_client().metrics(name)


def get_metric(name: str, **options: Any) -> dict[str, Any]:
    return get_default_client().get_metric(name, **options)


def get_series(metric_name: str, **options: Any) -> Any:
    return get_default_client().get_series(metric_name, **options)


def get_measurements(metric_name: str, **options: Any) -> Any:
    return get_default_client().get_measurements(metric_name, **options)


def get_composite(definition: str, **options: Any) -> dict[str, Any]:
    return get_default_client().get_composite(definition, **options)


def update_metric(name: str, **attributes: Any) -> dict[str, Any]:
    return get_default_client().update_metric(name, **attributes)


def update_metrics(**params: Any) -> dict[str, Any]:
    return get_default_client().update_metrics(**params)


def delete_metrics(*metric_names: str, **params: Any) -> bool:
    return get_default_client().delete_metrics(*metric_names, **params)


def annotate(stream: str, title: str, **options: Any) -> dict[str, Any]:
    return get_default_client().annotate(stream, title, **options)
