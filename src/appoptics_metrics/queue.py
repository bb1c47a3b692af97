"""Batching queue for measurement submission."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, Mapping, TYPE_CHECKING

from .errors import InvalidArgument, MetricsError, NotMergeable, PersisterRejected, TransportFailure
from .measurements import MeasurementEntry, check_measure_time, normalize
from .persistence import Persister

if TYPE_CHECKING:
    from .client import Client


logger = logging.getLogger(__name__)

DEFAULT_PER_REQUEST = 500


@dataclass(frozen=True)
class FailedBatch:
    """A chunk that could not be persisted, with the error that stopped it."""
    entries: tuple[MeasurementEntry, ...]
    error: MetricsError


@dataclass
class Queue:
    """
    Accumulates measurements and submits them in size-bounded batches.

    Entries leave the queue only once their batch has been persisted, unless
    clear_failures is set, in which case failed batches are dropped too.

    Usage:
        queue = client.new_queue(per_request=100, tags={"host": "web-1"})
        queue.add(cpu=54)
        queue.add({"disk.free": {"value": 1223121, "tags": {"mount": "/"}}})
        if not queue.submit():
            for batch in queue.failed_batches:
                ...

    Not thread-safe; use one queue per thread.
    """
    client: Client | None = None
    persister: Persister | None = None

    # Maximum entries per outbound request
    per_request: int = DEFAULT_PER_REQUEST

    # Defaults applied to every entry
    tags: dict[str, str] = field(default_factory=dict)
    source: str | None = None
    prefix: str | None = None

    # Batch-level time; when unset and skip_measurement_times is False,
    # batches are stamped with the clock at send time
    measure_time: int | None = None
    skip_measurement_times: bool = False

    # Drop failed batches instead of keeping them for retry
    clear_failures: bool = False

    # Submit from add() once either threshold is reached
    autosubmit_count: int | None = None
    autosubmit_interval: float | None = None

    clock: Callable[[], float] = time.time

    _pending: list[MeasurementEntry] = field(default_factory=list, init=False)
    _failed_batches: list[FailedBatch] = field(default_factory=list, init=False)
    _last_submit_time: float | None = field(default=None, init=False)
    _created_at: float = field(default=0.0, init=False)

    def __post_init__(self):
        if (
            not isinstance(self.per_request, int)
            or isinstance(self.per_request, bool)
            or self.per_request < 1
        ):
            raise InvalidArgument(f"per_request must be a positive integer, got {self.per_request!r}")
        if self.measure_time is not None:
            self.measure_time = check_measure_time(self.measure_time)
        self.tags = {str(k): str(v) for k, v in (self.tags or {}).items()}
        self._created_at = self.clock()

    def add(self, measurements: Mapping[Any, Any] | None = None, /, **kwargs: Any) -> Queue:
        """
        Queue one or more measurements.

        Accepts a mapping and/or keyword arguments of metric name to either
        a number or a mapping with ``value`` and optional ``source``,
        ``tags``, ``measure_time`` and ``period``. The call is atomic: if any
        entry is invalid, nothing is queued.

        Raises:
            NormalizationFailure: On an invalid entry
        """
        raw = dict(measurements or {})
        raw.update(kwargs)
        entries = normalize(raw, prefix=self.prefix)
        self._pending.extend(self._apply_defaults(entry) for entry in entries)
        self._autosubmit_check()
        return self

    def merge(self, other: Queue | list[MeasurementEntry] | tuple[MeasurementEntry, ...]) -> Queue:
        """Append the pending entries of another queue, or a list of entries."""
        if isinstance(other, Queue):
            entries = other.pending
        elif isinstance(other, (list, tuple)) and all(isinstance(e, MeasurementEntry) for e in other):
            entries = list(other)
        else:
            raise NotMergeable(f"Cannot merge {type(other).__name__} into a queue")
        self._pending.extend(self._apply_defaults(entry) for entry in entries)
        return self

    def submit(self) -> bool:
        """
        Persist all pending entries, one request per chunk of per_request.

        Chunks are sent in insertion order. A failed chunk is recorded in
        failed_batches; without clear_failures the remaining chunks are not
        attempted and stay pending.

        Returns:
            True if every chunk was persisted (or nothing was pending)
        """
        self._failed_batches = []
        if not self._pending:
            return True

        persister = self.get_persister()
        chunks = list(self._chunks())
        # chunks before this index are persisted or dropped
        done = 0

        try:
            for index, chunk in enumerate(chunks):
                payload = self._build_payload(chunk)
                logger.debug(f"Submitting chunk {index + 1}/{len(chunks)} ({len(chunk)} entries)")
                try:
                    if not persister.persist(payload):
                        raise PersisterRejected(f"Persister rejected chunk {index + 1}")
                except (TransportFailure, PersisterRejected) as e:
                    logger.warning(f"Chunk {index + 1}/{len(chunks)} failed: {e}")
                    self._failed_batches.append(FailedBatch(tuple(chunk), e))
                    if not self.clear_failures:
                        break
                done = index + 1
        finally:
            self._pending = [entry for rest in chunks[done:] for entry in rest]
            self._last_submit_time = self.clock()

        if self._failed_batches:
            logger.warning(
                f"Submit finished with {len(self._failed_batches)} failed chunk(s), "
                f"{len(self._pending)} entries still pending"
            )
            return False
        logger.info(f"Submitted {len(chunks)} chunk(s)")
        return True

    def get_persister(self) -> Persister:
        """Persister in use, created from the client on first use."""
        if self.persister is None:
            if self.client is None:
                from .client import get_default_client
                self.client = get_default_client()
            self.persister = self.client.create_persister()
        return self.persister

    def clear(self) -> None:
        """Drop all pending entries."""
        self._pending = []

    flush = clear

    @property
    def pending(self) -> list[MeasurementEntry]:
        """Entries waiting to be submitted, in insertion order."""
        return list(self._pending)

    @property
    def failed_batches(self) -> list[FailedBatch]:
        """Failures from the most recent submit."""
        return list(self._failed_batches)

    @property
    def queued(self) -> dict[str, Any]:
        """Payload the pending entries would be sent as in a single batch."""
        if not self._pending:
            return {}
        return self._build_payload(self._pending, stamp=False)

    @property
    def size(self) -> int:
        return len(self._pending)

    @property
    def empty(self) -> bool:
        return not self._pending

    @property
    def last_submit_time(self) -> float | None:
        return self._last_submit_time

    def __len__(self) -> int:
        return len(self._pending)

    def _apply_defaults(self, entry: MeasurementEntry) -> MeasurementEntry:
        tags = {**self.tags, **entry.tags}
        source = entry.source if entry.source is not None else self.source
        return replace(entry, tags=tags, source=source)

    def _chunks(self) -> Iterator[list[MeasurementEntry]]:
        for start in range(0, len(self._pending), self.per_request):
            yield self._pending[start:start + self.per_request]

    def _build_payload(self, chunk: list[MeasurementEntry], stamp: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {"measurements": [entry.to_dict() for entry in chunk]}
        if self.tags:
            payload["tags"] = dict(self.tags)
        if self.measure_time is not None:
            payload["time"] = self.measure_time
        elif stamp and not self.skip_measurement_times:
            payload["time"] = int(self.clock())
        return payload

    def _autosubmit_check(self) -> None:
        if self.autosubmit_count and len(self._pending) >= self.autosubmit_count:
            logger.debug(f"Autosubmitting {len(self._pending)} entries (count threshold)")
            self.submit()
        elif self.autosubmit_interval:
            since = self._last_submit_time if self._last_submit_time is not None else self._created_at
            if self.clock() - since >= self.autosubmit_interval:
                logger.debug("Autosubmitting (interval elapsed)")
                self.submit()
