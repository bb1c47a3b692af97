"""Persisters: how a queue actually sends a batch."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, TYPE_CHECKING

from .errors import InvalidArgument, TransportFailure

if TYPE_CHECKING:
    from .connection import Connection


logger = logging.getLogger(__name__)


class Persister(ABC):
    """
    Sends one batch payload to the metrics service.

    Payloads look like ``{"measurements": [...], "tags": {...}, "time": 123}``
    where ``tags`` and ``time`` are optional.
    """

    @abstractmethod
    def persist(self, payload: dict[str, Any]) -> bool:
        """
        Persist a batch.

        Returns True on success. Transport problems are raised as
        MetricsError subclasses.
        """
        ...


class DirectPersister(Persister):
    """Posts batches straight to the measurements API."""

    def __init__(self, connection: Callable[[], Connection]):
        # Resolved per call so re-authentication picks up a fresh connection
        self._connection = connection

    def persist(self, payload: dict[str, Any]) -> bool:
        connection = self._connection()
        count = len(payload.get("measurements", []))
        logger.debug(f"Persisting batch of {count} measurements")
        connection.post(connection.build_url("measurements"), payload)
        return True


@dataclass
class TestPersister(Persister):
    """
    In-memory persister that records payloads instead of sending them.

    Set fail_on to a set of 1-based call numbers that should fail.
    """
    __test__ = False

    persisted: list[dict[str, Any]] = field(default_factory=list)
    fail_on: set[int] = field(default_factory=set)
    calls: int = field(default=0, init=False)

    def persist(self, payload: dict[str, Any]) -> bool:
        self.calls += 1
        if self.calls in self.fail_on:
            raise TransportFailure(f"Simulated failure on call {self.calls}")
        self.persisted.append(payload)
        return True

    @property
    def last_payload(self) -> dict[str, Any] | None:
        return self.persisted[-1] if self.persisted else None


PERSISTENCE_TYPES = ("direct", "test")


def create_persister(kind: str, connection: Callable[[], Connection]) -> Persister:
    """Build a persister by name ("direct" or "test")."""
    if kind == "direct":
        return DirectPersister(connection)
    if kind == "test":
        return TestPersister()
    raise InvalidArgument(f"Unknown persistence type {kind!r}, expected one of {PERSISTENCE_TYPES}")
