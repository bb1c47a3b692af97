"""Annotation streams and events."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING
from urllib.parse import quote

from .measurements import to_epoch

if TYPE_CHECKING:
    from .client import Client


def _epoch_options(options: dict[str, Any]) -> dict[str, Any]:
    query = dict(options)
    for key in ("start_time", "end_time"):
        if key in query:
            query[key] = to_epoch(query[key])
    return query


class Annotator:
    """
    Creates and reads annotation events on named streams.

    Usage:
        annotator = client.annotator
        annotator.add("deployment", "deployed v68", source="box1")
        events = annotator.fetch("deployment", start_time=time.time() - 60)
    """

    def __init__(self, client: Client | None = None):
        if client is None:
            from .client import get_default_client
            client = get_default_client()
        self.client = client

    def add(self, stream: str, title: str, **options: Any) -> dict[str, Any]:
        """
        Add an event to a stream, creating the stream if needed.

        Options include source, description, links, start_time and end_time
        (datetime or epoch seconds).
        """
        body = {"title": title, **_epoch_options(options)}
        conn = self.client.connection
        return conn.read_json(conn.post(conn.build_url(self._path(stream)), body))

    def fetch(self, stream: str, **options: Any) -> dict[str, Any]:
        """Stream attributes, plus events when a time range is given."""
        conn = self.client.connection
        url = conn.build_url(self._path(stream), _epoch_options(options))
        return conn.read_json(conn.get(url))

    def fetch_event(self, stream: str, event_id: int | str) -> dict[str, Any]:
        conn = self.client.connection
        return conn.read_json(conn.get(conn.build_url(self._path(stream, event_id))))

    def list_streams(self, **options: Any) -> dict[str, Any]:
        """All annotation streams (optionally filtered by ``name``)."""
        conn = self.client.connection
        return conn.read_json(conn.get(conn.build_url("annotations", options)))

    def update_event(self, stream: str, event_id: int | str, **options: Any) -> dict[str, Any]:
        conn = self.client.connection
        url = conn.build_url(self._path(stream, event_id))
        return conn.read_json(conn.put(url, _epoch_options(options)))

    def delete(self, stream: str) -> bool:
        """Delete a stream and all its events."""
        conn = self.client.connection
        conn.delete(conn.build_url(self._path(stream)))
        return True

    def delete_event(self, stream: str, event_id: int | str) -> bool:
        conn = self.client.connection
        conn.delete(conn.build_url(self._path(stream, event_id)))
        return True

    @staticmethod
    def _path(stream: str, event_id: int | str | None = None) -> str:
        path = f"annotations/{quote(str(stream), safe='')}"
        if event_id is not None:
            path = f"{path}/{quote(str(event_id), safe='')}"
        return path
