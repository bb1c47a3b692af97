"""Offset-paginated listing endpoints."""

from __future__ import annotations

import logging
from typing import Any, Mapping, TYPE_CHECKING

if TYPE_CHECKING:
    from .connection import Connection


logger = logging.getLogger(__name__)

PAGE_LENGTH = 100


def paginated(
    connection: Connection,
    path: str,
    key: str,
    query: Mapping[str, Any] | None = None,
) -> list[Any]:
    """
    Fetch every page of a listing.

    Pages are requested with ``offset``/``length`` until the ``found``
    count from the response's ``query`` block is reached.

    Args:
        connection: Connection to use
        path: API path, e.g. "metrics"
        key: Response key holding the page items, e.g. "metrics"
        query: Extra query parameters (filters)
    """
    results: list[Any] = []
    offset = 0
    while True:
        page_query = {**(query or {}), "offset": offset, "length": PAGE_LENGTH}
        data = connection.read_json(connection.get(connection.build_url(path, page_query)))
        items = data.get(key, [])
        results.extend(items)
        offset += len(items)

        found = data.get("query", {}).get("found", offset)
        if not items or offset >= found:
            break
        logger.debug(f"Fetched {offset}/{found} {key}, requesting next page")
    return results


def paginated_metrics(connection: Connection, query: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
    return paginated(connection, "metrics", "metrics", query)
