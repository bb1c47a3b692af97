"""HTTP connection to the metrics API."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Mapping

import httpx

from . import params_encoder
from .errors import TransportFailure, error_for_status


logger = logging.getLogger(__name__)

DEFAULT_API_ENDPOINT = "https://api.appoptics.com"
API_VERSION = "v1"

DEFAULT_TIMEOUT = 30.0
DEFAULT_OPEN_TIMEOUT = 20.0
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_BACKOFF = 0.5

# Only errors where the request never reached the server are retried,
# so a batch is sent at most once.
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


class Connection:
    """
    Authenticated connection to the metrics API.

    Wraps an httpx.Client (created lazily) and maps non-2xx responses to
    TransportFailure subclasses.

    Usage:
        conn = Connection(api_key="...")
        response = conn.get(conn.build_url("metrics", {"name": "cpu"}))
        data = conn.read_json(response)
    """

    def __init__(
        self,
        api_key: str,
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        *,
        user_agent: str | None = None,
        proxy: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
        retry_count: int = DEFAULT_RETRY_COUNT,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF,
        custom_headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.api_endpoint = api_endpoint.rstrip("/")
        self.user_agent = user_agent
        self.proxy = proxy
        self.timeout = timeout
        self.open_timeout = open_timeout
        self.retry_count = retry_count
        self.retry_backoff = retry_backoff
        self.custom_headers = dict(custom_headers or {})
        self._transport = transport
        self._sleep = sleep
        self._http: httpx.Client | None = None

    @property
    def http(self) -> httpx.Client:
        """Underlying httpx client."""
        if self._http is None:
            headers = {"Accept": "application/json", **self.custom_headers}
            if self.user_agent:
                headers["User-Agent"] = self.user_agent
            kwargs: dict[str, Any] = {
                "auth": (self.api_key, ""),
                "headers": headers,
                "timeout": httpx.Timeout(self.timeout, connect=self.open_timeout),
            }
            if self.proxy:
                kwargs["proxy"] = self.proxy
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._http = httpx.Client(**kwargs)
        return self._http

    def build_url(self, path: str, query: Mapping[str, Any] | None = None) -> str:
        """Full URL for an API path, with query encoded by params_encoder."""
        url = f"{self.api_endpoint}/{API_VERSION}/{path.lstrip('/')}"
        if query:
            encoded = params_encoder.encode(query)
            if encoded:
                url = f"{url}?{encoded}"
        return url

    def get(self, url: str) -> httpx.Response:
        return self._request("GET", url)

    def post(self, url: str, body: Any) -> httpx.Response:
        return self._request("POST", url, body)

    def put(self, url: str, body: Any) -> httpx.Response:
        return self._request("PUT", url, body)

    def delete(self, url: str, body: Any = None) -> httpx.Response:
        """DELETE; anything but 204 No Content is a failure."""
        response = self._request("DELETE", url, body)
        if response.status_code != 204:
            raise TransportFailure(
                f"DELETE {url} expected 204, got {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    def read_json(self, response: httpx.Response) -> Any:
        """Parse a JSON response body (empty body gives an empty dict)."""
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(
                f"Malformed JSON in response from {response.request.url}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def close(self) -> None:
        if self._http is not None:
            self._http.close()
            self._http = None

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(self, method: str, url: str, body: Any = None) -> httpx.Response:
        content = None
        headers = {}
        if body is not None:
            content = json.dumps(body)
            headers["Content-Type"] = "application/json"

        attempt = 0
        while True:
            logger.debug(f"{method} {url} (attempt {attempt + 1})")
            try:
                response = self.http.request(method, url, content=content, headers=headers)
                break
            except RETRYABLE_ERRORS as e:
                if attempt >= self.retry_count:
                    raise TransportFailure(f"{method} {url} failed after {attempt + 1} attempts: {e}") from e
                delay = self.retry_backoff * (2 ** attempt)
                logger.warning(f"{method} {url} failed ({e}), retrying in {delay:.2f}s")
                self._sleep(delay)
                attempt += 1
            except httpx.HTTPError as e:
                raise TransportFailure(f"{method} {url} failed: {e}") from e

        self._raise_for_status(method, url, response)
        return response

    def _raise_for_status(self, method: str, url: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = response.text
        raise error_for_status(
            response.status_code,
            f"{method} {url} returned {response.status_code}: {body}",
            body,
        )
