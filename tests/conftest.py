"""Shared test fixtures for the metrics client tests.

HTTP is faked with httpx.MockTransport; no test touches the network.
"""

import json
import time

import httpx
import pytest

from appoptics_metrics import Client, ClientConfig, TestPersister


class FakeClock:
    """Deterministic time source."""

    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAPI:
    """
    Records requests and answers them from canned responses.

    Responses are keyed by (method, path). A value may be an
    httpx.Response, a callable taking the request, or a list of either
    (consumed in order, last one repeats).
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.responses: dict[tuple[str, str], object] = {}

    def respond(self, method: str, path: str, status: int = 200, json_body=None) -> None:
        self.responses[(method, path)] = httpx.Response(status, json=json_body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get((request.method, request.url.path))
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if callable(response):
            return response(request)
        if response is not None:
            return response
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(200, json={})

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(float(int(time.time())))


@pytest.fixture
def persister() -> TestPersister:
    return TestPersister()


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


def make_config(**overrides) -> ClientConfig:
    """Config with every field set explicitly so APPOPTICS_* env vars don't leak in."""
    values = dict(
        api_key="test-token",
        api_endpoint="https://api.test",
        timeout=5.0,
        open_timeout=5.0,
        retry_count=0,
        proxy=None,
        per_request=500,
        persistence="direct",
    )
    values.update(overrides)
    return ClientConfig(**values)


@pytest.fixture
def client(api, clock) -> Client:
    client = Client(
        config=make_config(),
        transport=httpx.MockTransport(api.handler),
        clock=clock,
    )
    yield client
    client.close()
