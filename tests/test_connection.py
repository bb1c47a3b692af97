"""Tests for the HTTP connection."""

import httpx
import pytest

from appoptics_metrics import (
    Connection,
    Forbidden,
    ServerError,
    TransportFailure,
    Unauthorized,
)


def make_connection(handler, **kwargs):
    kwargs.setdefault("retry_count", 0)
    return Connection(
        "test-token",
        "https://api.test/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestBuildUrl:
    def test_path_only(self):
        conn = Connection("t", "https://api.test/")
        assert conn.build_url("metrics") == "https://api.test/v1/metrics"

    def test_with_tags(self):
        conn = Connection("t", "https://api.test")
        url = conn.build_url("measurements/cpu", {"resolution": 60, "tags": {"host": ["a", "b"]}})
        assert url == "https://api.test/v1/measurements/cpu?resolution=60&tags[host]=a&tags[host]=b"

    def test_empty_query(self):
        conn = Connection("t", "https://api.test")
        assert conn.build_url("metrics", {}) == "https://api.test/v1/metrics"


class TestRequests:
    def test_basic_auth_and_user_agent(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        conn = make_connection(handler, user_agent="ua/1.0", custom_headers={"X-Team": "ops"})
        conn.get(conn.build_url("metrics"))
        headers = seen[0].headers
        assert headers["Authorization"].startswith("Basic ")
        assert headers["User-Agent"] == "ua/1.0"
        assert headers["X-Team"] == "ops"

    def test_json_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(202)

        conn = make_connection(handler)
        conn.post(conn.build_url("measurements"), {"measurements": []})
        assert seen[0].headers["Content-Type"] == "application/json"
        assert seen[0].content == b'{"measurements": []}'

    @pytest.mark.parametrize("status, error", [
        (401, Unauthorized),
        (403, Forbidden),
        (503, ServerError),
    ])
    def test_error_mapping(self, status, error):
        conn = make_connection(lambda request: httpx.Response(status, json={"errors": "nope"}))
        with pytest.raises(error) as exc:
            conn.get(conn.build_url("metrics"))
        assert exc.value.status_code == status
        assert exc.value.body == {"errors": "nope"}

    def test_error_with_text_body(self):
        conn = make_connection(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(ServerError) as exc:
            conn.get(conn.build_url("metrics"))
        assert exc.value.body == "oops"


class TestRetries:
    def test_retries_connect_errors(self):
        attempts = []
        sleeps = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={"ok": True})

        conn = make_connection(handler, retry_count=2, retry_backoff=0.1, sleep=sleeps.append)
        response = conn.get(conn.build_url("metrics"))
        assert conn.read_json(response) == {"ok": True}
        assert len(attempts) == 3
        assert sleeps == [0.1, 0.2]

    def test_gives_up(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        conn = make_connection(handler, retry_count=1, sleep=lambda s: None)
        with pytest.raises(TransportFailure) as exc:
            conn.get(conn.build_url("metrics"))
        assert exc.value.status_code is None

    def test_read_timeout_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ReadTimeout("slow", request=request)

        conn = make_connection(handler, retry_count=3, sleep=lambda s: None)
        with pytest.raises(TransportFailure):
            conn.post(conn.build_url("measurements"), {"measurements": []})
        assert len(attempts) == 1

    def test_server_error_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503, text="unavailable")

        conn = make_connection(handler, retry_count=3, sleep=lambda s: None)
        with pytest.raises(ServerError):
            conn.post(conn.build_url("measurements"), {"measurements": []})
        assert len(attempts) == 1


class TestReadJson:
    def test_empty_body(self):
        conn = make_connection(lambda request: httpx.Response(204))
        assert conn.read_json(conn.delete(conn.build_url("metrics"), {"names": ["a"]})) == {}

    def test_malformed(self):
        conn = make_connection(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(TransportFailure):
            conn.read_json(conn.get(conn.build_url("metrics")))
