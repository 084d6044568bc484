"""
HTTP client tests
Tests for core/http/client.py against an injected session.
"""
from datetime import timedelta

import pytest
import requests

from core.config import HttpConfig
from core.http import HttpClient, HttpError, HttpResponse


class FakeResponse:

    def __init__(self, status_code=200, content=b"{}", url="https://example.test"):
        self.status_code = status_code
        self.content = content
        self.headers = {"Content-Type": "application/json"}
        self.url = url
        self.elapsed = timedelta(milliseconds=5)


class FakeSession:

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []
        self.closed = False

    def request(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


class TestHttpClient:

    def test_get(self):
        session = FakeSession(FakeResponse(content=b'{"a": 1}'))
        client = HttpClient(session=session)

        response = client.get("https://example.test/x", params={"q": "1"})

        assert response.ok
        assert response.json() == {"a": 1}
        assert response.elapsed_ms == pytest.approx(5.0)
        assert session.calls[0]["method"] == "GET"
        assert session.calls[0]["params"] == {"q": "1"}
        assert session.calls[0]["timeout"] == 30.0

    def test_post_merges_headers(self):
        session = FakeSession()
        client = HttpClient(default_headers={"Authorization": "Bearer t"}, session=session)

        client.post("https://example.test", json={"k": "v"}, headers={"X-Extra": "1"}, timeout=2)

        call = session.calls[0]
        assert call["json"] == {"k": "v"}
        assert call["headers"] == {"Authorization": "Bearer t", "X-Extra": "1"}
        assert call["timeout"] == 2

    def test_transport_error_wrapped(self):
        session = FakeSession(error=requests.ConnectionError("refused"))
        with pytest.raises(HttpError, match="refused"):
            HttpClient(session=session).get("https://example.test")

    def test_from_config_sets_user_agent(self):
        client = HttpClient.from_config(HttpConfig(timeout=5, user_agent="ua/1"), {"X": "y"})
        assert client.timeout == 5
        assert client.default_headers == {"User-Agent": "ua/1", "X": "y"}

    def test_context_manager_closes_session(self):
        session = FakeSession()
        with HttpClient(session=session) as client:
            client.get("https://example.test")
        assert session.closed


class TestHttpResponse:

    def test_raise_for_status(self):
        response = HttpResponse(status_code=404, content=b"missing", url="https://example.test")
        assert not response.ok
        with pytest.raises(HttpError) as exc:
            response.raise_for_status()
        assert exc.value.status_code == 404
        assert exc.value.response is response

    def test_text(self):
        assert HttpResponse(status_code=200, content="é".encode()).text == "é"
