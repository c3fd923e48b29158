import json

import pytest
import requests

from tracker_core import api, http_client
from tracker_core.errors import RequestFailed, UnexpectedStatusCode
from tracker_core.models import AuthTokens


class FakeResponse:
    def __init__(self, status_code=200, text="{}"):
        self.status_code = status_code
        self.text = text


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def fake_http(monkeypatch):
    fake = FakeHttp()
    monkeypatch.setattr(http_client, "http", fake)
    return fake


TOKENS = AuthTokens("csrf-1", "session-1")


def test_status_request_shape(config, fake_http):
    fake_http.response = FakeResponse(200, '{"currentState":"STOPPED"}')

    resp = api.send_request(config, api.STATUS, TOKENS)

    assert resp == api.ApiResponse(200, '{"currentState":"STOPPED"}')
    (method, url, kwargs), = fake_http.calls
    assert method == "POST"
    assert url == "https://acme.example.io/webapi/clock-screen/get"
    assert kwargs["headers"] == {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "x-csrf-token": "csrf-1",
        "Cookie": "_csrf_token=csrf-1; calamari.cloud.session=session-1",
    }
    assert json.loads(kwargs["data"]) == {}
    assert kwargs["timeout"] == 15


def test_specify_project_body(config, fake_http):
    api.send_request(config, api.specify_project(42), TOKENS)

    (_, url, kwargs), = fake_http.calls
    assert url.endswith("/webapi/clockin/workloging/from-beginning")
    assert json.loads(kwargs["data"]) == {"projectId": 42}


@pytest.mark.parametrize("route, path", [
    (api.START, "/webapi/clock-screen/clock-in"),
    (api.STOP, "/webapi/clock-screen/clock-out"),
])
def test_clock_routes(config, fake_http, route, path):
    api.send_request(config, route, TOKENS)
    assert fake_http.calls[0][1] == "https://acme.example.io" + path


def test_non_2xx_raises_with_label_code_and_body(config, fake_http):
    fake_http.response = FakeResponse(403, "forbidden")

    with pytest.raises(UnexpectedStatusCode) as exc:
        api.send_request(config, api.START, TOKENS)

    assert exc.value.label == "start tracker"
    assert exc.value.code == 403
    assert exc.value.body == "forbidden"
    assert str(exc.value) == "start tracker HTTP 403"


def test_transport_error_raises_request_failed(config, fake_http):
    fake_http.error = requests.Timeout("read timed out")

    with pytest.raises(RequestFailed) as exc:
        api.send_request(config, api.STATUS, TOKENS)

    assert exc.value.label == "status"
    assert "read timed out" in str(exc.value)


def test_timeout_is_configurable(fake_http):
    from tracker_core.config import with_defaults

    config = with_defaults({"baseUrl": "https://acme.example.io/", "requestTimeoutSec": 3})
    api.send_request(config, api.STATUS, TOKENS)

    (_, url, kwargs), = fake_http.calls
    assert url == "https://acme.example.io/webapi/clock-screen/get"
    assert kwargs["timeout"] == 3


def test_sessions_never_retry():
    session = http_client.create_session()
    try:
        adapter = session.get_adapter("https://acme.example.io")
        assert adapter.max_retries.total == 0
    finally:
        session.close()
