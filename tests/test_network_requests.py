import pytest
import requests

from services.network_requests import PakWheelsClient
from services.session_pool import SessionIdentity
from src.errors import TransportError


class FakeResponse:
    def __init__(self, status_code=200, text="<html></html>", url=None):
        self.status_code = status_code
        self.text = text
        self.url = url


class FakeSession:
    def __init__(self, result):
        self.result = result
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append((url, headers, timeout))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    def close(self):
        pass


def identity_with(result):
    identity = SessionIdentity(1)
    identity.session = FakeSession(result)
    return identity


def test_fetch_returns_body_and_sends_referer():
    identity = identity_with(FakeResponse(200, "<ul></ul>"))
    result = PakWheelsClient(timeout=5).fetch(
        "https://www.pakwheels.com/used-cars/?page=2", identity,
        referer="https://www.pakwheels.com/used-cars/"
    )
    assert result.text == "<ul></ul>"
    assert result.status_code == 200
    url, headers, timeout = identity.session.requests[0]
    assert headers["Referer"] == "https://www.pakwheels.com/used-cars/"
    assert timeout == 5
    assert identity.requests_made == 1


@pytest.mark.parametrize("error,kind", [
    (requests.exceptions.ReadTimeout("slow"), "timeout"),
    (requests.exceptions.ConnectionError("reset"), "connection"),
    (requests.exceptions.ProxyError("bad proxy"), "connection"),
    (requests.exceptions.TooManyRedirects("loop"), "other"),
])
def test_request_exceptions_become_transport_errors(error, kind):
    with pytest.raises(TransportError) as exc_info:
        PakWheelsClient().fetch("https://www.pakwheels.com/used-cars/", identity_with(error))
    assert exc_info.value.kind == kind
    assert not exc_info.value.taints_identity


@pytest.mark.parametrize("status,taints", [(403, True), (429, True), (500, False), (404, False)])
def test_non_2xx_status(status, taints):
    with pytest.raises(TransportError) as exc_info:
        PakWheelsClient().fetch("https://www.pakwheels.com/used-cars/", identity_with(FakeResponse(status)))
    assert exc_info.value.status_code == status
    assert exc_info.value.kind == "http"
    assert exc_info.value.taints_identity is taints
