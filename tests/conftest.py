import json
from typing import Any, Callable, Dict, List, Union

import httpx
import pytest

from restaurant_intel.config.toast_settings import ToastCredentials
from restaurant_intel.security.guards import reset_rate_limits
from restaurant_intel.services.toast_auth import LOGIN_PATH
from restaurant_intel.services.toast_client import ToastPOSClient

BASE_URL = "https://toast.test"
RESTAURANT_GUID = "c227349d-7778-4ec1-a8a6-0a1b2c3d4e5f"
PRIMARY_SECRET = "primary-secret-value"

Route = Union[Callable[[httpx.Request], httpx.Response], Any]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeToast:
    """In-memory Toast API served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[httpx.Request] = []
        self.accepted_secrets = {PRIMARY_SECRET}
        self.expires_in = 3600
        self.logins = 0
        self.issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == LOGIN_PATH:
            return self._login(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def _login(self, request: httpx.Request) -> httpx.Response:
        self.logins += 1
        payload = json.loads(request.content)
        if payload.get("clientSecret") not in self.accepted_secrets:
            return httpx.Response(401, json={"message": "Invalid client credentials"})
        self.issued += 1
        return httpx.Response(
            200,
            json={"token": {"accessToken": f"token-{self.issued}", "expiresIn": self.expires_in}},
        )

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def api_requests(self) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path != LOGIN_PATH]


def build_credentials(**overrides: Any) -> ToastCredentials:
    values: Dict[str, Any] = {
        "client_id": "client-id-0123456789",
        "client_secrets": (PRIMARY_SECRET,),
        "restaurant_guid": RESTAURANT_GUID,
        "base_url": BASE_URL,
        "timezone": "America/Los_Angeles",
        "request_timeout": 5.0,
        "page_size": 2,
    }
    values.update(overrides)
    return ToastCredentials(**values)


@pytest.fixture(name="fake_toast")
def fake_toast_fixture() -> FakeToast:
    return FakeToast()


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    # 2023-11-14 14:13:20 PST
    return FakeClock()


@pytest.fixture(name="make_client")
def make_client_fixture(fake_toast: FakeToast, clock: FakeClock) -> Callable[..., ToastPOSClient]:
    def _factory(**overrides: Any) -> ToastPOSClient:
        return ToastPOSClient(build_credentials(**overrides), http_client=fake_toast.http_client(), clock=clock)

    return _factory


@pytest.fixture(autouse=True)
def _clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
