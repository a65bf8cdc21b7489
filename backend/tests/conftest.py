import pytest
from fastapi.testclient import TestClient

from hypixel_gateway.core.config import load_settings
from hypixel_gateway.core.errors import UpstreamError
from hypixel_gateway.core.limiter import limiter
from hypixel_gateway.main import create_app
from hypixel_gateway.routes.registry import REGISTRY
from hypixel_gateway.services.gateway import HypixelService

ALL_ENDPOINTS = {name: True for name in REGISTRY}


class FakeHypixel:
    """
    Collaborator double.

    Every ``get_*`` fetch is recorded in ``calls`` and answers with a payload
    echoing the operation and its arguments. Cache checks are recorded
    separately in ``cache_checks`` so route assertions stay readable.
    """

    def __init__(self):
        self.calls = []
        self.cache_checks = []
        self.cached = set()
        self.failures = {}
        self.uuids = {"Technoblade": "b876ec32e396476ba1158438d83c67d4"}

    def mark_cached(self, path, **params):
        self.cached.add((path, tuple(sorted(params.items()))))

    async def is_cached(self, path, params):
        self.cache_checks.append((path, dict(params)))
        return (path, tuple(sorted(params.items()))) in self.cached

    async def username_to_uuid(self, username):
        self.calls.append(("username_to_uuid", username))
        if username not in self.uuids:
            raise UpstreamError(f"Unable to resolve the uuid of {username}")
        return self.uuids[username]

    def __getattr__(self, operation):
        if not operation.startswith("get_"):
            raise AttributeError(operation)

        async def fetch(*args):
            self.calls.append((operation,) + args)
            if operation in self.failures:
                raise UpstreamError(self.failures[operation])
            return {
                "success": True,
                "operation": operation,
                "args": [getattr(arg, "path", arg) for arg in args],
            }

        return fetch


def make_settings(**overrides):
    values = {
        "API_KEY": "test-key",
        "PORT": 8000,
        "BASE_URL": "127.0.0.1",
        "SERVER_ENDPOINT": dict(ALL_ENDPOINTS),
        "HYPIXEL_CACHE_TTL": {},
    }
    values.update(overrides)
    return load_settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable the rate limiter for all tests so rapid requests don't return 429."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def fake():
    return FakeHypixel()


@pytest.fixture
def service(fake):
    return HypixelService(fake)


@pytest.fixture
def make_client(fake):
    """Build a TestClient over a fresh app; keyword arguments override settings."""
    opened = []

    def _make(**overrides):
        app = create_app(make_settings(**overrides), client=fake)
        test_client = TestClient(app, follow_redirects=False)
        test_client.__enter__()
        opened.append(test_client)
        return test_client

    yield _make
    for test_client in opened:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
