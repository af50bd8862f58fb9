"""Shared fixtures.

Components are built with plain config dicts and an in-memory storage; the network
is an httpx.MockTransport or a scripted fake management client.
"""

import asyncio

import httpx
import pytest

from management_api.client import ManagementApiClient
from storage.backends import MemoryStorage
from utils.httpx_manager import HttpxManager
from utils.logger import Logger

API_BASE = "http://cpa.local:8317"
MANAGEMENT_KEY = "mgmt-secret-key-123"

MANAGEMENT_CONFIG = {
    "LOGGING_LEVEL": "DEBUG",
    "PREFIX": "/v0/management",
    "VERSION_HEADERS": ["x-cpa-version", "x-server-version"],
    "BUILD_DATE_HEADERS": ["x-cpa-build-date"],
}
SESSION_CONFIG = {
    "LOGGING_LEVEL": "DEBUG",
    "AUTH_TIMEOUT": 10.0,
    "STORAGE_KEY": "cli-proxy-auth",
    "LOGGED_IN_KEY": "cli-proxy-logged-in",
}


class FakeApiClient:
    """Scripted stand-in for ManagementApiClient.get_json.

    `responses[path]` is returned (or raised when it is an exception); while `gate`
    is set, every call waits on it so tests can hold requests in flight.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.gate = None

    async def get_json(self, path):
        self.calls.append(path)
        if self.gate is not None:
            await self.gate.wait()
        result = self.responses.get(path)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result()
        return result


class ManualClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def logger_manager():
    manager = Logger()
    yield manager
    manager.close_all_loggers()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def fake_api():
    return FakeApiClient()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def gate():
    return asyncio.Event()


def build_transport_stack(logger_manager, handler):
    """HttpxManager + ManagementApiClient over a MockTransport driven by `handler`."""
    transport = httpx.MockTransport(handler)
    httpx_manager = HttpxManager(logger_manager, {"LOGGING_LEVEL": "DEBUG", "TIMEOUT": 5.0}, transport=transport)
    api_client = ManagementApiClient(logger_manager, httpx_manager, MANAGEMENT_CONFIG)
    return httpx_manager, api_client
