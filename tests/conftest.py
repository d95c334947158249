"""
Pytest configuration and fixtures for Microsoft API gateway tests.
"""
import pytest
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx
from fastapi.testclient import TestClient

from app.main import app


class FakeTokenProvider:
    """Token provider that hands out numbered tokens and records scopes."""

    def __init__(self):
        self.scopes = []

    async def acquire_token(self, scope):
        self.scopes.append(scope)
        return f"token-{len(self.scopes)}"


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays (seconds)."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class MockBackend:
    """Serves queued httpx responses and records every request it receives.

    Queue entries are either httpx.Response objects, exceptions to raise,
    or callables taking the request and returning a response.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        return response

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def graph_users_pages():
    """Two Graph pages: 2 users + nextLink, then 1 user."""
    next_link = "https://graph.microsoft.com/v1.0/users?$top=2&$skiptoken=abc"
    return [
        {
            "@odata.context": "https://graph.microsoft.com/v1.0/$metadata#users",
            "value": [
                {"id": "1", "displayName": "Adele Vance"},
                {"id": "2", "displayName": "Alex Wilber"},
            ],
            "@odata.nextLink": next_link,
        },
        {
            "@odata.context": "https://graph.microsoft.com/v1.0/$metadata#users",
            "value": [{"id": "3", "displayName": "Diego Siciliani"}],
        },
    ]


@pytest.fixture
def azure_resource_group_pages():
    """Two Azure RM pages: 2 resource groups + nextLink, then 2 more."""
    next_link = "https://management.azure.com/subscriptions/sub-1/resourcegroups?api-version=2021-04-01&%24skiptoken=xyz"
    return [
        {
            "value": [
                {"id": "/subscriptions/sub-1/resourceGroups/rg-a", "name": "rg-a"},
                {"id": "/subscriptions/sub-1/resourceGroups/rg-b", "name": "rg-b"},
            ],
            "nextLink": next_link,
        },
        {
            "value": [
                {"id": "/subscriptions/sub-1/resourceGroups/rg-c", "name": "rg-c"},
                {"id": "/subscriptions/sub-1/resourceGroups/rg-d", "name": "rg-d"},
            ],
        },
    ]


@pytest.fixture
def mock_backend():
    """Factory for MockBackend instances: ``mock_backend(resp1, resp2, ...)``."""
    return MockBackend
