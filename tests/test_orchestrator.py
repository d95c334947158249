"""
End-to-end tests for ApiCallOrchestrator.

Tests cover:
1. Parameter validation before any network I/O
2. Dispatch to the Graph and Azure executors
3. Retry budget and backoff across the whole call
4. Pagination scenarios
5. Structured, non-throwing error results
"""
import asyncio
import json

import httpx
import pytest
from unittest.mock import AsyncMock

from app.core.constants import BACKENDS
from app.models.api_call import ApiCallRequest
from app.services.microsoft_api.orchestrator import EXECUTOR_TYPES, ApiCallOrchestrator


def make_orchestrator(backend, token_provider, sleep, rate_limiter=None):
    return ApiCallOrchestrator(
        token_provider=token_provider,
        client=backend.client(),
        rate_limiter=rate_limiter,
        sleep=sleep,
    )


def call(orchestrator, **kwargs):
    return asyncio.run(orchestrator.call(ApiCallRequest(**kwargs)))


class TestValidation:
    """Tests for pre-I/O validation."""

    @pytest.mark.parametrize("api_version", [None, "", "   "])
    def test_azure_without_api_version_fails_without_io(
        self, mock_backend, token_provider, recording_sleep, api_version
    ):
        backend = mock_backend()
        orchestrator = make_orchestrator(backend, token_provider, recording_sleep)

        result = call(orchestrator, backend="azure", path="/resourceGroups", api_version=api_version)

        assert result.is_error
        assert result.error["errorType"] == "ParameterError"
        assert result.error["statusCode"] == 400
        assert result.error["attemptedUrl"] == "https://management.azure.com"
        assert backend.requests == []
        assert token_provider.scopes == []

    def test_graph_does_not_need_api_version(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(httpx.Response(200, json={"id": "me"}))
        result = call(make_orchestrator(backend, token_provider, recording_sleep), backend="graph", path="/me")
        assert not result.is_error


class TestDispatch:
    """Tests for single-call dispatch and formatting."""

    def test_executor_registry_keyed_by_backend_name(self):
        assert set(EXECUTOR_TYPES) == set(BACKENDS)
        assert all(EXECUTOR_TYPES[name].name == name for name in EXECUTOR_TYPES)

    def test_unknown_backend_is_parameter_error(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend()
        result = call(make_orchestrator(backend, token_provider, recording_sleep), backend="exchange", path="/users")

        assert result.error["errorType"] == "ParameterError"
        assert result.error["attemptedUrl"] is None
        assert backend.requests == []

    def test_graph_get_single_page_with_note(self, mock_backend, token_provider, recording_sleep, graph_users_pages):
        backend = mock_backend(httpx.Response(200, json=graph_users_pages[0]))
        result = call(make_orchestrator(backend, token_provider, recording_sleep), backend="graph", path="/users")

        assert not result.is_error
        assert result.item_count is None
        assert result.text.startswith("Result for Graph (v1.0) API - GET /users:")
        assert "fetchAll: true" in result.text
        assert len(backend.requests) == 1

    def test_azure_get_with_next_link_is_not_followed(
        self, mock_backend, token_provider, recording_sleep, azure_resource_group_pages
    ):
        backend = mock_backend(httpx.Response(200, json=azure_resource_group_pages[0]))
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="azure", path="/resourceGroups", api_version="2021-04-01", subscription_id="sub-1",
        )

        assert not result.is_error
        assert len(backend.requests) == 1
        assert "fetchAll: true" in result.text

    def test_raw_format(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(httpx.Response(200, json={"id": "1", "displayName": "Adele"}))
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users/1", response_format="raw",
        )
        assert result.text == '{"id":"1","displayName":"Adele"}'

    def test_graph_delete_envelope(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(httpx.Response(204))
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/groups/g1", method="delete", response_format="minimal",
        )
        assert json.loads(result.text)["status"] == "Success (No Content)"

    def test_rate_limiter_checked_before_each_request(self, mock_backend, token_provider, recording_sleep):
        limiter = AsyncMock()
        backend = mock_backend(
            httpx.Response(503, json={"error": {"message": "busy"}}),
            httpx.Response(200, json={"id": "1"}),
        )
        orchestrator = make_orchestrator(backend, token_provider, recording_sleep, rate_limiter=limiter)

        result = call(orchestrator, backend="graph", path="/users/1")

        assert not result.is_error
        assert limiter.check_limit.await_count == 2


class TestRetries:
    """Tests for retry behaviour through the orchestrator."""

    def test_azure_429_then_200_succeeds_after_one_retry(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(
            httpx.Response(429, json={"error": {"code": "TooManyRequests", "message": "Throttled"}}),
            httpx.Response(200, json={"value": [{"name": "rg-a"}]}),
        )
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="azure", path="/resourceGroups", api_version="2021-04-01", method="get",
        )

        assert not result.is_error
        assert len(backend.requests) == 2
        assert recording_sleep.delays == pytest.approx([1.0])

    def test_backoff_uses_request_retry_delay(self, mock_backend, token_provider, recording_sleep):
        failures = [httpx.Response(500, json={"error": {"message": "oops"}}) for _ in range(3)]
        backend = mock_backend(*failures, httpx.Response(200, json={}))

        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/me", retry_delay=200, max_retries=3,
        )

        assert not result.is_error
        assert recording_sleep.delays == pytest.approx([0.2, 0.4, 0.8])

    def test_exhausted_retries_return_structured_error(self, mock_backend, token_provider, recording_sleep):
        body = {"error": {"code": "ServiceUnavailable", "message": "Try later"}}
        backend = mock_backend(*[httpx.Response(503, json=body) for _ in range(3)])

        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users", max_retries=2,
        )

        assert result.is_error
        assert len(backend.requests) == 3
        assert result.error == json.loads(result.text)
        assert result.error["errorType"] == "ServerError"
        assert result.error["statusCode"] == 503
        assert result.error["responseBody"] == body
        assert result.error["attemptedUrl"] == "https://graph.microsoft.com/v1.0"
        assert result.error["maxRetries"] == 2
        assert result.error["executionTimeMs"] >= 0

    def test_throttle_diagnostic_reports_retry_after(self, mock_backend, token_provider, recording_sleep):
        throttled = {"error": {"code": "TooManyRequests", "message": "Throttled"}}
        backend = mock_backend(*[httpx.Response(429, json=throttled, headers={"Retry-After": "12"}) for _ in range(2)])

        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users", max_retries=1,
        )

        assert result.error["errorType"] == "ThrottleError"
        assert result.error["statusCode"] == 429
        assert result.error["retryAfter"] == 12
        assert recording_sleep.delays == pytest.approx([1.0])

    def test_retry_after_absent_for_other_errors(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(httpx.Response(404, json={"error": {"message": "no"}}))
        result = call(make_orchestrator(backend, token_provider, recording_sleep), backend="graph", path="/users/x")
        assert result.error["retryAfter"] is None

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_client_errors_make_one_attempt(self, mock_backend, token_provider, recording_sleep, status_code):
        backend = mock_backend(httpx.Response(status_code, json={"error": {"message": "no"}}))

        result = call(make_orchestrator(backend, token_provider, recording_sleep), backend="graph", path="/users")

        assert result.is_error
        assert result.error["statusCode"] == status_code
        assert len(backend.requests) == 1
        assert recording_sleep.delays == []


class TestPagination:
    """Tests for fetchAll through the orchestrator."""

    def test_graph_users_two_page_scenario(self, mock_backend, token_provider, recording_sleep, graph_users_pages):
        backend = mock_backend(
            httpx.Response(200, json=graph_users_pages[0]),
            httpx.Response(200, json=graph_users_pages[1]),
        )
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users", method="get", fetch_all=True, response_format="raw",
        )

        payload = json.loads(result.text)
        assert result.item_count == 3
        assert payload["totalCount"] == 3
        assert len(payload["value"]) == 3
        assert backend.requests[0].url.params["$top"] == "100"

    def test_json_mode_reports_total(self, mock_backend, token_provider, recording_sleep, graph_users_pages):
        backend = mock_backend(
            httpx.Response(200, json=graph_users_pages[0]),
            httpx.Response(200, json=graph_users_pages[1]),
        )
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users", fetch_all=True,
        )
        assert "Total items fetched: 3" in result.text
        assert "fetchAll: true" not in result.text

    def test_azure_fetch_all(self, mock_backend, token_provider, recording_sleep, azure_resource_group_pages):
        backend = mock_backend(
            httpx.Response(200, json=azure_resource_group_pages[0]),
            httpx.Response(200, json=azure_resource_group_pages[1]),
        )
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="azure", path="/resourceGroups", api_version="2021-04-01",
            subscription_id="sub-1", fetch_all=True, response_format="minimal",
        )
        assert [group["name"] for group in json.loads(result.text)] == ["rg-a", "rg-b", "rg-c", "rg-d"]

    def test_page_failure_discards_accumulated_items(self, mock_backend, token_provider, recording_sleep, graph_users_pages):
        backend = mock_backend(
            httpx.Response(200, json=graph_users_pages[0]),
            httpx.Response(404, json={"error": {"message": "Skip token expired"}}),
        )
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/users", fetch_all=True,
        )

        assert result.is_error
        assert result.item_count is None
        assert result.error["errorType"] == "PaginationError"
        assert result.error["statusCode"] == 404
        assert "Adele" not in result.text

    def test_fetch_all_ignored_for_non_get(self, mock_backend, token_provider, recording_sleep):
        backend = mock_backend(httpx.Response(201, json={"id": "new"}))
        result = call(
            make_orchestrator(backend, token_provider, recording_sleep),
            backend="graph", path="/groups", method="post", fetch_all=True, body={"displayName": "Team"},
        )
        assert result.item_count is None
        assert len(backend.requests) == 1


class TestUnexpectedFailures:
    """Tests that nothing escapes call()."""

    def test_token_failure_becomes_error_result(self, mock_backend, recording_sleep):
        from app.services.microsoft_api.exceptions import AuthError

        class FailingTokens:
            def __init__(self):
                self.calls = 0

            async def acquire_token(self, scope):
                self.calls += 1
                raise AuthError("Failed to acquire access token: invalid_client")

        tokens = FailingTokens()
        backend = mock_backend()
        result = call(make_orchestrator(backend, tokens, recording_sleep), backend="graph", path="/users")

        assert result.is_error
        assert result.error["errorType"] == "AuthError"
        assert tokens.calls == 1
        assert backend.requests == []

    def test_unexpected_exception_is_contained(self, mock_backend, recording_sleep):
        class BrokenTokens:
            async def acquire_token(self, scope):
                raise RuntimeError("boom")

        result = call(
            make_orchestrator(mock_backend(), BrokenTokens(), recording_sleep),
            backend="graph", path="/users", max_retries=1,
        )

        assert result.is_error
        assert result.error["errorType"] == "RuntimeError"
        assert result.error["statusCode"] is None
        assert result.to_envelope()["isError"] is True
