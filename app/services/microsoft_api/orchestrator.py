"""Entry point that turns an ApiCallRequest into a non-throwing ApiCallResult."""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from app.core.constants import TOTAL_COUNT_KEY
from app.models.api_call import ApiCallRequest, ApiCallResult
from app.services.microsoft_api.azure_executor import AzureBackendExecutor
from app.services.microsoft_api.backend import BackendExecutor, RateLimiter, TokenProvider
from app.services.microsoft_api.exceptions import ApiCallError, ParameterError
from app.services.microsoft_api.formatter import ResponseFormatter
from app.services.microsoft_api.graph_executor import GraphBackendExecutor
from app.services.microsoft_api.pagination import Paginator
from app.services.microsoft_api.retry import RetryPolicy

logger = logging.getLogger(__name__)

EXECUTOR_TYPES = {
    executor_type.name: executor_type
    for executor_type in (GraphBackendExecutor, AzureBackendExecutor)
}


class ApiCallOrchestrator:
    """Validates, dispatches, retries, paginates and formats generic API calls.

    Backend failures never escape ``call``: they come back as an ApiCallResult
    carrying a JSON diagnostic and ``is_error`` set.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        formatter: Optional[ResponseFormatter] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._token_provider = token_provider
        self._http_client = client
        self._rate_limiter = rate_limiter
        self._formatter = formatter or ResponseFormatter()
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared async HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    def executor_for(self, backend: str) -> BackendExecutor:
        try:
            executor_type = EXECUTOR_TYPES[backend]
        except KeyError:
            raise ParameterError(
                f"Unknown backend '{backend}'. Supported backends: {', '.join(EXECUTOR_TYPES)}"
            )
        return executor_type(self._get_client(), self._token_provider, self._rate_limiter)

    @staticmethod
    def validate(request: ApiCallRequest) -> None:
        """Reject requests that can never succeed, before any network I/O."""
        if request.backend == "azure" and not (request.api_version or "").strip():
            raise ParameterError("apiVersion is required for backend 'azure'")
        if not request.path.strip():
            raise ParameterError("path must not be empty")

    def retry_policy(self, request: ApiCallRequest) -> RetryPolicy:
        return RetryPolicy(
            max_retries=request.max_retries,
            base_delay_ms=request.retry_delay,
            sleep=self._sleep,
        )

    async def call(self, request: ApiCallRequest) -> ApiCallResult:
        """Execute ``request`` and return a formatted result or a structured error."""
        started = time.perf_counter()
        executor: Optional[BackendExecutor] = None

        try:
            self.validate(request)
            executor = self.executor_for(request.backend)
            policy = self.retry_policy(request)

            item_count = None
            if request.is_paginated:
                payload = await Paginator(executor, policy).fetch_all(request)
                item_count = payload[TOTAL_COUNT_KEY]
            else:
                async def execute_once():
                    return await executor.execute_once(request)

                payload = await policy.run(
                    execute_once,
                    description=f"{executor.display_name} {request.method.upper()} {request.path}",
                )

            elapsed_ms = self._elapsed_ms(started)
            text = self._formatter.format(
                request,
                payload,
                elapsed_ms,
                item_count=item_count,
                display_name=executor.display_name,
            )
            logger.info(
                f"{executor.display_name} {request.method.upper()} {request.path} "
                f"completed in {elapsed_ms}ms"
            )
            return ApiCallResult(text=text, execution_time_ms=elapsed_ms, item_count=item_count)

        except ApiCallError as e:
            return self._failure(request, executor, e, started)
        except Exception as e:
            logger.exception(f"Unexpected error during {request.backend} call to {request.path}")
            return self._failure(request, executor, e, started)

    def _failure(
        self,
        request: ApiCallRequest,
        executor: Optional[BackendExecutor],
        error: Exception,
        started: float,
    ) -> ApiCallResult:
        elapsed_ms = self._elapsed_ms(started)
        attempted_url = None
        if executor is not None:
            attempted_url = executor.base_url(request)
        elif request.backend in EXECUTOR_TYPES:
            attempted_url = EXECUTOR_TYPES[request.backend](None, self._token_provider).base_url(request)

        diagnostic: Dict[str, Any] = {
            "error": getattr(error, "message", None) or str(error),
            "errorType": type(error).__name__,
            "statusCode": getattr(error, "status_code", None),
            "responseBody": getattr(error, "details", None),
            "attemptedUrl": attempted_url,
            "executionTimeMs": elapsed_ms,
            "maxRetries": request.max_retries,
            "retryAfter": getattr(error, "retry_after", None),
        }
        logger.error(
            f"{request.backend} {request.method.upper()} {request.path} failed after {elapsed_ms}ms: "
            f"{diagnostic['errorType']}: {diagnostic['error']}"
        )
        return ApiCallResult.failure(diagnostic, elapsed_ms)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
