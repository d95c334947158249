"""Backend executor interface and shared HTTP plumbing."""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Protocol

import httpx

from app.core.constants import BODY_METHODS, COLLECTION_KEY, FETCHED_AT_KEY, SUPPORTED_METHODS, TOTAL_COUNT_KEY
from app.models.api_call import ApiCallRequest
from app.services.microsoft_api.exceptions import (
    ClientError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
    ThrottleError,
    UnsupportedMethodError,
)

logger = logging.getLogger(__name__)


class TokenProvider(Protocol):
    def acquire_token(self, scope: str) -> Awaitable[str]: ...


class RateLimiter(Protocol):
    def check_limit(self) -> Awaitable[None]: ...


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_body(response: httpx.Response) -> Any:
    """Decode a response body as JSON, tolerating empty and non-JSON bodies."""
    text = response.text
    if not text or not text.strip():
        return {}
    try:
        return json.loads(text)
    except ValueError:
        return {"rawResponse": text}


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        error_info = body.get("error")
        if isinstance(error_info, dict) and error_info.get("message"):
            return error_info["message"]
        if isinstance(error_info, str):
            return error_info
    return fallback


def raise_for_status(response: httpx.Response, url: str) -> None:
    """Map a non-2xx response to the matching ApiCallError subclass.

    Raises:
        ThrottleError: For 429 responses.
        ClientError: For other 4xx responses.
        ServerError: For 5xx (and any other non-2xx) responses.
    """
    status_code = response.status_code
    if 200 <= status_code < 300:
        return

    body = parse_body(response)
    message = _error_message(body, response.reason_phrase or "")
    logger.error(f"API error: {status_code} for {url}: {message}")

    if status_code == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            retry_after = float(retry_after) if retry_after is not None else None
        except ValueError:
            retry_after = None
        raise ThrottleError(
            retry_after=retry_after,
            message=f"API Error (429 Too Many Requests): {message}",
            details=body,
            url=url,
        )
    if 400 <= status_code < 500:
        raise ClientError(f"API Error ({status_code}): {message}", status_code=status_code, details=body, url=url)
    raise ServerError(f"API Error ({status_code}): {message}", status_code=status_code, details=body, url=url)


class BackendExecutor(ABC):
    """One remote API family (Graph or Azure RM) and its wire conventions.

    ``execute_once`` performs a single non-paginated call. ``fetch_page`` and
    ``follow_continuation`` let the Paginator walk a collection one page at a
    time; ``page_items`` and ``finalize`` encode how pages fold into a result.
    """

    name: str = ""
    display_name: str = ""
    next_link_key: str = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self._client = client
        self._token_provider = token_provider
        self._rate_limiter = rate_limiter

    @property
    @abstractmethod
    def scope(self) -> str:
        """OAuth scope used to obtain bearer tokens for this backend."""

    @abstractmethod
    def base_url(self, request: ApiCallRequest) -> str:
        """Root URL requests are built against (used in error diagnostics)."""

    @abstractmethod
    async def execute_once(self, request: ApiCallRequest) -> Any:
        """Perform a single, non-paginated call and return the decoded payload."""

    @abstractmethod
    async def fetch_page(self, request: ApiCallRequest, next_link: Optional[str] = None) -> Dict[str, Any]:
        """Fetch the first page (``next_link`` is None) or the page at ``next_link``."""

    def follow_continuation(self, page: Any) -> Optional[str]:
        """Return the continuation cursor of ``page``, or None on the last page."""
        if isinstance(page, dict):
            return page.get(self.next_link_key) or None
        return None

    def page_items(self, page: Any, first: bool) -> List[Any]:
        """Items contributed by one page. Only top-level ``value`` arrays count."""
        if isinstance(page, dict) and isinstance(page.get(COLLECTION_KEY), list):
            return page[COLLECTION_KEY]
        return []

    def page_context(self, page: Any) -> Optional[str]:
        return None

    def finalize(self, items: List[Any], context: Optional[str]) -> Dict[str, Any]:
        return {
            COLLECTION_KEY: items,
            TOTAL_COUNT_KEY: len(items),
            FETCHED_AT_KEY: utc_timestamp(),
        }

    async def _headers(self, request: ApiCallRequest, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Bearer + JSON headers; caller-supplied custom headers are applied last."""
        token = await self._token_provider.acquire_token(self.scope)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        headers.update(request.custom_headers)
        return headers

    def _check_method(self, method: str) -> None:
        if method not in SUPPORTED_METHODS:
            raise UnsupportedMethodError(method)

    def _json_body(self, request: ApiCallRequest) -> Any:
        """Body for body-carrying methods: post/put default to ``{}``, patch is sent as-is."""
        if request.method in ("post", "put") and request.body is None:
            return {}
        return request.body

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        timeout: float,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> httpx.Response:
        """Issue one HTTP request with a hard timeout, mapping failures to ApiCallError."""
        if self._rate_limiter is not None:
            await self._rate_limiter.check_limit()

        kwargs: Dict[str, Any] = {"headers": headers, "params": params}
        if method in BODY_METHODS and body is not None:
            if isinstance(body, (str, bytes)):
                kwargs["content"] = body
            else:
                kwargs["json"] = body

        logger.debug(f"{method.upper()} {url}")
        try:
            response = await asyncio.wait_for(
                self._client.request(method.upper(), url, timeout=timeout, **kwargs),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise RequestTimeoutError(
                f"Request timed out after {timeout * 1000:.0f}ms: {method.upper()} {url}",
                url=url,
            )
        except httpx.RequestError as e:
            raise NetworkError(f"Failed to connect to {url}: {e}", details={"error": str(e)}, url=url)

        raise_for_status(response, url)
        return response
