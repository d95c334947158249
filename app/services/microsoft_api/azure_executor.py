"""Azure Resource Management backend executor."""
import logging
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.constants import AZURE_NEXT_LINK, BODY_METHODS, COLLECTION_KEY
from app.models.api_call import ApiCallRequest
from app.services.microsoft_api.backend import (
    BackendExecutor,
    RateLimiter,
    TokenProvider,
    parse_body,
)

logger = logging.getLogger(__name__)


class AzureBackendExecutor(BackendExecutor):
    """Executes raw HTTP calls against https://management.azure.com."""

    name = "azure"
    display_name = "Azure RM"
    next_link_key = AZURE_NEXT_LINK

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = None,
        scope: str = None,
    ):
        super().__init__(client, token_provider, rate_limiter)
        self._root = (base_url or settings.azure_management_url).rstrip("/")
        self._scope = scope or settings.azure_scope

    @property
    def scope(self) -> str:
        return self._scope

    def base_url(self, request: ApiCallRequest) -> str:
        return self._root

    def build_url(self, request: ApiCallRequest) -> str:
        """Root + optional /subscriptions/{id} + caller path."""
        path = request.path if request.path.startswith("/") else f"/{request.path}"
        if request.subscription_id and not path.lower().startswith("/subscriptions/"):
            path = f"/subscriptions/{request.subscription_id}{path}"
        return f"{self._root}{path}"

    def build_params(self, request: ApiCallRequest) -> Dict[str, str]:
        params = {"api-version": request.api_version}
        params.update(request.query_params)
        return params

    async def execute_once(self, request: ApiCallRequest) -> Any:
        method = request.method
        self._check_method(method)

        url = self.build_url(request)
        headers = await self._headers(request)
        logger.info(f"Azure RM {method.upper()} {url} (api-version={request.api_version})")

        response = await self._send(
            method,
            url,
            headers,
            request.timeout_seconds,
            params=self.build_params(request),
            body=self._json_body(request) if method in BODY_METHODS else None,
        )
        return parse_body(response)

    async def fetch_page(self, request: ApiCallRequest, next_link: Optional[str] = None) -> Dict[str, Any]:
        if next_link:
            url, params = next_link, None
        else:
            url, params = self.build_url(request), self.build_params(request)

        # Long pagination runs can outlive a token, so headers are rebuilt per page
        headers = await self._headers(request)
        response = await self._send("get", url, headers, request.timeout_seconds, params=params)
        return parse_body(response)

    def page_items(self, page: Any, first: bool) -> List[Any]:
        """A first page with neither ``value`` nor ``nextLink`` is a single resource."""
        if first and isinstance(page, dict) and COLLECTION_KEY not in page and self.next_link_key not in page:
            return [page]
        return super().page_items(page, first)
