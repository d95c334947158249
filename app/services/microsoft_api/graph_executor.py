"""Microsoft Graph backend executor."""
import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.constants import (
    BODY_METHODS,
    COLLECTION_KEY,
    FETCHED_AT_KEY,
    GRAPH_CONTEXT,
    GRAPH_NEXT_LINK,
    NO_CONTENT_STATUS,
    TOTAL_COUNT_KEY,
)
from app.models.api_call import ApiCallRequest
from app.services.microsoft_api.backend import (
    BackendExecutor,
    RateLimiter,
    TokenProvider,
    parse_body,
    utc_timestamp,
)

logger = logging.getLogger(__name__)


class GraphRequest:
    """Builder for a single Microsoft Graph request.

    Mirrors the fluent style of the Graph SDKs:
    ``GraphRequest(base, "/users").query({...}).select([...]).top(100)``.
    Explicit query parameters always win over injected OData options.
    """

    def __init__(self, version_root: str, path: str):
        if path.startswith("https://") or path.startswith("http://"):
            self.url = path
        else:
            self.url = f"{version_root}{path if path.startswith('/') else '/' + path}"
        self.params: Dict[str, str] = {}
        self.headers: Dict[str, str] = {}

    def query(self, params: Dict[str, str]) -> "GraphRequest":
        self.params.update(params)
        return self

    def header(self, name: str, value: Optional[str]) -> "GraphRequest":
        if value:
            self.headers[name] = value
        return self

    def select(self, fields: List[str]) -> "GraphRequest":
        if fields:
            self.params.setdefault("$select", ",".join(fields))
        return self

    def expand(self, fields: List[str]) -> "GraphRequest":
        if fields:
            self.params.setdefault("$expand", ",".join(fields))
        return self

    def top(self, size: Optional[int]) -> "GraphRequest":
        if size:
            self.params.setdefault("$top", str(size))
        return self


class GraphBackendExecutor(BackendExecutor):
    """Executes calls against https://graph.microsoft.com/{v1.0|beta}."""

    name = "graph"
    display_name = "Graph"
    next_link_key = GRAPH_NEXT_LINK

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        rate_limiter: Optional[RateLimiter] = None,
        base_url: str = None,
        scope: str = None,
    ):
        super().__init__(client, token_provider, rate_limiter)
        self._root = (base_url or settings.graph_base_url).rstrip("/")
        self._scope = scope or settings.graph_scope

    @property
    def scope(self) -> str:
        return self._scope

    def base_url(self, request: ApiCallRequest) -> str:
        return f"{self._root}/{request.graph_api_version}"

    def build_request(self, request: ApiCallRequest) -> GraphRequest:
        """Build the Graph request, injecting $select/$expand and, when paginating, $top."""
        builder = (
            GraphRequest(self.base_url(request), request.path)
            .query(request.query_params)
            .select(request.select_fields)
            .expand(request.expand_fields)
            .header("ConsistencyLevel", request.consistency_level)
            .header("client-request-id", str(uuid.uuid4()))
        )
        if request.fetch_all:
            builder.top(request.batch_size)
        return builder

    async def execute_once(self, request: ApiCallRequest) -> Any:
        method = request.method
        self._check_method(method)

        builder = self.build_request(request)
        headers = await self._headers(request, builder.headers)
        logger.info(
            f"Graph {method.upper()} {builder.url} "
            f"(client-request-id={builder.headers['client-request-id']})"
        )

        response = await self._send(
            method,
            builder.url,
            headers,
            request.timeout_seconds,
            params=builder.params or None,
            body=self._json_body(request) if method in BODY_METHODS else None,
        )

        if method == "delete" and (response.status_code == 204 or not response.content.strip()):
            return {"status": NO_CONTENT_STATUS, "deletedAt": utc_timestamp()}
        return parse_body(response)

    async def fetch_page(self, request: ApiCallRequest, next_link: Optional[str] = None) -> Dict[str, Any]:
        if next_link:
            # nextLink already carries every query option
            url, params = next_link, None
            extra = {"client-request-id": str(uuid.uuid4())}
            if request.consistency_level:
                extra["ConsistencyLevel"] = request.consistency_level
        else:
            builder = self.build_request(request)
            url, params, extra = builder.url, builder.params or None, builder.headers

        headers = await self._headers(request, extra)
        response = await self._send("get", url, headers, request.timeout_seconds, params=params)
        return parse_body(response)

    def page_context(self, page: Any) -> Optional[str]:
        if isinstance(page, dict):
            return page.get(GRAPH_CONTEXT)
        return None

    def finalize(self, items: List[Any], context: Optional[str]) -> Dict[str, Any]:
        return {
            GRAPH_CONTEXT: context,
            COLLECTION_KEY: items,
            TOTAL_COUNT_KEY: len(items),
            FETCHED_AT_KEY: utc_timestamp(),
        }
