"""Shapes call payloads into the text returned to the tool layer."""
import json
from typing import Any, Optional

from app.core.constants import (
    AZURE_NEXT_LINK,
    COLLECTION_KEY,
    FETCHED_AT_KEY,
    GRAPH_NEXT_LINK,
    ODATA_PREFIX,
    TOTAL_COUNT_KEY,
)
from app.models.api_call import ApiCallRequest

PAGINATION_METADATA_KEYS = (AZURE_NEXT_LINK, TOTAL_COUNT_KEY, FETCHED_AT_KEY)
CONTINUATION_KEYS = (GRAPH_NEXT_LINK, AZURE_NEXT_LINK)

MORE_RESULTS_NOTE = (
    "Note: More results are available. To retrieve all pages, "
    "repeat the request with 'fetchAll: true'."
)


def has_continuation(payload: Any) -> bool:
    return isinstance(payload, dict) and any(payload.get(key) for key in CONTINUATION_KEYS)


def strip_metadata(payload: Any) -> Any:
    """Drop OData and pagination metadata; unwrap bare collections to their list."""
    if not isinstance(payload, dict):
        return payload

    stripped = {
        key: value
        for key, value in payload.items()
        if not key.startswith(ODATA_PREFIX) and key not in PAGINATION_METADATA_KEYS
    }
    if set(stripped) == {COLLECTION_KEY} and isinstance(stripped[COLLECTION_KEY], list):
        return stripped[COLLECTION_KEY]
    return stripped


class ResponseFormatter:
    """Formats payloads as ``json`` (annotated), ``minimal`` or ``raw``."""

    def format(
        self,
        request: ApiCallRequest,
        payload: Any,
        execution_time_ms: int,
        item_count: Optional[int] = None,
        display_name: str = "",
    ) -> str:
        mode = request.response_format
        if mode == "raw":
            return self.raw(payload)

        if mode == "minimal":
            text = json.dumps(strip_metadata(payload), indent=2, default=str)
        else:
            text = self._annotated(request, payload, execution_time_ms, item_count, display_name)

        if request.method == "get" and not request.fetch_all and has_continuation(payload):
            text += f"\n\n{MORE_RESULTS_NOTE}"
        return text

    @staticmethod
    def raw(payload: Any) -> str:
        """Compact, deterministic serialization with no annotation."""
        return json.dumps(payload, separators=(",", ":"), default=str)

    @staticmethod
    def _annotated(
        request: ApiCallRequest,
        payload: Any,
        execution_time_ms: int,
        item_count: Optional[int],
        display_name: str,
    ) -> str:
        label = display_name or request.backend
        if request.backend == "graph":
            label = f"{label} ({request.graph_api_version})"

        lines = [
            f"Result for {label} API - {request.method.upper()} {request.path}:",
            f"Execution time: {execution_time_ms}ms",
        ]
        if item_count is not None:
            lines.append(f"Total items fetched: {item_count}")
        lines.append("")
        lines.append(json.dumps(payload, indent=2, default=str))
        return "\n".join(lines)
