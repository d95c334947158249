"""Pydantic models for generic Microsoft API calls."""
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.config import settings

ResponseFormat = Literal["json", "minimal", "raw"]


class ApiCallRequest(BaseModel):
    """A single call against Microsoft Graph or Azure Resource Management.

    Field names are snake_case in Python and camelCase on the wire
    (``apiVersion``, ``fetchAll``, ...); both spellings are accepted.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    backend: str = Field(..., min_length=1, description="Target API family: 'graph' or 'azure'")
    path: str = Field(..., min_length=1, description="API path, e.g. '/users' or '/resourceGroups'")
    method: str = Field(default="get", min_length=1, description="HTTP method: get, post, put, patch or delete")
    api_version: Optional[str] = Field(default=None, description="Azure RM api-version (required for azure)")
    subscription_id: Optional[str] = Field(default=None, description="Azure subscription ID")
    query_params: Dict[str, str] = Field(default_factory=dict, description="Extra query parameters")
    body: Any = Field(default=None, description="Request body for post/put/patch")
    graph_api_version: Literal["v1.0", "beta"] = Field(default="v1.0", description="Microsoft Graph version")
    fetch_all: bool = Field(default=False, description="Follow continuation links and return every page")
    consistency_level: Optional[str] = Field(default=None, description="Graph ConsistencyLevel header")
    max_retries: int = Field(default_factory=lambda: settings.default_max_retries, ge=0, le=10)
    retry_delay: int = Field(default_factory=lambda: settings.default_retry_delay_ms, ge=0, description="Base backoff delay (ms)")
    timeout: int = Field(default_factory=lambda: settings.default_timeout_ms, gt=0, description="Per-request timeout (ms)")
    custom_headers: Dict[str, str] = Field(default_factory=dict)
    response_format: ResponseFormat = Field(default="json")
    select_fields: List[str] = Field(default_factory=list, description="Fields for Graph $select")
    expand_fields: List[str] = Field(default_factory=list, description="Relations for Graph $expand")
    batch_size: int = Field(default_factory=lambda: settings.default_batch_size, ge=1, le=999, description="Graph $top page size when fetchAll is set")

    @field_validator("backend", "method", mode="before")
    @classmethod
    def normalize_name(cls, value: Any) -> Any:
        """Lowercase backend and method; unknown values are reported by the orchestrator."""
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def is_paginated(self) -> bool:
        return self.fetch_all and self.method == "get"

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000


class ApiCallResult(BaseModel):
    """Outcome of one ApiCallRequest, successful or not."""
    text: str = Field(..., description="Formatted payload or JSON error diagnostic")
    execution_time_ms: int = Field(default=0, ge=0)
    item_count: Optional[int] = Field(default=None, description="Items accumulated when paginated")
    error: Optional[Dict[str, Any]] = Field(default=None, description="Structured diagnostic on failure")

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @classmethod
    def failure(cls, error: Dict[str, Any], execution_time_ms: int) -> "ApiCallResult":
        return cls(
            text=json.dumps(error, indent=2, default=str),
            execution_time_ms=execution_time_ms,
            error=error,
        )

    def to_envelope(self) -> Dict[str, Any]:
        """Single text block envelope handed back to the tool layer."""
        envelope: Dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            envelope["isError"] = True
        return envelope
