"""Generic Microsoft Graph / Azure Resource Management invocation engine."""
from app.services.microsoft_api.exceptions import (
    ApiCallError,
    AuthError,
    ClientError,
    NetworkError,
    PaginationError,
    ParameterError,
    RequestTimeoutError,
    ServerError,
    ThrottleError,
    UnsupportedMethodError,
)
from app.services.microsoft_api.retry import RetryPolicy, is_retryable
from app.services.microsoft_api.backend import BackendExecutor
from app.services.microsoft_api.graph_executor import GraphBackendExecutor, GraphRequest
from app.services.microsoft_api.azure_executor import AzureBackendExecutor
from app.services.microsoft_api.pagination import PageAccumulator, Paginator
from app.services.microsoft_api.formatter import ResponseFormatter
from app.services.microsoft_api.orchestrator import ApiCallOrchestrator

__all__ = [
    "ApiCallError",
    "AuthError",
    "ClientError",
    "NetworkError",
    "PaginationError",
    "ParameterError",
    "RequestTimeoutError",
    "ServerError",
    "ThrottleError",
    "UnsupportedMethodError",
    "RetryPolicy",
    "is_retryable",
    "BackendExecutor",
    "GraphBackendExecutor",
    "GraphRequest",
    "AzureBackendExecutor",
    "PageAccumulator",
    "Paginator",
    "ResponseFormatter",
    "ApiCallOrchestrator",
]
