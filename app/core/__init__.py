"""Core module containing constants and utilities."""
from app.core.constants import (
    AZURE_NEXT_LINK,
    BODY_METHODS,
    GRAPH_CONTEXT,
    GRAPH_NEXT_LINK,
    NO_CONTENT_STATUS,
    SUPPORTED_METHODS,
)

__all__ = [
    "AZURE_NEXT_LINK",
    "BODY_METHODS",
    "GRAPH_CONTEXT",
    "GRAPH_NEXT_LINK",
    "NO_CONTENT_STATUS",
    "SUPPORTED_METHODS",
]
