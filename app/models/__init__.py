# Models Module
from .api_call import ApiCallRequest, ApiCallResult

__all__ = [
    "ApiCallRequest",
    "ApiCallResult",
]
