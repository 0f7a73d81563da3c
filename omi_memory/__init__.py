"""Client for the memory ingestion integration API."""

from omi_memory.client import ApiResult, OmiClient, create_memory
from omi_memory.errors import (
    ApiError,
    Forbidden,
    InvalidRequest,
    NotFound,
    RateLimited,
    ServerError,
    TransportError,
    Unauthenticated,
)
from omi_memory.models import Geolocation, MemoryRequest, TextSource
from omi_memory.retry import RetryPolicy

__all__ = [
    "ApiError",
    "ApiResult",
    "Forbidden",
    "Geolocation",
    "InvalidRequest",
    "MemoryRequest",
    "NotFound",
    "OmiClient",
    "RateLimited",
    "RetryPolicy",
    "ServerError",
    "TextSource",
    "TransportError",
    "Unauthenticated",
    "create_memory",
]
