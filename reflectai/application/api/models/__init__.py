from .admin import (
    BreakerResetResponse,
    BreakerStatus,
    BreakerTripResponse,
    ClearResponse,
    ProviderStatus,
    StatusResponse,
)
from .ai import AIRequest, AIResponseModel, ErrorResponse

__all__ = [
    "AIRequest",
    "AIResponseModel",
    "BreakerResetResponse",
    "BreakerStatus",
    "BreakerTripResponse",
    "ClearResponse",
    "ErrorResponse",
    "ProviderStatus",
    "StatusResponse",
]
