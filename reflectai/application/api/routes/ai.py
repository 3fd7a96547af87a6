"""
AI Response Routes

POST /ai/respond is the HTTP face of ``AIService.get_ai_response``. The
caller identity comes from the X-User-ID header, falling back to the client
address, and is rate limited by the AI service itself under the AI route
class.
"""

from fastapi import APIRouter, Request, status
from slowapi.util import get_remote_address

from reflectai.application.api.dependencies import AIServiceDep
from reflectai.application.api.models.ai import AIRequest, AIResponseModel, ErrorResponse
from reflectai.application.services.ai_service import AIRequestOptions
from reflectai.core.config.constants import HEADER_USER_ID
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])


@router.post(
    "/respond",
    response_model=AIResponseModel,
    status_code=status.HTTP_200_OK,
    responses={
        403: {"model": ErrorResponse, "description": "Identity blocked"},
        413: {"model": ErrorResponse, "description": "Input too large for every model"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        502: {"model": ErrorResponse, "description": "Provider error"},
        503: {"model": ErrorResponse, "description": "All providers unavailable"},
    },
)
async def respond(body: AIRequest, request: Request, ai_service: AIServiceDep) -> AIResponseModel:
    """
    Generate an AI response with caching, rate limiting and provider failover.

    Errors are raised as resilience layer exceptions and mapped to HTTP
    status codes by the application's exception handlers.
    """
    options = AIRequestOptions(
        caller_id=request.headers.get(HEADER_USER_ID),
        ip_address=get_remote_address(request),
        persona_id=body.persona_id,
        room_id=body.room_id,
        preferred_provider=body.preferred_provider,
        preferred_model=body.preferred_model,
        stream=body.stream,
        temperature=body.temperature,
        max_tokens=body.max_tokens,
    )
    result = await ai_service.get_ai_response(body.system_prompt, body.user_input, options)
    return AIResponseModel(**result.to_dict())
