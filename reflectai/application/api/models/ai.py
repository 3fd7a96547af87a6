"""
AI API Request/Response Models

Pydantic models for the AI response endpoint. Field names are snake_case;
``personaId``/``roomId`` style aliases are accepted for existing clients.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AIRequest(BaseModel):
    """
    Request body for POST /ai/respond.

    Example:
        {
            "system_prompt": "You are a reflective journaling companion.",
            "user_input": "I felt anxious before my presentation today.",
            "persona_id": "coach",
            "preferred_provider": "openai"
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    system_prompt: str = Field(default="", description="System prompt for the model")
    user_input: str = Field(..., min_length=1, description="End-user text")
    persona_id: str | None = Field(default=None, alias="personaId", description="Persona id")
    room_id: str | None = Field(default=None, alias="roomId", description="Room id")
    preferred_provider: str | None = Field(default=None, description="Provider to favor")
    preferred_model: str | None = Field(default=None, description="Explicit model request")
    stream: bool = Field(default=False, description="Streaming calls bypass the response cache")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int | None = Field(default=None, gt=0, description="Completion token ceiling")

    @field_validator("user_input")
    @classmethod
    def validate_user_input(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_input must not be blank")
        return v


class AIResponseModel(BaseModel):
    text: str = Field(..., description="Generated text")
    provider: str = Field(..., description="Provider that produced the text")
    model: str = Field(..., description="Model that produced the text")
    usage: dict[str, int] = Field(default_factory=dict, description="Token usage")
    cached: bool = Field(default=False, description="True when served from the response cache")
    failover: bool = Field(default=False, description="True when the alternate provider answered")


class ErrorResponse(BaseModel):
    """Error body returned by every exception handler."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="User-facing message")
    request_id: str | None = Field(default=None, description="Request correlation id")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional context")
