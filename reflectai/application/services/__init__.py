from .ai_service import AIRequestOptions, AIResponse, AIService

__all__ = ["AIRequestOptions", "AIResponse", "AIService"]
