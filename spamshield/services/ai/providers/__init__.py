from spamshield.services.ai.providers.base import (
    BaseAIProvider,
    ClassifierError,
    ClassifierHTTPError,
    ClassifierResponseError,
)
from spamshield.services.ai.providers.gemini_provider import GeminiProvider
from spamshield.services.ai.providers.openai_provider import OpenAIProvider

__all__ = [
    "BaseAIProvider",
    "ClassifierError",
    "ClassifierHTTPError",
    "ClassifierResponseError",
    "GeminiProvider",
    "OpenAIProvider",
]
