# spamshield/config/models/ai.py
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class AIConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    ai_enabled: bool = False
    ai_confidence_threshold: int = Field(default=75, ge=0, le=100)

    # Порядок перебора провайдеров при отказе
    providers: List[str] = ["gemini", "openai"]

    gemini_model: str = "gemini-1.5-flash-latest"
    gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    openai_model: str = "gpt-4o-mini"

    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    max_output_tokens: int = 1000
    request_timeout: int = Field(default=30, ge=1)
    max_retries: int = Field(default=3, ge=1)

    cache_ttl: int = Field(default=3600, ge=1)

    # Квота на обращения к удаленному классификатору
    rate_limit_window: int = Field(default=60, ge=1)
    max_requests_per_window: int = Field(default=100, ge=1)

    recent_spam_in_prompt: int = 5
