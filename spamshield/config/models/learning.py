# spamshield/config/models/learning.py
from typing import Literal, Set

from pydantic import BaseModel, ConfigDict, Field, model_validator


FallbackStrategy = Literal["ip_or_length", "ip_or_bucket", "ip_only"]


class LearningConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    auto_learning_enabled: bool = True
    # Учимся только на уверенных вердиктах (строго больше порога)
    learning_confidence_floor: float = Field(default=80, ge=0, le=100)
    confidence_step: float = Field(default=5, ge=0, le=100)
    # Методы обнаружения, чьи вердикты пополняют базу угроз
    learnable_methods: Set[str] = {"gemini_ai", "openai_ai", "heuristic", "honeypot"}

    fallback_min_confidence: float = Field(default=80, ge=0, le=100)
    fallback_strategy: FallbackStrategy = "ip_or_length"
    fallback_scan_limit: int = Field(default=500, ge=1)

    prompt_min_confidence: float = 70
    prompt_patterns_limit: int = 10

    pattern_retention_days: int = Field(default=90, ge=1)
    pattern_min_confidence: float = Field(default=60, ge=0, le=100)
    single_detection_retention_days: int = Field(default=30, ge=1)
    single_detection_min_confidence: float = Field(default=75, ge=0, le=100)

    @model_validator(mode="after")
    def check_retention_windows(self) -> "LearningConfig":
        if self.single_detection_retention_days > self.pattern_retention_days:
            raise ValueError(
                "single_detection_retention_days не может превышать pattern_retention_days"
            )
        return self


class AnalyticsConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    max_records: int = Field(default=10000, ge=1)
    preview_length: int = 100
    recent_spam_hours: int = 24
