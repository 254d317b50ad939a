# spamshield/config/settings.py
import logging
from typing import Any, Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from spamshield.config.models import (
    AIConfig,
    AnalyticsConfig,
    LearningConfig,
    LoggingConfig,
    ProtectionConfig,
    RedisConfig,
)


class Settings(BaseSettings):
    REDIS_URL: str = "redis://localhost:6379/0"

    GEMINI_API_KEY: Optional[SecretStr] = None
    OPENAI_API_KEY: Optional[SecretStr] = None

    log_level: str = "INFO"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    redis: RedisConfig = Field(default_factory=RedisConfig)
    protection: ProtectionConfig = Field(default_factory=ProtectionConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    learning: LearningConfig = Field(default_factory=LearningConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_dsn(cls, v: Any) -> str:
        if isinstance(v, str) and not v.startswith(("redis://", "rediss://", "unix://")):
            return f"redis://{v}"
        return v

    @property
    def redis_url(self) -> str:
        return self.REDIS_URL

    @property
    def gemini_api_key(self) -> Optional[str]:
        return self.GEMINI_API_KEY.get_secret_value() if self.GEMINI_API_KEY else None

    @property
    def openai_api_key(self) -> Optional[str]:
        return self.OPENAI_API_KEY.get_secret_value() if self.OPENAI_API_KEY else None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )


try:
    settings = Settings()
except ValidationError as e:
    logging.critical(
        "❌ КРИТИЧЕСКАЯ ОШИБКА ВАЛИДАЦИИ НАСТРОЕК. Проверьте .env и переменные окружения.\n%s",
        e,
    )
    raise SystemExit("Ошибки валидации конфигурации.")
