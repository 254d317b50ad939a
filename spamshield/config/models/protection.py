# spamshield/config/models/protection.py
from pydantic import BaseModel, ConfigDict, Field


class ProtectionConfig(BaseModel):
    """Параметры локальных проверок (honeypot, время, частота, эвристики)."""

    model_config = ConfigDict(protected_namespaces=())

    honeypot_enabled: bool = True
    # 0 отключает проверку времени заполнения формы
    min_time_seconds: int = Field(default=3, ge=0)

    rate_limit_window: int = Field(default=60, ge=1)
    max_submissions: int = Field(default=3, ge=1)
    rate_limit_prefix: str = "rate"

    spam_threshold: int = Field(default=50, ge=1)
