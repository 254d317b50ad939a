from spamshield.config.models.ai import AIConfig
from spamshield.config.models.core import LoggingConfig, RedisConfig
from spamshield.config.models.learning import (
    AnalyticsConfig,
    FallbackStrategy,
    LearningConfig,
)
from spamshield.config.models.protection import ProtectionConfig

__all__ = [
    "AIConfig",
    "AnalyticsConfig",
    "FallbackStrategy",
    "LearningConfig",
    "LoggingConfig",
    "ProtectionConfig",
    "RedisConfig",
]
