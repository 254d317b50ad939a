# spamshield/config/models/core.py
from typing import List

from pydantic import BaseModel, ConfigDict


class LoggingConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    json_enabled: bool = False
    service_name: str = "spamshield"
    debug_loggers: List[str] = []


class RedisConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    key_prefix: str = "spamshield"
    socket_connect_timeout: int = 5
    health_check_interval: int = 30
