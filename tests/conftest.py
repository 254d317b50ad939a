import asyncio
import os
import sys
import time
from pathlib import Path

import fakeredis.aioredis
import pytest
import pytest_asyncio

# Minimal env variables so importing settings does not pick up real keys
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("GEMINI_API_KEY", "")
os.environ.setdefault("OPENAI_API_KEY", "")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from spamshield.config.models import (  # noqa: E402
    AIConfig,
    AnalyticsConfig,
    LearningConfig,
    ProtectionConfig,
)
from spamshield.services.ai.providers.base import BaseAIProvider  # noqa: E402
from spamshield.services.protection.models import SubmissionContext  # noqa: E402


@pytest_asyncio.fixture
async def redis():
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    await r.flushall()
    yield r
    await r.flushall()
    await r.aclose()


@pytest.fixture
def protection_config():
    return ProtectionConfig()


@pytest.fixture
def learning_config():
    return LearningConfig()


@pytest.fixture
def analytics_config():
    return AnalyticsConfig()


@pytest.fixture
def ai_config():
    return AIConfig(ai_enabled=True, request_timeout=1, cache_ttl=60)


@pytest.fixture
def make_context():
    """Фабрика отправок: форма загружена 10 секунд назад, обычный браузер."""

    def _make(**overrides) -> SubmissionContext:
        now = overrides.pop("now", time.time())
        fields = {
            "content": "Hello, I would like to ask about your opening hours.",
            "author_name": "Alice",
            "author_email": "alice@example.com",
            "author_url": "",
            "ip": "8.8.8.8",
            "user_agent": "Mozilla/5.0 (X11; Linux x86_64) Chrome/125.0.0.0 Safari/537.36",
            "form_loaded_at": now - 10,
            "submitted_at": now,
        }
        fields.update(overrides)
        return SubmissionContext(**fields)

    return _make


class FakeProvider(BaseAIProvider):
    """Провайдер с заранее заданным ответом."""

    def __init__(self, response="", name="Gemini", delay=0.0, error=None):
        self.response = response
        self.name = name
        self.delay = delay
        self.error = error
        self.calls = 0
        self.prompts = []
        self.closed = False

    def get_name(self) -> str:
        return self.name

    def is_available(self) -> bool:
        return True

    async def generate_json(self, prompt, json_schema, temperature=0.1):
        self.calls += 1
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_provider():
    return FakeProvider
