import asyncio
import json

import pytest

from spamshield.config.models import AIConfig, LearningConfig
from spamshield.services.ai.providers.base import ClassifierHTTPError
from spamshield.services.ai.service import ClassifierAdapter
from spamshield.services.analytics import AnalyticsRecorder
from spamshield.services.events import SubmissionEvaluated
from spamshield.services.learning.fingerprint import extract_features
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.models import DetectionMethod, Verdict
from spamshield.services.protection.rate_limiter import RateLimiter

SPAM_REPLY = json.dumps({
    "is_spam": True,
    "confidence": 90,
    "spam_indicators": ["casino"],
    "threat_type": "promotional",
    "reasoning": "advertising",
    "recommended_action": "block",
})


def build_adapter(redis, providers, config=None, **kwargs):
    return ClassifierAdapter(
        redis,
        config=config or AIConfig(ai_enabled=True, request_timeout=1),
        learning_config=LearningConfig(),
        providers=providers,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_spam_reply_above_threshold(redis, make_context, make_provider):
    provider = make_provider(SPAM_REPLY)
    adapter = build_adapter(redis, [provider])

    result = await adapter.classify(make_context(content="casino bonus"))

    assert result.is_spam is True
    assert result.confidence == 90
    assert result.provider == "Gemini"
    assert result.detection_method == DetectionMethod.GEMINI_AI
    assert result.to_payload()["threat_type"] == "promotional"


@pytest.mark.asyncio
async def test_spam_reply_below_threshold_is_not_spam(redis, make_context, make_provider):
    reply = json.dumps({"is_spam": True, "confidence": 74})
    adapter = build_adapter(redis, [make_provider(reply)])

    result = await adapter.classify(make_context())

    assert result.is_spam is False
    assert result.confidence == 74


@pytest.mark.asyncio
async def test_identical_context_is_classified_once(redis, make_context, make_provider):
    provider = make_provider(SPAM_REPLY)
    adapter = build_adapter(redis, [provider])
    context = make_context(now=1000.0)

    first = await adapter.classify(context)
    second = await adapter.classify(context)

    assert provider.calls == 1
    assert second.cached is True
    assert second.is_spam == first.is_spam
    assert second.confidence == first.confidence


@pytest.mark.asyncio
async def test_unparseable_reply_is_safe_and_not_cached(redis, make_context, make_provider):
    provider = make_provider("I am not able to help with that.")
    adapter = build_adapter(redis, [provider])
    context = make_context(now=1000.0)

    result = await adapter.classify(context)
    await adapter.classify(context)

    assert result.parsed is False
    assert result.is_spam is False
    assert result.confidence == 0
    assert provider.calls == 2


@pytest.mark.asyncio
async def test_failover_to_second_provider(redis, make_context, make_provider):
    failing = make_provider(error=ClassifierHTTPError(500, "boom"))
    backup = make_provider(SPAM_REPLY, name="OpenAI")
    adapter = build_adapter(redis, [failing, backup])

    result = await adapter.classify(make_context())

    assert failing.calls == 1
    assert backup.calls == 1
    assert result.provider == "OpenAI"
    assert result.detection_method == DetectionMethod.OPENAI_AI


@pytest.mark.asyncio
async def test_all_providers_failing_degrades_to_none(redis, make_context, make_provider):
    adapter = build_adapter(redis, [make_provider(error=RuntimeError("down"))])
    assert await adapter.classify(make_context()) is None


@pytest.mark.asyncio
async def test_timeout_degrades_to_none(redis, make_context, make_provider):
    adapter = build_adapter(redis, [make_provider(SPAM_REPLY, delay=5)])

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await adapter.classify(make_context())

    assert result is None
    assert loop.time() - started < 3


@pytest.mark.asyncio
async def test_global_quota_exhaustion_degrades_to_none(redis, make_context, make_provider):
    provider = make_provider(SPAM_REPLY)
    quota = RateLimiter(redis, window_seconds=60, max_requests=1, scope="ai_quota")
    adapter = build_adapter(redis, [provider], quota=quota)

    assert await adapter.classify(make_context(ip="1.1.1.1")) is not None
    assert await adapter.classify(make_context(ip="2.2.2.2")) is None
    assert provider.calls == 1


@pytest.mark.asyncio
async def test_no_providers_means_unavailable(redis, make_context):
    adapter = build_adapter(redis, [])

    assert adapter.is_available() is False
    assert await adapter.classify(make_context()) is None


@pytest.mark.asyncio
async def test_prompt_contains_submission_and_hints(redis, make_context, make_provider):
    store = ThreatPatternStore(redis, config=LearningConfig())
    await store.upsert(
        extract_features(make_context(ip="5.5.5.5"), ["crypto-scam"], "malicious"),
        95,
        "malicious",
    )
    analytics = AnalyticsRecorder(redis)
    spam_context = make_context(content="WIN FREE <b>MONEY</b> NOW", ip="6.6.6.6")
    await analytics.record(SubmissionEvaluated(spam_context, Verdict(is_spam=True, confidence=100)))

    provider = make_provider(SPAM_REPLY)
    adapter = build_adapter(redis, [provider], pattern_store=store, analytics=analytics)
    await adapter.classify(make_context(content="<p>Hello <b>there</b></p>"))

    prompt = provider.prompts[0]
    assert "Content: Hello there" in prompt
    assert "IP: 8.8.8.8" in prompt
    assert "malicious [crypto-scam] (confidence: 95)" in prompt
    assert "- WIN FREE MONEY NOW" in prompt
    assert '"recommended_action": "block/flag/allow"' in prompt


@pytest.mark.asyncio
async def test_connection_test(redis, make_provider):
    reply = (
        '{"is_spam":false,"confidence":0,"spam_indicators":[],"threat_type":"legitimate",'
        '"reasoning":"connectivity test","recommended_action":"allow"}'
    )
    adapter = build_adapter(redis, [make_provider(reply)])

    status = await adapter.test_connection()

    assert status["success"] is True
    assert status["provider"] == "Gemini"
    assert status["recommended_action"] == "allow"


@pytest.mark.asyncio
async def test_connection_test_with_bad_reply(redis, make_provider):
    adapter = build_adapter(redis, [make_provider("hello")])
    status = await adapter.test_connection()
    assert status["success"] is False


@pytest.mark.asyncio
async def test_close_closes_providers(redis, make_provider):
    provider = make_provider(SPAM_REPLY)
    await build_adapter(redis, [provider]).close()
    assert provider.closed is True


@pytest.mark.asyncio
async def test_hanging_provider_leaves_time_for_backup(redis, make_context, make_provider):
    hanging = make_provider(SPAM_REPLY, name="Gemini", delay=5)
    backup = make_provider(SPAM_REPLY, name="OpenAI")
    adapter = build_adapter(
        redis,
        [hanging, backup],
        config=AIConfig(ai_enabled=True, request_timeout=2),
    )

    assert adapter.provider_timeout == pytest.approx(1.0)

    result = await adapter.classify(make_context())

    assert result is not None
    assert result.provider == "OpenAI"
    assert backup.calls == 1


@pytest.mark.asyncio
async def test_prompt_hint_limits(redis, make_context, make_provider):
    store = ThreatPatternStore(redis, config=LearningConfig())
    for i in range(12):
        features = extract_features(make_context(ip=f"10.0.0.{i}"), ["casino"], f"type-{i}")
        await store.upsert(features, 90, f"type-{i}")

    analytics = AnalyticsRecorder(redis)
    for i in range(7):
        spam = Verdict(is_spam=True, confidence=95, detection_method=DetectionMethod.HEURISTIC)
        await analytics.record(SubmissionEvaluated(make_context(content=f"spam sample {i}"), spam))

    provider = make_provider(SPAM_REPLY)
    adapter = build_adapter(redis, [provider], pattern_store=store, analytics=analytics)
    await adapter.classify(make_context())

    prompt = provider.prompts[0]
    assert prompt.count("(confidence: 90)") == 10
    assert prompt.count("- spam sample") == 5
