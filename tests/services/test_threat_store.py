import asyncio
import csv
import io

import pytest
from redis.exceptions import RedisError

from spamshield.config.models import LearningConfig
from spamshield.services.learning.fingerprint import extract_features
from spamshield.services.learning.store import CSV_HEADER, ThreatPatternStore
from spamshield.services.protection.blocklist import BlockedIPSet

DAY = 86400
NOW = 1_700_000_000.0


@pytest.fixture
def store(redis):
    return ThreatPatternStore(redis, config=LearningConfig())


@pytest.fixture
def features(make_context):
    return extract_features(make_context(content="cheap casino bonus"), ["casino"], "promotional")


@pytest.mark.asyncio
async def test_new_pattern_is_inserted(store, features):
    assert await store.upsert(features, 85, "promotional", {"reasoning": "test"}, now=NOW) == 1

    pattern = await store.lookup(features.fingerprint())
    assert pattern.pattern_type == "promotional"
    assert pattern.confidence_score == 85
    assert pattern.detection_count == 1
    assert pattern.created_at == NOW
    assert pattern.pattern_data == features
    assert pattern.ai_analysis == {"reasoning": "test"}
    assert pattern.is_verified is False


@pytest.mark.asyncio
async def test_repeat_detection_increments_and_raises_confidence(store, features):
    await store.upsert(features, 85, "promotional", now=NOW)
    count = await store.upsert(features, 70, "promotional", now=NOW + 10)

    pattern = await store.lookup(features.fingerprint())
    assert count == 2
    assert pattern.detection_count == 2
    # max(85, 70) + 5
    assert pattern.confidence_score == 90
    assert pattern.last_detected == NOW + 10
    assert pattern.created_at == NOW


@pytest.mark.asyncio
async def test_confidence_is_capped_at_100(store, features):
    for _ in range(5):
        await store.upsert(features, 95, "promotional")

    pattern = await store.lookup(features.fingerprint())
    assert pattern.confidence_score == 100


@pytest.mark.asyncio
async def test_concurrent_upserts_produce_one_row(redis, store, features):
    results = await asyncio.gather(*(store.upsert(features, 81, "promotional") for _ in range(10)))

    assert sorted(results) == list(range(1, 11))
    assert await store.count() == 1
    pattern = await store.lookup(features.fingerprint())
    assert pattern.detection_count == 10
    assert pattern.confidence_score == 100


@pytest.mark.asyncio
async def test_confidence_never_decreases(store, features):
    seen = []
    for incoming in (90, 10, 50, 0):
        await store.upsert(features, incoming, "promotional")
        seen.append((await store.lookup(features.fingerprint())).confidence_score)

    assert seen == sorted(seen)


@pytest.mark.asyncio
async def test_lookup_unknown_hash(store):
    assert await store.lookup("0" * 32) is None


@pytest.mark.asyncio
async def test_top_patterns_filters_and_orders(store, make_context):
    low = extract_features(make_context(ip="1.1.1.1"), ["a"], "bot")
    mid = extract_features(make_context(ip="2.2.2.2"), ["b"], "bot")
    high = extract_features(make_context(ip="3.3.3.3"), ["c"], "malicious")
    await store.upsert(low, 70, "bot")
    await store.upsert(mid, 80, "bot")
    await store.upsert(high, 95, "malicious")

    patterns = await store.top_patterns(min_confidence=70, limit=10)

    assert [p.pattern_data.ip for p in patterns] == ["3.3.3.3", "2.2.2.2"]


@pytest.mark.asyncio
async def test_prune_removes_stale_noise(store, make_context):
    old_weak = extract_features(make_context(ip="1.1.1.1"), ["old"], "bot")
    month_single = extract_features(make_context(ip="2.2.2.2"), ["single"], "bot")
    month_repeated = extract_features(make_context(ip="3.3.3.3"), ["repeated"], "bot")
    old_strong = extract_features(make_context(ip="4.4.4.4"), ["strong"], "bot")
    fresh = extract_features(make_context(ip="5.5.5.5"), ["fresh"], "bot")

    await store.upsert(old_weak, 50, "bot", now=NOW - 100 * DAY)
    await store.upsert(month_single, 70, "bot", now=NOW - 40 * DAY)
    await store.upsert(month_repeated, 60, "bot", now=NOW - 40 * DAY)
    await store.upsert(month_repeated, 60, "bot", now=NOW - 39 * DAY)
    await store.upsert(old_strong, 90, "bot", now=NOW - 100 * DAY)
    await store.upsert(fresh, 10, "bot", now=NOW - DAY)

    removed = await store.prune(now=NOW)

    assert removed == 2
    assert await store.lookup(old_weak.fingerprint()) is None
    assert await store.lookup(month_single.fingerprint()) is None
    assert await store.lookup(month_repeated.fingerprint()) is not None
    assert await store.lookup(old_strong.fingerprint()) is not None
    assert await store.lookup(fresh.fingerprint()) is not None
    assert await store.count() == 3


@pytest.mark.asyncio
async def test_statistics(store, make_context):
    first = extract_features(make_context(ip="1.1.1.1"), ["a"], "promotional")
    second = extract_features(make_context(ip="2.2.2.2"), ["b"], "promotional")
    third = extract_features(make_context(ip="3.3.3.3"), ["c"], "bot")
    await store.upsert(first, 90, "promotional", now=NOW - 3600)
    await store.upsert(second, 60, "promotional", now=NOW - 3 * DAY)
    await store.upsert(third, 80, "bot", now=NOW - 3600)
    await store.mark_verified_by_ip("3.3.3.3")

    stats = await store.get_statistics(now=NOW)

    assert stats.total_threats == 3
    assert stats.recent_threats == 2
    assert stats.active_patterns == 2
    assert stats.verified_patterns == 1
    assert stats.detection_accuracy == pytest.approx(33.3)
    assert stats.top_threats[0]["pattern_type"] == "promotional"
    assert stats.top_threats[0]["count"] == 2


@pytest.mark.asyncio
async def test_export_csv(store, features):
    await store.upsert(features, 85, "promotional", now=NOW)

    rows = list(csv.reader(io.StringIO(await store.export_csv())))

    assert tuple(rows[0]) == CSV_HEADER
    assert rows[1][0] == "promotional"
    assert rows[1][1] == "85.0"
    assert rows[1][2] == "1"
    assert rows[1][4] == "No"
    assert rows[1][6] == features.ip
    assert rows[1][7] == "Chrome/125"


@pytest.mark.asyncio
async def test_blocking_ip_verifies_its_patterns(redis, store, features):
    await store.upsert(features, 85, "promotional")
    blocklist = BlockedIPSet(redis, pattern_store=store)

    assert await blocklist.add(features.ip) is True
    assert await blocklist.add(features.ip) is False

    pattern = await store.lookup(features.fingerprint())
    assert pattern.is_verified is True
    assert pattern.confidence_score == 100
    assert await blocklist.contains(features.ip)
    assert await blocklist.members() == {features.ip}


@pytest.mark.asyncio
async def test_blocklist_rejects_invalid_ip(redis):
    with pytest.raises(ValueError):
        await BlockedIPSet(redis).add("not-an-ip")


@pytest.mark.asyncio
async def test_blocklist_unknown_ip(redis):
    blocklist = BlockedIPSet(redis)
    assert await blocklist.contains("9.9.9.9") is False
    assert await blocklist.contains("") is False


@pytest.mark.asyncio
async def test_export_csv_survives_storage_failure(store, monkeypatch):
    async def broken(*args, **kwargs):
        raise RedisError("connection lost")

    monkeypatch.setattr(store.redis, "zrevrange", broken)

    rows = list(csv.reader(io.StringIO(await store.export_csv())))

    assert rows == [list(CSV_HEADER)]
