import hashlib
import json

import pytest

from spamshield.services.learning.fingerprint import (
    IpOrBucketMatcher,
    IpOrLengthMatcher,
    extract_features,
    get_matcher,
    length_bucket,
    user_agent_family,
)


@pytest.mark.parametrize(
    "user_agent, family",
    [
        ("Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Chrome/125.0.6422.60 Safari/537.36", "Chrome/125"),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:126.0) Gecko/20100101 Firefox/126.0", "Firefox/126"),
        ("Mozilla/5.0 (Macintosh) AppleWebKit/605.1.15 Version/17.4 Safari/605", "Safari/605"),
        ("curl/8.5.0", "curl"),
        ("python-requests/2.31.0", "python-requests"),
        ("Wget/1.21", "Wget"),
        ("Go-http-client/1.1", "Go-http-client"),
        ("", "unknown"),
        ("SomethingElse", "unknown"),
    ],
)
def test_user_agent_family(user_agent, family):
    assert user_agent_family(user_agent) == family


@pytest.mark.parametrize("length, bucket", [(0, 0), (1, 1), (49, 1), (50, 50), (120, 100), (9999, 5000)])
def test_length_bucket(length, bucket):
    assert length_bucket(length) == bucket


def test_fingerprint_uses_bucket_not_raw_length(make_context):
    first = extract_features(make_context(content="a" * 60), ["casino"], "promotional")
    second = extract_features(make_context(content="b" * 70), ["casino"], "promotional")

    assert first.content_length != second.content_length
    assert first.fingerprint() == second.fingerprint()


def test_fingerprint_is_sha256_of_canonical_features(make_context):
    features = extract_features(make_context(), ["casino"], "promotional")
    payload = json.dumps(features.canonical(), sort_keys=True, ensure_ascii=False)

    assert features.fingerprint() == hashlib.sha256(payload.encode("utf-8")).hexdigest()
    assert len(features.fingerprint()) == 64


def test_fingerprint_ignores_indicator_order(make_context):
    context = make_context()
    first = extract_features(context, ["loan", "casino"], "promotional")
    second = extract_features(context, ["casino", "loan", "casino"], "promotional")

    assert first.spam_indicators == ["casino", "loan"]
    assert first.fingerprint() == second.fingerprint()


def test_fingerprint_depends_on_ip(make_context):
    first = extract_features(make_context(ip="1.1.1.1"))
    second = extract_features(make_context(ip="9.9.9.9"))
    assert first.fingerprint() != second.fingerprint()


def test_features_round_trip_through_dict(make_context):
    features = extract_features(make_context(content="see http://x.example"), ["bot"], "bot")
    assert type(features).from_dict(features.to_dict()) == features
    assert features.has_links


def test_length_matcher_requires_non_empty_content(make_context):
    stored = extract_features(make_context(content="", ip="1.1.1.1"))
    candidate = extract_features(make_context(content="", ip="9.9.9.9"))
    assert not IpOrLengthMatcher().matches(stored, candidate)


def test_bucket_matcher_accepts_nearby_lengths(make_context):
    stored = extract_features(make_context(content="a" * 260, ip="1.1.1.1"))
    candidate = extract_features(make_context(content="b" * 300, ip="9.9.9.9"))

    assert IpOrBucketMatcher().matches(stored, candidate)
    assert not IpOrLengthMatcher().matches(stored, candidate)


def test_unknown_strategy_raises():
    with pytest.raises(ValueError):
        get_matcher("cosine")
