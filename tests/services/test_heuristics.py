import pytest

from spamshield.config.models import LearningConfig, ProtectionConfig
from spamshield.services.learning.fingerprint import extract_features
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.config import HeuristicConfig
from spamshield.services.protection.evaluator import HeuristicEvaluator
from spamshield.services.protection.models import DetectionMethod, ReasonCode

SPAM_TEXT = "Buy cheap viagra now!!! http://a.co http://b.co http://c.co http://d.co"


@pytest.fixture
def evaluator():
    return HeuristicEvaluator(config=ProtectionConfig(), learning_config=LearningConfig())


def codes(result):
    return [signal.code for signal in result.signals]


# --- Honeypot и время ---

def test_honeypot_filled_scores_100(evaluator, make_context):
    result = evaluator.check_honeypot(make_context(honeypot_value="http://spam.example"))
    assert result.score == 100
    assert codes(result) == [ReasonCode.HONEYPOT]


def test_honeypot_whitespace_is_empty(evaluator, make_context):
    assert not evaluator.check_honeypot(make_context(honeypot_value="   ")).triggered


def test_fast_submission_fails_timing(evaluator, make_context):
    context = make_context(now=1000.0, form_loaded_at=999.0, submitted_at=1000.0)
    result = evaluator.check_timing(context)
    assert result.score == 60
    assert codes(result) == [ReasonCode.TIME_VALIDATION]


def test_missing_load_timestamp_counts_as_too_fast(evaluator, make_context):
    result = evaluator.check_timing(make_context(form_loaded_at=None))
    assert result.triggered
    assert result.signals[0].detail == "missing_timestamp"


def test_slow_submission_passes_timing(evaluator, make_context):
    assert not evaluator.check_timing(make_context()).triggered


# --- Контент ---

def test_spam_content_scores_keywords_links_and_punctuation(evaluator, make_context):
    result = evaluator.score(make_context(content=SPAM_TEXT))
    # viagra 25 + 2 лишние ссылки по 10 + "!!!" 10
    assert result.score == 55
    assert codes(result) == [ReasonCode.CONTENT_ANALYSIS]
    assert "keyword:viagra" in result.signals[0].detail
    assert evaluator.is_spam_score(result.score)


def test_low_content_score_has_no_signal(evaluator, make_context):
    result = evaluator.score(make_context(content="THIS IS A VERY LOUD MESSAGE FOR YOU"))
    assert result.score == 15
    assert result.signals == []


def test_keywords_are_case_insensitive(evaluator, make_context):
    result = evaluator.score(make_context(content="Visit our CASINO and play POKER"))
    assert result.score == 35
    assert codes(result) == [ReasonCode.CONTENT_ANALYSIS]


def test_two_links_are_free(evaluator, make_context):
    result = evaluator.score(make_context(content="See https://a.example and https://b.example"))
    assert result.score == 0


def test_markup_injection_scores_50(evaluator, make_context):
    result = evaluator.score(make_context(content="nice post [url=http://x.example]x[/url]"))
    assert result.score == 50
    assert codes(result) == [ReasonCode.SUSPICIOUS_MARKUP]


def test_script_in_author_name_is_markup(evaluator, make_context):
    result = evaluator.score(make_context(author_name="<script>alert(1)</script>"))
    assert ReasonCode.SUSPICIOUS_MARKUP in codes(result)


# --- Автор и сайт ---

@pytest.mark.parametrize(
    "overrides",
    [
        {"author_name": ""},
        {"author_name": "A"},
        {"author_name": "http://spam.example"},
        {"author_email": "bob@mail.tk"},
        {"author_email": "bob@tempmail.com"},
        {"author_email": "bob@10minutemail.net"},
    ],
)
def test_suspicious_author_scores_30_once(evaluator, make_context, overrides):
    result = evaluator.score(make_context(**overrides))
    assert codes(result).count(ReasonCode.AUTHOR_ANALYSIS) == 1
    assert result.score >= 30


@pytest.mark.parametrize(
    "url",
    ["http://a.b.c.d.example.com", "https://win-big.click", "free.download/offer", "http://x.tk"],
)
def test_suspicious_author_url_scores_40(evaluator, make_context, url):
    result = evaluator.score(make_context(author_url=url))
    assert codes(result) == [ReasonCode.URL_ANALYSIS]
    assert result.score == 40


def test_normal_author_url_is_clean(evaluator, make_context):
    assert evaluator.score(make_context(author_url="https://www.example.com/about")).score == 0


def test_author_and_url_together_reach_threshold(evaluator, make_context):
    verdict = evaluator.evaluate(make_context(author_name="", author_url="http://x.tk"))
    assert verdict.is_spam
    assert verdict.confidence == 70
    assert verdict.detection_method == DetectionMethod.HEURISTIC
    assert verdict.reason == "author_analysis, url_analysis"


def test_score_is_not_truncated_but_confidence_is_capped(evaluator, make_context):
    context = make_context(
        content=SPAM_TEXT + " casino poker [url=x]",
        author_name="",
        author_url="http://x.tk",
    )
    assert evaluator.score(context).score > 100
    assert evaluator.evaluate(context).confidence == 100


def test_custom_threshold(make_context):
    evaluator = HeuristicEvaluator(config=ProtectionConfig(spam_threshold=30))
    assert evaluator.evaluate(make_context(author_name="")).is_spam


def test_custom_keyword_table(make_context):
    heuristics = HeuristicConfig(SPAM_KEYWORDS={"crypto": 60})
    evaluator = HeuristicEvaluator(config=ProtectionConfig(), heuristics=heuristics)
    assert evaluator.evaluate(make_context(content="Best crypto signals")).is_spam


def test_clean_message_verdict(evaluator, make_context):
    verdict = evaluator.evaluate(make_context())
    assert not verdict.is_spam
    assert verdict.confidence == 0
    assert verdict.reason == "clean"


# --- Резервное сравнение с базой угроз ---

async def _seed_pattern(redis, context, confidence):
    store = ThreatPatternStore(redis, config=LearningConfig())
    await store.upsert(extract_features(context, ["casino"], "promotional"), confidence, "promotional")
    return store


@pytest.mark.asyncio
async def test_pattern_fallback_matches_same_ip(redis, make_context):
    store = await _seed_pattern(redis, make_context(content="casino casino"), 90)
    evaluator = HeuristicEvaluator(pattern_store=store, learning_config=LearningConfig())

    verdict = await evaluator.match_pattern(make_context(content="something else entirely"))

    assert verdict is not None
    assert verdict.is_spam
    assert verdict.confidence == 90
    assert verdict.detection_method == DetectionMethod.PATTERN_FALLBACK
    assert verdict.signals[0].code == ReasonCode.PATTERN_FALLBACK


@pytest.mark.asyncio
async def test_pattern_fallback_matches_same_length_and_links(redis, make_context):
    store = await _seed_pattern(redis, make_context(content="x" * 40, ip="1.1.1.1"), 90)
    evaluator = HeuristicEvaluator(pattern_store=store, learning_config=LearningConfig())

    verdict = await evaluator.match_pattern(make_context(content="y" * 40, ip="9.9.9.9"))

    assert verdict is not None


@pytest.mark.asyncio
async def test_pattern_fallback_ignores_low_confidence(redis, make_context):
    store = await _seed_pattern(redis, make_context(), 80)
    evaluator = HeuristicEvaluator(pattern_store=store, learning_config=LearningConfig())

    assert await evaluator.match_pattern(make_context()) is None


@pytest.mark.asyncio
async def test_ip_only_strategy_ignores_length(redis, make_context):
    store = await _seed_pattern(redis, make_context(content="x" * 40, ip="1.1.1.1"), 95)
    evaluator = HeuristicEvaluator(
        pattern_store=store,
        learning_config=LearningConfig(fallback_strategy="ip_only"),
    )

    assert await evaluator.match_pattern(make_context(content="y" * 40, ip="9.9.9.9")) is None
    assert await evaluator.match_pattern(make_context(content="z", ip="1.1.1.1")) is not None


@pytest.mark.asyncio
async def test_pattern_fallback_without_store(evaluator, make_context):
    assert await evaluator.match_pattern(make_context()) is None
