# spamshield/services/learning/fingerprint.py
"""
Извлечение признаков отправки и стратегии сравнения отпечатков.
"""
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Type

from spamshield.services.learning.models import PatternFeatures
from spamshield.services.protection.models import SubmissionContext
from spamshield.utils.text_utils import has_links

# Нижние границы корзин длины текста
LENGTH_BUCKETS = (0, 1, 50, 100, 250, 500, 1000, 2500, 5000)

BROWSER_RE = re.compile(r"(Chrome|Firefox|Safari)/(\d+)")
CLIENT_RE = re.compile(
    r"(curl|python-requests|Wget|Go-http-client|okhttp|Java)/?", re.IGNORECASE
)
CLIENT_NAMES = {
    "curl": "curl",
    "python-requests": "python-requests",
    "wget": "Wget",
    "go-http-client": "Go-http-client",
    "okhttp": "okhttp",
    "java": "Java",
}


def length_bucket(length: int) -> int:
    """Нижняя граница корзины для длины текста."""
    bucket = 0
    for boundary in LENGTH_BUCKETS:
        if length >= boundary:
            bucket = boundary
    return bucket


def user_agent_family(user_agent: str) -> str:
    """
    Семейство клиента с мажорной версией: "Chrome/125", "curl", "unknown".
    """
    if not user_agent:
        return "unknown"

    match = BROWSER_RE.search(user_agent)
    if match:
        return f"{match.group(1)}/{match.group(2)}"

    match = CLIENT_RE.search(user_agent)
    if match:
        return CLIENT_NAMES.get(match.group(1).lower(), match.group(1))

    return "unknown"


def extract_features(
    context: SubmissionContext,
    spam_indicators: Optional[Iterable[str]] = None,
    threat_type: str = "unknown",
) -> PatternFeatures:
    """
    Строит канонические признаки отправки.

    Args:
        context: Проверяемая отправка
        spam_indicators: Индикаторы спама (из AI или коды причин)
        threat_type: Тип угрозы

    Returns:
        Признаки для hash и сравнения
    """
    content = context.content or ""
    indicators = sorted({str(item) for item in (spam_indicators or []) if item})

    return PatternFeatures(
        content_length=len(content),
        length_bucket=length_bucket(len(content)),
        has_links=has_links(content),
        spam_indicators=indicators,
        threat_type=threat_type or "unknown",
        ip=context.ip or "",
        user_agent_family=user_agent_family(context.user_agent),
    )


# =============================================================================
# СТРАТЕГИИ СРАВНЕНИЯ
# =============================================================================

class PatternMatcher(ABC):
    """Решает, похожа ли новая отправка на сохраненный паттерн."""

    name: str = ""

    @abstractmethod
    def matches(self, stored: PatternFeatures, candidate: PatternFeatures) -> bool:
        pass

    @staticmethod
    def same_ip(stored: PatternFeatures, candidate: PatternFeatures) -> bool:
        return bool(candidate.ip) and stored.ip == candidate.ip


class IpOrLengthMatcher(PatternMatcher):
    """Тот же IP, либо та же ненулевая длина и наличие ссылок."""

    name = "ip_or_length"

    def matches(self, stored: PatternFeatures, candidate: PatternFeatures) -> bool:
        if self.same_ip(stored, candidate):
            return True
        return (
            candidate.content_length > 0
            and stored.content_length == candidate.content_length
            and stored.has_links == candidate.has_links
        )


class IpOrBucketMatcher(PatternMatcher):
    """Тот же IP, либо та же корзина длины и наличие ссылок."""

    name = "ip_or_bucket"

    def matches(self, stored: PatternFeatures, candidate: PatternFeatures) -> bool:
        if self.same_ip(stored, candidate):
            return True
        return (
            candidate.content_length > 0
            and stored.length_bucket == candidate.length_bucket
            and stored.has_links == candidate.has_links
        )


class IpOnlyMatcher(PatternMatcher):
    name = "ip_only"

    def matches(self, stored: PatternFeatures, candidate: PatternFeatures) -> bool:
        return self.same_ip(stored, candidate)


MATCHERS: Dict[str, Type[PatternMatcher]] = {
    IpOrLengthMatcher.name: IpOrLengthMatcher,
    IpOrBucketMatcher.name: IpOrBucketMatcher,
    IpOnlyMatcher.name: IpOnlyMatcher,
}


def get_matcher(strategy: str) -> PatternMatcher:
    """
    Возвращает стратегию сравнения по имени.

    Raises:
        ValueError: Если стратегия неизвестна
    """
    try:
        return MATCHERS[strategy]()
    except KeyError:
        raise ValueError(
            f"Неизвестная стратегия сравнения '{strategy}', "
            f"доступны: {', '.join(MATCHERS)}"
        ) from None
