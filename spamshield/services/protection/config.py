# spamshield/services/protection/config.py
"""
Веса и словари эвристических проверок.
"""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class HeuristicConfig:
    """Конфигурация весов эвристик."""

    # Оценки за нарушения
    HONEYPOT_SCORE: int = 100
    TIMING_SCORE: int = 60
    AUTHOR_SCORE: int = 30
    URL_SCORE: int = 40
    MARKUP_SCORE: int = 50
    LINK_SCORE: int = 10
    CAPS_SCORE: int = 15
    PUNCTUATION_SCORE: int = 10

    # Ссылок без штрафа
    FREE_LINKS: int = 2
    # Минимальная длина текста для проверки капса
    CAPS_MIN_LENGTH: int = 20
    # Сигнал content_analysis пишется только выше этой оценки
    CONTENT_SIGNAL_MIN_SCORE: int = 20
    # Точек в хосте сайта автора без штрафа
    MAX_URL_DOTS: int = 3

    # Словари
    SPAM_KEYWORDS: Dict[str, int] = field(default_factory=lambda: {
        "casino": 20,
        "viagra": 25,
        "cialis": 25,
        "poker": 15,
        "loan": 10,
        "buy now": 15,
        "click here": 10,
        "make money": 20,
        "work from home": 15,
        "guaranteed": 10,
    })

    SUSPICIOUS_EMAIL_TLDS: List[str] = field(default_factory=lambda: [
        ".tk", ".ml", ".ga", ".cf",
    ])

    DISPOSABLE_EMAIL_MARKERS: List[str] = field(default_factory=lambda: [
        "tempmail", "10minute",
    ])

    SUSPICIOUS_URL_TLDS: List[str] = field(default_factory=lambda: [
        ".tk", ".ml", ".ga", ".cf", ".download", ".click",
    ])
