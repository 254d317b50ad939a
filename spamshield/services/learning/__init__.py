# spamshield/services/learning/__init__.py
"""
Самообучающаяся база угроз.

Компоненты:
- ThreatPatternStore - отпечатки спама в Redis (атомарный upsert, очистка, отчеты)
- Learner - подписчик событий оценки, пополняющий базу
- PatternMatcher - стратегии резервного сравнения отпечатков
"""

from spamshield.services.learning.fingerprint import (
    PatternMatcher,
    extract_features,
    get_matcher,
)
from spamshield.services.learning.learner import Learner
from spamshield.services.learning.models import (
    PatternFeatures,
    ThreatPattern,
    ThreatStatistics,
)
from spamshield.services.learning.store import ThreatPatternStore

__all__ = [
    "Learner",
    "PatternFeatures",
    "PatternMatcher",
    "ThreatPattern",
    "ThreatPatternStore",
    "ThreatStatistics",
    "extract_features",
    "get_matcher",
]
