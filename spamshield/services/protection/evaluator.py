# spamshield/services/protection/evaluator.py
"""
Эвристическая оценка отправки.
"""
from typing import Optional

from loguru import logger

from spamshield.config.models import LearningConfig, ProtectionConfig
from spamshield.config.settings import settings
from spamshield.services.learning.fingerprint import extract_features, get_matcher
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.config import HeuristicConfig
from spamshield.services.protection.inspectors import (
    AuthorInspector,
    ContentInspector,
    HoneypotInspector,
    MarkupInspector,
    TimingInspector,
)
from spamshield.services.protection.models import (
    DetectionMethod,
    InspectionResult,
    ReasonCode,
    Signal,
    SubmissionContext,
    Verdict,
)


class HeuristicEvaluator:
    """
    Набор локальных проверок без сетевых вызовов.

    Синхронные проверки (honeypot, время, контент, автор) не трогают
    хранилище. Единственное обращение к Redis: поиск похожего паттерна
    в базе угроз, когда AI недоступен.
    """

    def __init__(
        self,
        config: Optional[ProtectionConfig] = None,
        heuristics: Optional[HeuristicConfig] = None,
        pattern_store: Optional[ThreatPatternStore] = None,
        learning_config: Optional[LearningConfig] = None,
    ):
        """
        Args:
            config: Пороги защиты (по умолчанию из settings)
            heuristics: Веса и словари эвристик
            pattern_store: База паттернов для резервного сравнения
            learning_config: Параметры резервного сравнения
        """
        self.config = config or settings.protection
        self.heuristics = heuristics or HeuristicConfig()
        self.pattern_store = pattern_store
        self.learning_config = learning_config or settings.learning
        self.matcher = get_matcher(self.learning_config.fallback_strategy)

        self.honeypot_inspector = HoneypotInspector(self.heuristics)
        self.timing_inspector = TimingInspector(self.heuristics, self.config.min_time_seconds)
        self.content_inspector = ContentInspector(self.heuristics)
        self.markup_inspector = MarkupInspector(self.heuristics)
        self.author_inspector = AuthorInspector(self.heuristics)

    # -------------------------------------------------------------------------
    # Синхронные проверки
    # -------------------------------------------------------------------------

    def check_honeypot(self, context: SubmissionContext) -> InspectionResult:
        return self.honeypot_inspector.inspect(context)

    def check_timing(self, context: SubmissionContext) -> InspectionResult:
        return self.timing_inspector.inspect(context)

    def score(self, context: SubmissionContext) -> InspectionResult:
        """Суммарная оценка контента, разметки, автора и сайта автора."""
        combined = InspectionResult()
        combined.merge(self.content_inspector.inspect(context))
        combined.merge(self.markup_inspector.inspect(context))
        combined.merge(self.author_inspector.inspect(context))
        return combined

    def is_spam_score(self, score: int) -> bool:
        return score >= self.config.spam_threshold

    def evaluate(self, context: SubmissionContext) -> Verdict:
        """
        Вердикт только по эвристикам контента и автора.

        Оценка не обрезается; уверенность вердикта ограничена 100.
        """
        result = self.score(context)
        is_spam = self.is_spam_score(result.score)

        return Verdict(
            is_spam=is_spam,
            confidence=min(result.score, 100),
            signals=tuple(result.signals),
            detection_method=DetectionMethod.HEURISTIC if is_spam else DetectionMethod.CLEAN,
        )

    # -------------------------------------------------------------------------
    # Резервное сравнение с базой паттернов
    # -------------------------------------------------------------------------

    async def match_pattern(self, context: SubmissionContext) -> Optional[Verdict]:
        """
        Сравнивает отправку с уверенными паттернами из базы угроз.

        Returns:
            Вердикт "спам" с уверенностью паттерна или None
        """
        if self.pattern_store is None:
            return None

        features = extract_features(context)
        pattern = await self.pattern_store.find_fallback_match(
            features,
            min_confidence=self.learning_config.fallback_min_confidence,
            matcher=self.matcher,
        )
        if pattern is None:
            return None

        confidence = int(pattern.confidence_score)
        logger.info(
            f"🎯 Pattern fallback: ip={context.ip}, pattern={pattern.pattern_hash}, "
            f"type={pattern.pattern_type}, confidence={confidence}"
        )
        return Verdict(
            is_spam=True,
            confidence=confidence,
            signals=(
                Signal(
                    code=ReasonCode.PATTERN_FALLBACK,
                    score=confidence,
                    detail=pattern.pattern_hash,
                ),
            ),
            detection_method=DetectionMethod.PATTERN_FALLBACK,
        )
