# spamshield/services/learning/learner.py
"""
Обучение базы угроз на уверенных вердиктах.
"""
from typing import List, Optional

from loguru import logger

from spamshield.config.models import LearningConfig
from spamshield.config.settings import settings
from spamshield.services.events import SubmissionEvaluated
from spamshield.services.learning.fingerprint import extract_features
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.models import SubmissionContext, Verdict


class Learner:
    """
    Подписчик событий оценки: сохраняет отпечатки уверенного спама.

    Учитываются только вердикты по содержимому отправки (AI, эвристики,
    honeypot); отказы по лимиту, черному списку и самой базе угроз
    не обучают. Индикаторы и тип угрозы берутся из анализа AI, если он
    есть, иначе из кодов причин и метода обнаружения.
    """

    def __init__(
        self,
        store: ThreatPatternStore,
        config: Optional[LearningConfig] = None,
    ):
        self.store = store
        self.config = config or settings.learning

    def should_learn(self, verdict: Verdict) -> bool:
        return (
            self.config.auto_learning_enabled
            and verdict.is_spam
            and verdict.detection_method.value in self.config.learnable_methods
            and verdict.confidence > self.config.learning_confidence_floor
        )

    async def observe(self, context: SubmissionContext, verdict: Verdict) -> Optional[int]:
        """
        Args:
            context: Проверенная отправка
            verdict: Вердикт по ней

        Returns:
            Число обнаружений паттерна или None, если обучение не выполнялось
        """
        if not self.should_learn(verdict):
            return None

        ai = verdict.ai_analysis or {}
        indicators: List[str] = list(ai.get("spam_indicators") or []) or [
            code.value for code in verdict.reason_codes
        ]
        threat_type = ai.get("threat_type") or verdict.detection_method.value

        features = extract_features(context, indicators, threat_type)
        count = await self.store.upsert(
            features,
            confidence=verdict.confidence,
            threat_type=threat_type,
            ai_analysis=verdict.ai_analysis,
        )
        if count is not None:
            logger.debug(
                f"🧠 Learned from {verdict.detection_method.value} verdict "
                f"(ip: {context.ip}, type: {threat_type}, count: {count})"
            )
        return count

    async def handle_event(self, event: SubmissionEvaluated) -> None:
        await self.observe(event.context, event.verdict)
