# spamshield/services/protection/engine.py
"""
Конвейер принятия решения по отправке.
"""
from typing import Awaitable, Callable, List, Optional, TypeVar

from loguru import logger

from spamshield.config.models import AIConfig, ProtectionConfig
from spamshield.config.settings import settings
from spamshield.services.ai.models import ClassificationResult
from spamshield.services.ai.service import ClassifierAdapter
from spamshield.services.analytics import AnalyticsRecorder
from spamshield.services.events import EvaluationEventBus, SubmissionEvaluated
from spamshield.services.protection.blocklist import BlockedIPSet
from spamshield.services.protection.evaluator import HeuristicEvaluator
from spamshield.services.protection.models import (
    DetectionMethod,
    InspectionResult,
    ReasonCode,
    Signal,
    SubmissionContext,
    Verdict,
)
from spamshield.services.protection.rate_limiter import RateLimiter

T = TypeVar("T")

FULL_CONFIDENCE = 100


class DecisionEngine:
    """
    Проверки по убыванию приоритета; первая сработавшая отклоняет отправку.

    1. Черный список IP
    2. Honeypot
    3. Время заполнения формы
    4. Лимит отправок с IP
    5. AI-классификатор (если включен и настроен)
    6. Эвристики контента/автора, затем сравнение с базой угроз
    7. Принятие

    Ошибка внутри шага логируется, шаг не дает сигнала. evaluate()
    всегда возвращает вердикт.
    """

    def __init__(
        self,
        evaluator: HeuristicEvaluator,
        rate_limiter: RateLimiter,
        blocklist: BlockedIPSet,
        classifier: Optional[ClassifierAdapter] = None,
        analytics: Optional[AnalyticsRecorder] = None,
        event_bus: Optional[EvaluationEventBus] = None,
        config: Optional[ProtectionConfig] = None,
        ai_config: Optional[AIConfig] = None,
    ):
        self.evaluator = evaluator
        self.rate_limiter = rate_limiter
        self.blocklist = blocklist
        self.classifier = classifier
        self.analytics = analytics
        self.event_bus = event_bus
        self.config = config or settings.protection
        self.ai_config = ai_config or settings.ai

        logger.debug(
            f"🔧 DecisionEngine инициализирован "
            f"(honeypot: {self.config.honeypot_enabled}, "
            f"min_time: {self.config.min_time_seconds}s, "
            f"ai: {self.ai_enabled})"
        )

    @property
    def ai_enabled(self) -> bool:
        return (
            self.ai_config.ai_enabled
            and self.classifier is not None
            and self.classifier.is_available()
        )

    async def evaluate(self, context: SubmissionContext) -> Verdict:
        """
        Выносит вердикт по отправке.

        Args:
            context: Полностью заполненная отправка

        Returns:
            Вердикт с цепочкой сработавших проверок
        """
        try:
            verdict = await self._decide(context)
        except Exception as e:
            logger.exception(f"❌ Непредвиденная ошибка проверки отправки с {context.ip}: {e}")
            verdict = Verdict(is_spam=False)

        if verdict.is_spam:
            logger.warning(
                f"🚨 Spam rejected: ip={context.ip}, kind={context.entry_kind.value}, "
                f"method={verdict.detection_method.value}, confidence={verdict.confidence}, "
                f"reasons={verdict.reason}"
            )
            if self.analytics is not None:
                await self._guard("spam_counter", self.analytics.increment_spam_count(), None)
        else:
            logger.debug(
                f"✅ Accepted: ip={context.ip}, confidence={verdict.confidence}, "
                f"reasons={verdict.reason}"
            )

        if self.event_bus is not None:
            try:
                self.event_bus.publish(SubmissionEvaluated(context=context, verdict=verdict))
            except Exception as e:
                logger.error(f"❌ Не удалось опубликовать событие оценки: {e}")

        return verdict

    async def _decide(self, context: SubmissionContext) -> Verdict:
        # 1. Черный список
        if await self._guard("blocked_ip", self.blocklist.contains(context.ip), False):
            signals = [Signal(ReasonCode.BLOCKED_IP, FULL_CONFIDENCE, context.ip)]
            if self.config.honeypot_enabled:
                honeypot = self._run("honeypot", self.evaluator.check_honeypot, context)
                signals.extend(honeypot.signals)
            return self._reject(signals, FULL_CONFIDENCE, DetectionMethod.BLOCKED_IP)

        # 2. Honeypot
        if self.config.honeypot_enabled:
            honeypot = self._run("honeypot", self.evaluator.check_honeypot, context)
            if honeypot.triggered:
                return self._reject(honeypot.signals, FULL_CONFIDENCE, DetectionMethod.HONEYPOT)

        # 3. Время заполнения
        if self.config.min_time_seconds > 0:
            timing = self._run("timing", self.evaluator.check_timing, context)
            if timing.triggered:
                return self._reject(
                    timing.signals,
                    min(timing.score, FULL_CONFIDENCE),
                    DetectionMethod.TIME_VALIDATION,
                )

        # 4. Лимит отправок
        if not await self._guard("rate_limit", self.rate_limiter.allow(context.ip), True):
            signal = Signal(
                ReasonCode.RATE_LIMIT,
                FULL_CONFIDENCE,
                f"{self.rate_limiter.max_requests}/{self.rate_limiter.window_seconds}s",
            )
            return self._reject([signal], FULL_CONFIDENCE, DetectionMethod.RATE_LIMIT)

        # 5. AI
        classification = await self._classify(context)
        if classification is not None and classification.is_spam:
            signal = Signal(
                ReasonCode.AI_ANALYSIS,
                classification.confidence,
                classification.threat_type,
            )
            return Verdict(
                is_spam=True,
                confidence=classification.confidence,
                signals=(signal,),
                detection_method=classification.detection_method,
                ai_analysis=classification.to_payload(),
            )

        # 6. Эвристики и база угроз
        heuristic = self._run("heuristics", self.evaluator.score, context)
        if self.evaluator.is_spam_score(heuristic.score):
            return self._reject(
                heuristic.signals,
                min(heuristic.score, FULL_CONFIDENCE),
                DetectionMethod.HEURISTIC,
            )

        if classification is None:
            fallback = await self._guard(
                "pattern_fallback", self.evaluator.match_pattern(context), None
            )
            if fallback is not None:
                return self._reject(
                    [*heuristic.signals, *fallback.signals],
                    fallback.confidence,
                    DetectionMethod.PATTERN_FALLBACK,
                )

        # 7. Принятие
        if classification is not None:
            confidence = classification.confidence
            ai_analysis = classification.to_payload()
        else:
            confidence = min(heuristic.score, FULL_CONFIDENCE)
            ai_analysis = None

        return Verdict(
            is_spam=False,
            confidence=confidence,
            signals=tuple(heuristic.signals),
            detection_method=DetectionMethod.CLEAN,
            ai_analysis=ai_analysis,
        )

    async def _classify(self, context: SubmissionContext) -> Optional[ClassificationResult]:
        """Вердикт AI; неразобранный ответ считается отсутствием сигнала."""
        if not self.ai_enabled:
            return None

        classification = await self._guard("ai", self.classifier.classify(context), None)
        if classification is not None and not classification.parsed:
            return None
        return classification

    @staticmethod
    def _reject(
        signals: List[Signal],
        confidence: int,
        method: DetectionMethod,
    ) -> Verdict:
        return Verdict(
            is_spam=True,
            confidence=confidence,
            signals=tuple(signals),
            detection_method=method,
        )

    @staticmethod
    def _run(
        step: str,
        check: Callable[[SubmissionContext], InspectionResult],
        context: SubmissionContext,
    ) -> InspectionResult:
        try:
            return check(context)
        except Exception as e:
            logger.exception(f"❌ Шаг '{step}' завершился с ошибкой: {e}")
            return InspectionResult()

    @staticmethod
    async def _guard(step: str, awaitable: Awaitable[T], default: T) -> T:
        try:
            return await awaitable
        except Exception as e:
            logger.exception(f"❌ Шаг '{step}' завершился с ошибкой: {e}")
            return default
