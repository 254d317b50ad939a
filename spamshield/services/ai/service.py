# spamshield/services/ai/service.py
"""
Адаптер удаленного классификатора спама.
"""
import asyncio
import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spamshield.config.models import AIConfig, LearningConfig
from spamshield.config.settings import settings
from spamshield.services.ai.models import ClassificationResult, ClassifierAnalysis
from spamshield.services.ai.parser import parse_classifier_output
from spamshield.services.ai.providers import (
    BaseAIProvider,
    ClassifierError,
    GeminiProvider,
    OpenAIProvider,
)
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.models import DetectionMethod, SubmissionContext
from spamshield.services.protection.rate_limiter import RateLimiter
from spamshield.texts.ai_prompts import (
    CONNECTION_TEST_PROMPT,
    build_spam_analysis_prompt,
    get_spam_analysis_json_schema,
)
from spamshield.utils.keys import KeyFactory
from spamshield.utils.text_utils import strip_tags

if TYPE_CHECKING:
    from spamshield.services.analytics import AnalyticsRecorder

GLOBAL_QUOTA_IDENTITY = "global"

PROVIDER_METHODS = {
    "gemini": DetectionMethod.GEMINI_AI,
    "openai": DetectionMethod.OPENAI_AI,
}


class ClassifierAdapter:
    """
    Обращение к LLM за вердиктом по одной отправке.

    Порядок:
    1. Кэш ответа по хэшу контекста
    2. Глобальная квота обращений
    3. Промпт с подсказками из базы угроз и недавнего спама
    4. Провайдеры по очереди (failover), у каждого своя доля общего таймаута
    5. Защитный разбор ответа, кэширование успешно разобранных

    Любая сетевая ошибка или таймаут возвращают None: вызывающий
    код продолжает без сигнала AI.
    """

    def __init__(
        self,
        redis: Redis,
        config: Optional[AIConfig] = None,
        learning_config: Optional[LearningConfig] = None,
        pattern_store: Optional[ThreatPatternStore] = None,
        analytics: Optional["AnalyticsRecorder"] = None,
        providers: Optional[List[BaseAIProvider]] = None,
        quota: Optional[RateLimiter] = None,
        key_factory: Optional[KeyFactory] = None,
    ):
        """
        Args:
            redis: Клиент Redis для кэша и квоты
            config: Параметры AI (по умолчанию из settings)
            learning_config: Пороги подсказок из базы угроз
            pattern_store: База паттернов (подсказки в промпте)
            analytics: Журнал аналитики (превью недавнего спама)
            providers: Готовые провайдеры; если не заданы, создаются по ключам
            quota: Глобальный лимитер обращений
            key_factory: Фабрика ключей
        """
        self.redis = redis
        self.config = config or settings.ai
        self.learning_config = learning_config or settings.learning
        self.pattern_store = pattern_store
        self.analytics = analytics
        self.key_factory = key_factory or KeyFactory()
        self.quota = quota or RateLimiter(
            redis,
            window_seconds=self.config.rate_limit_window,
            max_requests=self.config.max_requests_per_window,
            scope="ai_quota",
            key_factory=self.key_factory,
        )
        self.schema = get_spam_analysis_json_schema()

        if providers is None:
            self.providers: List[BaseAIProvider] = []
            self._initialize_providers()
        else:
            self.providers = list(providers)

        if not self.providers:
            logger.info("ℹ️ AI-классификатор недоступен: ни один провайдер не настроен")
        else:
            provider_names = ", ".join(p.get_name() for p in self.providers)
            logger.success(f"✅ ClassifierAdapter initialized with providers: {provider_names}")

    # -------------------------------------------------------------------------
    # Инициализация провайдеров
    # -------------------------------------------------------------------------

    def _initialize_providers(self) -> None:
        """Создает провайдеров в порядке config.providers."""
        factories = {
            "gemini": self._init_gemini_provider,
            "openai": self._init_openai_provider,
        }
        created: List[BaseAIProvider] = []
        for name in self.config.providers:
            factory = factories.get(name.lower())
            if factory is None:
                logger.warning(f"⚠️ Unknown AI provider '{name}' skipped")
                continue
            provider = factory()
            if provider is not None and provider.is_available():
                created.append(provider)
        self.providers = created

    def _init_gemini_provider(self) -> Optional[BaseAIProvider]:
        gemini_key = settings.gemini_api_key
        if not gemini_key:
            logger.debug("⚠️ Gemini API key not configured")
            return None

        return GeminiProvider(
            api_key=gemini_key,
            model=self.config.gemini_model,
            endpoint=self.config.gemini_endpoint,
            timeout=self.provider_timeout,
            max_output_tokens=self.config.max_output_tokens,
            max_tries=self.config.max_retries,
        )

    def _init_openai_provider(self) -> Optional[BaseAIProvider]:
        openai_key = settings.openai_api_key
        if not openai_key:
            logger.debug("⚠️ OpenAI API key not configured")
            return None

        return OpenAIProvider(
            api_key=openai_key,
            model=self.config.openai_model,
            timeout=self.provider_timeout,
        )

    @property
    def provider_timeout(self) -> float:
        """Доля request_timeout на одного провайдера."""
        count = len(self.providers) or len(self.config.providers) or 1
        return self.config.request_timeout / count

    def is_available(self) -> bool:
        return any(provider.is_available() for provider in self.providers)

    # -------------------------------------------------------------------------
    # Классификация
    # -------------------------------------------------------------------------

    async def classify(self, context: SubmissionContext) -> Optional[ClassificationResult]:
        """
        Запрашивает вердикт AI для отправки.

        Args:
            context: Проверяемая отправка

        Returns:
            Результат классификации или None, если AI недоступен,
            квота исчерпана или провайдеры не ответили вовремя
        """
        if not self.is_available():
            return None

        cache_key = self.key_factory.ai_cache(context.cache_key())
        cached = await self._get_cached(cache_key)
        if cached is not None:
            logger.debug(f"💾 AI cache hit for {context.ip}")
            return cached

        if not await self.quota.allow(GLOBAL_QUOTA_IDENTITY):
            logger.warning("⏳ Квота AI исчерпана, продолжаем без AI-сигнала")
            return None

        prompt = await self._build_prompt(context)

        try:
            provider_name, raw = await asyncio.wait_for(
                self._ask_providers(prompt),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"⏱️ AI-классификатор не ответил за {self.config.request_timeout}s"
            )
            return None
        except ClassifierError as e:
            logger.error(f"❌ AI-классификатор недоступен: {e}")
            return None

        analysis, parsed = parse_classifier_output(raw)
        if not parsed:
            logger.warning(f"⚠️ Ответ {provider_name} не разобран, безопасный вердикт: {raw[:500]!r}")

        result = self._build_result(analysis, provider_name, raw=raw, parsed=parsed)

        if parsed:
            await self._store_cached(cache_key, analysis, provider_name)

        logger.info(
            f"🤖 AI verdict ({provider_name}): spam={result.is_spam}, "
            f"confidence={result.confidence}, type={result.threat_type}"
        )
        return result

    async def _ask_providers(self, prompt: str) -> Tuple[str, str]:
        """
        Перебирает провайдеров до первого ответа.

        Raises:
            ClassifierError: Если ни один провайдер не ответил
        """
        total = len(self.providers)
        for idx, provider in enumerate(self.providers, 1):
            try:
                logger.debug(
                    f"🔄 Attempting classification with {provider.get_name()} "
                    f"(provider {idx}/{total})"
                )
                raw = await asyncio.wait_for(
                    provider.generate_json(
                        prompt,
                        self.schema,
                        temperature=self.config.temperature,
                    ),
                    timeout=self.provider_timeout,
                )
                return provider.get_name(), raw
            except Exception as e:
                logger.warning(f"⚠️ {provider.get_name()} failed (attempt {idx}/{total}): {e!r}")

        raise ClassifierError("All AI providers failed")

    def _build_result(
        self,
        analysis: ClassifierAnalysis,
        provider_name: str,
        raw: str = "",
        parsed: bool = True,
        cached: bool = False,
    ) -> ClassificationResult:
        is_spam = analysis.is_spam and analysis.confidence >= self.config.ai_confidence_threshold
        return ClassificationResult(
            is_spam=is_spam,
            confidence=analysis.confidence,
            analysis=analysis,
            provider=provider_name,
            detection_method=PROVIDER_METHODS.get(provider_name.lower(), DetectionMethod.GEMINI_AI),
            raw_response=raw,
            parsed=parsed,
            cached=cached,
        )

    # -------------------------------------------------------------------------
    # Промпт
    # -------------------------------------------------------------------------

    async def _build_prompt(self, context: SubmissionContext) -> str:
        submission = {
            "type": context.entry_kind.value,
            "content": strip_tags(context.content),
            "author": context.author_name,
            "email": context.author_email,
            "url": context.author_url,
            "ip": context.ip,
            "user_agent": context.user_agent,
        }

        known_patterns: List[str] = []
        if self.pattern_store is not None:
            patterns = await self.pattern_store.top_patterns(
                min_confidence=self.learning_config.prompt_min_confidence,
                limit=self.learning_config.prompt_patterns_limit,
            )
            for pattern in patterns:
                indicators = ", ".join(pattern.pattern_data.spam_indicators)
                description = pattern.pattern_type
                if indicators:
                    description += f" [{indicators}]"
                known_patterns.append(
                    f"{description} (confidence: {pattern.confidence_score:.0f})"
                )

        recent_spam: List[str] = []
        if self.analytics is not None:
            recent_spam = await self.analytics.recent_spam_previews(
                limit=self.config.recent_spam_in_prompt
            )

        return build_spam_analysis_prompt(submission, known_patterns, recent_spam)

    # -------------------------------------------------------------------------
    # Кэш
    # -------------------------------------------------------------------------

    async def _get_cached(self, cache_key: str) -> Optional[ClassificationResult]:
        try:
            raw = await self.redis.get(cache_key)
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ AI cache read failed: {e}")
            return None

        if not raw:
            return None

        try:
            payload: Dict[str, Any] = json.loads(raw)
            analysis = ClassifierAnalysis.model_validate(payload["analysis"])
            provider_name = str(payload.get("provider", ""))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"⚠️ Поврежденная запись AI-кэша {cache_key}: {e}")
            return None

        return self._build_result(analysis, provider_name, cached=True)

    async def _store_cached(
        self,
        cache_key: str,
        analysis: ClassifierAnalysis,
        provider_name: str,
    ) -> None:
        payload = {
            "analysis": analysis.model_dump(mode="json"),
            "provider": provider_name,
        }
        try:
            await self.redis.set(
                cache_key,
                json.dumps(payload, ensure_ascii=False),
                ex=self.config.cache_ttl,
            )
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ AI cache write failed: {e}")

    # -------------------------------------------------------------------------
    # Служебное
    # -------------------------------------------------------------------------

    async def test_connection(self) -> Dict[str, Any]:
        """
        Проверяет связь с провайдерами тестовым промптом.

        Кэш и квота не используются.

        Returns:
            Словарь success/provider/confidence/recommended_action/message
        """
        if not self.providers:
            return {"success": False, "message": "No AI providers configured"}

        try:
            provider_name, raw = await asyncio.wait_for(
                self._ask_providers(CONNECTION_TEST_PROMPT),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError:
            return {"success": False, "message": "Connection timed out"}
        except ClassifierError as e:
            return {"success": False, "message": f"Connection failed: {e}"}

        analysis, parsed = parse_classifier_output(raw)
        if not parsed:
            return {
                "success": False,
                "provider": provider_name,
                "message": "API responded but format was unexpected",
            }

        logger.info(f"✅ AI connection test passed ({provider_name})")
        return {
            "success": True,
            "provider": provider_name,
            "confidence": analysis.confidence,
            "recommended_action": analysis.recommended_action.value,
            "message": "AI connection successful!",
        }

    async def close(self) -> None:
        """Закрывает сетевые сессии провайдеров."""
        for provider in self.providers:
            try:
                await provider.close()
            except Exception as e:
                logger.warning(f"⚠️ Failed to close {provider.get_name()}: {e}")
