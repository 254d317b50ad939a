# spamshield/containers.py
from dependency_injector import containers, providers
from loguru import logger
from redis.asyncio import Redis

from spamshield.config.settings import settings
from spamshield.services.ai.service import ClassifierAdapter
from spamshield.services.analytics import AnalyticsRecorder
from spamshield.services.events import EvaluationEventBus
from spamshield.services.learning.learner import Learner
from spamshield.services.learning.store import ThreatPatternStore
from spamshield.services.protection.blocklist import BlockedIPSet
from spamshield.services.protection.engine import DecisionEngine
from spamshield.services.protection.evaluator import HeuristicEvaluator
from spamshield.services.protection.rate_limiter import RateLimiter
from spamshield.utils.keys import KeyFactory
from spamshield.utils.logging_setup import setup_logging


class Container(containers.DeclarativeContainer):
    key_factory = providers.Singleton(KeyFactory, prefix=settings.redis.key_prefix)

    redis_client = providers.Singleton(
        Redis.from_url,
        url=settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=settings.redis.socket_connect_timeout,
        socket_keepalive=True,
        health_check_interval=settings.redis.health_check_interval,
    )

    pattern_store = providers.Singleton(
        ThreatPatternStore,
        redis=redis_client,
        config=settings.learning,
        key_factory=key_factory,
    )

    blocklist = providers.Singleton(
        BlockedIPSet,
        redis=redis_client,
        pattern_store=pattern_store,
        key_factory=key_factory,
    )

    submission_limiter = providers.Singleton(
        RateLimiter,
        redis=redis_client,
        window_seconds=settings.protection.rate_limit_window,
        max_requests=settings.protection.max_submissions,
        scope=settings.protection.rate_limit_prefix,
        key_factory=key_factory,
    )

    ai_quota = providers.Singleton(
        RateLimiter,
        redis=redis_client,
        window_seconds=settings.ai.rate_limit_window,
        max_requests=settings.ai.max_requests_per_window,
        scope="ai_quota",
        key_factory=key_factory,
    )

    analytics = providers.Singleton(
        AnalyticsRecorder,
        redis=redis_client,
        config=settings.analytics,
        key_factory=key_factory,
    )

    classifier = providers.Singleton(
        ClassifierAdapter,
        redis=redis_client,
        config=settings.ai,
        learning_config=settings.learning,
        pattern_store=pattern_store,
        analytics=analytics,
        quota=ai_quota,
        key_factory=key_factory,
    )

    evaluator = providers.Singleton(
        HeuristicEvaluator,
        config=settings.protection,
        pattern_store=pattern_store,
        learning_config=settings.learning,
    )

    event_bus = providers.Singleton(EvaluationEventBus)

    learner = providers.Singleton(
        Learner,
        store=pattern_store,
        config=settings.learning,
    )

    engine = providers.Singleton(
        DecisionEngine,
        evaluator=evaluator,
        rate_limiter=submission_limiter,
        blocklist=blocklist,
        classifier=classifier,
        analytics=analytics,
        event_bus=event_bus,
        config=settings.protection,
        ai_config=settings.ai,
    )


async def init_resources(container: Container, configure_logging: bool = True) -> None:
    """
    Готовит контейнер к работе: логирование, проверка Redis,
    подписка обучения и аналитики на события оценки.
    """
    if configure_logging:
        setup_logging(
            level=settings.log_level,
            format="json" if settings.logging.json_enabled else "text",
            debug_loggers=settings.logging.debug_loggers,
            service_name=settings.logging.service_name,
        )

    logger.info("🔧 Initializing container resources...")

    try:
        redis = container.redis_client()
        await redis.ping()
        logger.info("✅ Redis connected")
    except Exception as e:
        logger.error(f"❌ Redis connection failed: {e}")
        raise

    event_bus = container.event_bus()
    event_bus.subscribe(container.learner().handle_event)
    event_bus.subscribe(container.analytics().handle_event)

    logger.info("✅ Decision engine ready")


async def shutdown_resources(container: Container) -> None:
    """Дожидается фоновых задач и закрывает сетевые клиенты."""
    logger.info("🛑 Shutting down container resources...")

    try:
        await container.event_bus().drain()
    except Exception as e:
        logger.error(f"Error draining event bus: {e}")

    try:
        await container.classifier().close()
        logger.info("✅ AI provider sessions closed")
    except Exception as e:
        logger.error(f"Error closing AI providers: {e}")

    try:
        await container.redis_client().aclose()
        logger.info("✅ Redis client closed")
    except Exception as e:
        logger.error(f"Error closing Redis: {e}")
