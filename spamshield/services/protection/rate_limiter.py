# spamshield/services/protection/rate_limiter.py
"""
Ограничение частоты отправок в фиксированном окне.
"""
from typing import Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spamshield.utils.keys import KeyFactory


class RateLimiter:
    """
    Счетчик отправок на идентификатор (IP или "global") с окном в Redis.

    Первая отправка в окне создает ключ со значением 0 и TTL окна,
    затем INCR. Обе команды выполняются в одной транзакции MULTI,
    поэтому параллельные запросы с одного IP считаются корректно.

    При недоступности Redis пропускаем отправку (fail open):
    доступность для живых пользователей важнее строгого лимита.
    """

    def __init__(
        self,
        redis: Redis,
        window_seconds: int = 60,
        max_requests: int = 3,
        scope: str = "rate",
        key_factory: Optional[KeyFactory] = None,
    ):
        """
        Args:
            redis: Клиент Redis
            window_seconds: Длина окна в секундах
            max_requests: Допустимое число отправок в окне
            scope: Пространство ключей (разные лимитеры не пересекаются)
            key_factory: Фабрика ключей
        """
        if window_seconds < 1:
            raise ValueError("window_seconds должен быть >= 1")
        if max_requests < 1:
            raise ValueError("max_requests должен быть >= 1")

        self.redis = redis
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.scope = scope
        self.key_factory = key_factory or KeyFactory()

        logger.debug(
            f"🔧 RateLimiter[{scope}] инициализирован "
            f"(window: {window_seconds}s, max: {max_requests})"
        )

    def _key(self, identity: str) -> str:
        return self.key_factory.rate_window(self.scope, identity or "unknown")

    async def hit(self, identity: str) -> Optional[int]:
        """
        Регистрирует отправку и возвращает счетчик в текущем окне.

        Returns:
            Значение счетчика или None, если Redis недоступен
        """
        key = self._key(identity)
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.set(key, 0, ex=self.window_seconds, nx=True)
            pipe.incr(key)
            _, count = await pipe.execute()
            return int(count)
        except (RedisError, OSError) as e:
            logger.warning(
                f"⚠️ RateLimiter[{self.scope}]: хранилище недоступно, "
                f"пропускаем '{identity}' без лимита: {e}"
            )
            return None

    async def allow(self, identity: str) -> bool:
        """
        Проверяет, разрешена ли очередная отправка.

        Args:
            identity: IP-адрес или иной ключ

        Returns:
            False если лимит в текущем окне исчерпан
        """
        count = await self.hit(identity)
        if count is None:
            return True

        allowed = count <= self.max_requests
        if not allowed:
            logger.info(
                f"⏳ RateLimiter[{self.scope}]: лимит для '{identity}' "
                f"({count}/{self.max_requests} за {self.window_seconds}s)"
            )
        return allowed

    async def current(self, identity: str) -> int:
        """Текущее значение счетчика (0 если окна нет)."""
        try:
            value = await self.redis.get(self._key(identity))
            return int(value) if value else 0
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка чтения счетчика '{identity}': {e}")
            return 0

    async def reset(self, identity: str) -> None:
        """Сбрасывает окно для идентификатора."""
        try:
            await self.redis.delete(self._key(identity))
            logger.info(f"🔄 RateLimiter[{self.scope}]: окно '{identity}' сброшено")
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка сброса счетчика '{identity}': {e}")
