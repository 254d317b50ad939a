# spamshield/services/protection/blocklist.py
"""
Черный список IP-адресов.
"""
from typing import Optional, Set

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spamshield.services.learning.store import ThreatPatternStore
from spamshield.utils.keys import KeyFactory
from spamshield.utils.network import is_valid_ip


class BlockedIPSet:
    """
    Множество IP, заблокированных оператором.

    Адреса только добавляются; проверка выполняется раньше всех остальных.
    При блокировке все выученные паттерны с этого IP помечаются
    подтвержденными с уверенностью 100.
    """

    def __init__(
        self,
        redis: Redis,
        pattern_store: Optional[ThreatPatternStore] = None,
        key_factory: Optional[KeyFactory] = None,
    ):
        self.redis = redis
        self.pattern_store = pattern_store
        self.key_factory = key_factory or KeyFactory()

    async def add(self, ip: str) -> bool:
        """
        Блокирует IP.

        Args:
            ip: IPv4 или IPv6 адрес

        Returns:
            True если адрес добавлен, False если уже был в списке

        Raises:
            ValueError: Если адрес некорректен
        """
        ip = (ip or "").strip()
        if not is_valid_ip(ip):
            raise ValueError(f"Некорректный IP-адрес: {ip!r}")

        added = await self.redis.sadd(self.key_factory.blocked_ips(), ip)
        if not added:
            logger.info(f"ℹ️ IP {ip} уже заблокирован")
            return False

        logger.warning(f"🚫 IP {ip} добавлен в черный список")

        if self.pattern_store is not None:
            await self.pattern_store.mark_verified_by_ip(ip)

        return True

    async def contains(self, ip: str) -> bool:
        """
        Проверяет IP по черному списку.

        При недоступности Redis возвращает False (fail open).
        """
        if not ip:
            return False

        try:
            return bool(await self.redis.sismember(self.key_factory.blocked_ips(), ip))
        except (RedisError, OSError) as e:
            logger.warning(f"⚠️ Черный список недоступен, пропускаем {ip}: {e}")
            return False

    async def members(self) -> Set[str]:
        try:
            return set(await self.redis.smembers(self.key_factory.blocked_ips()))
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка чтения черного списка: {e}")
            return set()
