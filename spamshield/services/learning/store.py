# spamshield/services/learning/store.py
"""
База паттернов угроз в Redis.
"""
import csv
import io
import json
import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spamshield.config.models import LearningConfig
from spamshield.config.settings import settings
from spamshield.services.learning.fingerprint import PatternMatcher, get_matcher
from spamshield.services.learning.models import (
    PatternFeatures,
    ThreatPattern,
    ThreatStatistics,
)
from spamshield.utils.keys import KeyFactory
from spamshield.utils.lua_scripts import LuaScripts

DAY_SECONDS = 86400
ACTIVE_CONFIDENCE = 75

CSV_HEADER = (
    "Pattern Type",
    "Confidence Score",
    "Detection Count",
    "Last Detected",
    "Verified",
    "Created At",
    "IP Address",
    "User Agent Pattern",
)


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class ThreatPatternStore:
    """
    Хранилище выученных отпечатков спама.

    Структура в Redis:
    - HASH на каждый паттерн (ключ по pattern_hash)
    - ZSET индексы: по уверенности, по дате создания, по дате обнаружения
    - SET индекс hash-ей по IP

    Вставка и повторное обнаружение выполняются одним LUA-скриптом,
    поэтому одновременные одинаковые всплески спама не создают дублей.
    """

    def __init__(
        self,
        redis: Redis,
        config: Optional[LearningConfig] = None,
        key_factory: Optional[KeyFactory] = None,
    ):
        """
        Args:
            redis: Клиент Redis (decode_responses=True)
            config: Параметры обучения (по умолчанию из settings)
            key_factory: Фабрика ключей
        """
        self.redis = redis
        self.config = config or settings.learning
        self.key_factory = key_factory or KeyFactory()
        self._upsert_script = self.redis.register_script(LuaScripts.UPSERT_THREAT_PATTERN)

        logger.debug(
            f"🔧 ThreatPatternStore инициализирован "
            f"(retention: {self.config.pattern_retention_days}d, "
            f"step: {self.config.confidence_step})"
        )

    # -------------------------------------------------------------------------
    # Запись
    # -------------------------------------------------------------------------

    async def upsert(
        self,
        features: PatternFeatures,
        confidence: float,
        threat_type: str,
        ai_analysis: Optional[Dict[str, Any]] = None,
        now: Optional[float] = None,
    ) -> Optional[int]:
        """
        Добавляет паттерн или отмечает его повторное обнаружение.

        Args:
            features: Признаки отправки
            confidence: Уверенность вердикта 0-100
            threat_type: Тип угрозы
            ai_analysis: Снимок анализа AI
            now: Текущее unix-время (для тестов)

        Returns:
            Текущее число обнаружений или None при ошибке хранилища
        """
        pattern_hash = features.fingerprint()
        timestamp = time.time() if now is None else now
        confidence = max(0.0, min(100.0, float(confidence)))

        try:
            count = await self._upsert_script(
                keys=[
                    self.key_factory.threat_pattern(pattern_hash),
                    self.key_factory.threat_by_confidence(),
                    self.key_factory.threat_by_created(),
                    self.key_factory.threat_by_detected(),
                    self.key_factory.threat_ip_index(features.ip),
                ],
                args=[
                    pattern_hash,
                    threat_type or "unknown",
                    confidence,
                    timestamp,
                    json.dumps(features.to_dict(), ensure_ascii=False),
                    json.dumps(ai_analysis, ensure_ascii=False, default=str),
                    self.config.confidence_step,
                    features.ip,
                ],
            )
        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка сохранения паттерна {pattern_hash}: {e}")
            return None

        count = int(count)
        if count == 1:
            logger.info(
                f"🧠 Новый паттерн угрозы {pattern_hash} "
                f"(type: {threat_type}, confidence: {confidence:.0f})"
            )
        else:
            logger.debug(f"🧠 Паттерн {pattern_hash} обнаружен повторно (#{count})")
        return count

    async def mark_verified_by_ip(self, ip: str) -> int:
        """
        Помечает все паттерны с данного IP как подтвержденные (уверенность 100).

        Returns:
            Количество обновленных паттернов
        """
        if not ip:
            return 0

        try:
            hashes = await self.redis.smembers(self.key_factory.threat_ip_index(ip))
            if not hashes:
                return 0

            pipe = self.redis.pipeline()
            for pattern_hash in hashes:
                pipe.hset(
                    self.key_factory.threat_pattern(pattern_hash),
                    mapping={"is_verified": 1, "confidence_score": 100},
                )
                pipe.zadd(self.key_factory.threat_by_confidence(), {pattern_hash: 100})
            await pipe.execute()

            logger.info(f"✅ Подтверждено {len(hashes)} паттернов с IP {ip}")
            return len(hashes)

        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка подтверждения паттернов IP {ip}: {e}")
            return 0

    # -------------------------------------------------------------------------
    # Чтение
    # -------------------------------------------------------------------------

    async def lookup(self, pattern_hash: str) -> Optional[ThreatPattern]:
        """Возвращает паттерн по hash или None."""
        try:
            raw = await self.redis.hgetall(self.key_factory.threat_pattern(pattern_hash))
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка чтения паттерна {pattern_hash}: {e}")
            return None

        if not raw:
            return None
        return ThreatPattern.from_redis(raw)

    async def _load_many(self, hashes: Iterable[str]) -> List[ThreatPattern]:
        hashes = list(hashes)
        if not hashes:
            return []

        pipe = self.redis.pipeline()
        for pattern_hash in hashes:
            pipe.hgetall(self.key_factory.threat_pattern(pattern_hash))
        rows = await pipe.execute()

        return [ThreatPattern.from_redis(row) for row in rows if row]

    async def top_patterns(
        self,
        min_confidence: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[ThreatPattern]:
        """
        Самые уверенные паттерны (строго выше порога), по убыванию
        уверенности, затем числа обнаружений.
        """
        if min_confidence is None:
            min_confidence = self.config.prompt_min_confidence
        if limit is None:
            limit = self.config.prompt_patterns_limit

        try:
            hashes = await self.redis.zrevrangebyscore(
                self.key_factory.threat_by_confidence(),
                "+inf",
                f"({min_confidence}",
                start=0,
                num=limit,
            )
            patterns = await self._load_many(hashes)
        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка получения паттернов: {e}")
            return []

        patterns.sort(key=lambda p: (p.confidence_score, p.detection_count), reverse=True)
        return patterns

    async def find_fallback_match(
        self,
        features: PatternFeatures,
        min_confidence: Optional[float] = None,
        matcher: Optional[PatternMatcher] = None,
    ) -> Optional[ThreatPattern]:
        """
        Ищет сохраненный паттерн, похожий на отправку.

        Args:
            features: Признаки новой отправки
            min_confidence: Минимальная уверенность паттерна (строго больше)
            matcher: Стратегия сравнения (по умолчанию из конфига)

        Returns:
            Самый уверенный подходящий паттерн или None
        """
        if min_confidence is None:
            min_confidence = self.config.fallback_min_confidence
        matcher = matcher or get_matcher(self.config.fallback_strategy)

        try:
            hashes = await self.redis.zrevrangebyscore(
                self.key_factory.threat_by_confidence(),
                "+inf",
                f"({min_confidence}",
                start=0,
                num=self.config.fallback_scan_limit,
            )
            candidates = await self._load_many(hashes)
        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка поиска паттернов: {e}")
            return None

        for pattern in candidates:
            if matcher.matches(pattern.pattern_data, features):
                logger.info(
                    f"🎯 Совпадение с паттерном {pattern.pattern_hash} "
                    f"({matcher.name}, confidence: {pattern.confidence_score:.0f})"
                )
                return pattern

        return None

    async def count(self) -> int:
        try:
            return await self.redis.zcard(self.key_factory.threat_by_confidence())
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка получения количества паттернов: {e}")
            return 0

    # -------------------------------------------------------------------------
    # Очистка
    # -------------------------------------------------------------------------

    async def prune(self, now: Optional[float] = None) -> int:
        """
        Удаляет устаревший шум из базы:
        - старше pattern_retention_days с уверенностью ниже pattern_min_confidence;
        - старше single_detection_retention_days, обнаруженные один раз
          и с уверенностью ниже single_detection_min_confidence.

        Returns:
            Количество удаленных паттернов
        """
        now = time.time() if now is None else now
        cfg = self.config
        long_cutoff = now - cfg.pattern_retention_days * DAY_SECONDS
        short_cutoff = now - cfg.single_detection_retention_days * DAY_SECONDS

        try:
            hashes = await self.redis.zrangebyscore(
                self.key_factory.threat_by_created(), "-inf", short_cutoff
            )
            candidates = await self._load_many(hashes)

            doomed = [
                p for p in candidates
                if (
                    p.created_at < long_cutoff
                    and p.confidence_score < cfg.pattern_min_confidence
                )
                or (
                    p.created_at < short_cutoff
                    and p.detection_count == 1
                    and p.confidence_score < cfg.single_detection_min_confidence
                )
            ]

            if not doomed:
                return 0

            pipe = self.redis.pipeline()
            for pattern in doomed:
                pipe.delete(self.key_factory.threat_pattern(pattern.pattern_hash))
                pipe.zrem(self.key_factory.threat_by_confidence(), pattern.pattern_hash)
                pipe.zrem(self.key_factory.threat_by_created(), pattern.pattern_hash)
                pipe.zrem(self.key_factory.threat_by_detected(), pattern.pattern_hash)
                if pattern.pattern_data.ip:
                    pipe.srem(
                        self.key_factory.threat_ip_index(pattern.pattern_data.ip),
                        pattern.pattern_hash,
                    )
            await pipe.execute()

        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка очистки паттернов: {e}")
            return 0

        logger.info(f"🗑️ Удалено {len(doomed)} устаревших паттернов")
        return len(doomed)

    # -------------------------------------------------------------------------
    # Отчеты
    # -------------------------------------------------------------------------

    async def _all_patterns(self) -> List[ThreatPattern]:
        hashes = await self.redis.zrevrange(self.key_factory.threat_by_confidence(), 0, -1)
        return await self._load_many(hashes)

    async def get_statistics(self, now: Optional[float] = None) -> ThreatStatistics:
        """Сводка по базе паттернов."""
        now = time.time() if now is None else now

        try:
            patterns = await self._all_patterns()
        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка получения статистики: {e}")
            return ThreatStatistics(0, 0, 0, 0, 0.0)

        total = len(patterns)
        verified = sum(1 for p in patterns if p.is_verified)

        by_type: Dict[str, List[ThreatPattern]] = defaultdict(list)
        for pattern in patterns:
            by_type[pattern.pattern_type].append(pattern)

        top_threats = sorted(
            (
                {
                    "pattern_type": pattern_type,
                    "count": len(items),
                    "avg_confidence": round(
                        sum(p.confidence_score for p in items) / len(items), 1
                    ),
                    "last_seen": max(p.last_detected for p in items),
                }
                for pattern_type, items in by_type.items()
            ),
            key=lambda row: row["count"],
            reverse=True,
        )[:5]

        stats = ThreatStatistics(
            total_threats=total,
            recent_threats=sum(1 for p in patterns if p.last_detected > now - DAY_SECONDS),
            active_patterns=sum(1 for p in patterns if p.confidence_score >= ACTIVE_CONFIDENCE),
            verified_patterns=verified,
            detection_accuracy=round(verified / total * 100, 1) if total else 0.0,
            top_threats=top_threats,
        )
        logger.debug(f"📊 Статистика угроз: {stats.to_dict()}")
        return stats

    async def export_csv(self) -> str:
        """Выгружает все паттерны в CSV (по убыванию уверенности)."""
        try:
            patterns = await self._all_patterns()
        except (RedisError, OSError) as e:
            logger.exception(f"❌ Ошибка выгрузки паттернов: {e}")
            patterns = []

        patterns.sort(key=lambda p: (p.confidence_score, p.detection_count), reverse=True)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADER)
        for pattern in patterns:
            writer.writerow((
                pattern.pattern_type,
                f"{pattern.confidence_score:.1f}",
                pattern.detection_count,
                _iso(pattern.last_detected),
                "Yes" if pattern.is_verified else "No",
                _iso(pattern.created_at),
                pattern.pattern_data.ip,
                pattern.pattern_data.user_agent_family,
            ))

        logger.info(f"📤 Экспортировано {len(patterns)} паттернов")
        return buffer.getvalue()
