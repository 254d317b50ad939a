# spamshield/services/analytics.py
"""
Журнал аналитики и счетчики заблокированного спама.
"""
import json
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spamshield.config.models import AnalyticsConfig
from spamshield.config.settings import settings
from spamshield.services.events import SubmissionEvaluated
from spamshield.utils.keys import KeyFactory
from spamshield.utils.text_utils import strip_tags

# Сколько последних записей просматривать при поиске недавнего спама
RECENT_SCAN_LIMIT = 500


@dataclass(frozen=True)
class AnalyticsRecord:
    """
    Одна запись журнала аналитики.

    Attributes:
        entry_type: Тип записи (comment/contact_form/custom_form)
        spam_score: Уверенность вердикта
        detection_method: Метод обнаружения
        user_ip: IP отправителя
        user_agent: User-Agent
        content_preview: Начало текста без HTML
        timestamp: Unix-время вердикта
        is_spam: Решение
    """
    entry_type: str
    spam_score: int
    detection_method: str
    user_ip: str
    user_agent: str
    content_preview: str
    timestamp: float
    is_spam: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyticsRecord":
        return cls(
            entry_type=str(data.get("entry_type", "")),
            spam_score=int(data.get("spam_score", 0)),
            detection_method=str(data.get("detection_method", "")),
            user_ip=str(data.get("user_ip", "")),
            user_agent=str(data.get("user_agent", "")),
            content_preview=str(data.get("content_preview", "")),
            timestamp=float(data.get("timestamp", 0)),
            is_spam=bool(data.get("is_spam", False)),
        )


class AnalyticsRecorder:
    """
    Append-only журнал вердиктов (LIST, новые записи в начале,
    ограничен max_records) и счетчики спама (HASH: total + по месяцам).
    """

    def __init__(
        self,
        redis: Redis,
        config: Optional[AnalyticsConfig] = None,
        key_factory: Optional[KeyFactory] = None,
    ):
        self.redis = redis
        self.config = config or settings.analytics
        self.key_factory = key_factory or KeyFactory()

    def build_record(self, event: SubmissionEvaluated) -> AnalyticsRecord:
        context, verdict = event.context, event.verdict
        preview = strip_tags(context.content)[: self.config.preview_length]
        return AnalyticsRecord(
            entry_type=context.entry_kind.value,
            spam_score=verdict.confidence,
            detection_method=verdict.detection_method.value,
            user_ip=context.ip,
            user_agent=context.user_agent,
            content_preview=preview,
            timestamp=event.evaluated_at,
            is_spam=verdict.is_spam,
        )

    async def record(self, event: SubmissionEvaluated) -> None:
        """Добавляет вердикт в журнал. Ошибки хранилища только логируются."""
        record = self.build_record(event)
        key = self.key_factory.analytics_log()
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.lpush(key, json.dumps(record.to_dict(), ensure_ascii=False))
            pipe.ltrim(key, 0, self.config.max_records - 1)
            await pipe.execute()
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка записи аналитики: {e}")

    async def handle_event(self, event: SubmissionEvaluated) -> None:
        await self.record(event)

    async def recent_records(self, limit: int = 100) -> List[AnalyticsRecord]:
        """Последние записи журнала, новые первыми."""
        try:
            rows = await self.redis.lrange(self.key_factory.analytics_log(), 0, limit - 1)
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка чтения аналитики: {e}")
            return []

        records = []
        for row in rows:
            try:
                records.append(AnalyticsRecord.from_dict(json.loads(row)))
            except (json.JSONDecodeError, TypeError, ValueError) as e:
                logger.warning(f"⚠️ Пропущена поврежденная запись аналитики: {e}")
        return records

    async def recent_spam_previews(
        self,
        hours: Optional[int] = None,
        limit: int = 3,
        now: Optional[float] = None,
    ) -> List[str]:
        """
        Превью недавно заблокированного спама (подсказки для классификатора).

        Args:
            hours: Глубина поиска (по умолчанию recent_spam_hours)
            limit: Максимум превью
            now: Текущее unix-время (для тестов)
        """
        hours = self.config.recent_spam_hours if hours is None else hours
        now = time.time() if now is None else now
        cutoff = now - hours * 3600

        previews = []
        for record in await self.recent_records(RECENT_SCAN_LIMIT):
            if record.timestamp < cutoff:
                break
            if record.is_spam and record.content_preview:
                previews.append(record.content_preview)
                if len(previews) >= limit:
                    break
        return previews

    async def increment_spam_count(self, now: Optional[float] = None) -> None:
        """Увеличивает общий и месячный счетчики заблокированного спама."""
        now = time.time() if now is None else now
        month = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m")
        key = self.key_factory.spam_stats()
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.hincrby(key, "total", 1)
            pipe.hincrby(key, KeyFactory.monthly_field(month), 1)
            await pipe.execute()
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка обновления счетчика спама: {e}")

    async def get_spam_stats(self) -> Dict[str, Any]:
        """
        Returns:
            {"total": int, "monthly": {"YYYY-MM": int}}
        """
        try:
            raw = await self.redis.hgetall(self.key_factory.spam_stats())
        except (RedisError, OSError) as e:
            logger.error(f"❌ Ошибка чтения счетчиков спама: {e}")
            raw = {}

        prefix = KeyFactory.monthly_field("")
        monthly = {
            field[len(prefix):]: int(value)
            for field, value in raw.items()
            if field.startswith(prefix)
        }
        return {"total": int(raw.get("total", 0)), "monthly": dict(sorted(monthly.items()))}
