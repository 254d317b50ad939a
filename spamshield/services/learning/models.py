# spamshield/services/learning/models.py
"""
Модели данных базы паттернов угроз.
"""
import hashlib
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class PatternFeatures:
    """
    Признаки отправки, из которых строится отпечаток.

    Attributes:
        content_length: Длина текста в символах
        length_bucket: Нижняя граница корзины длины
        has_links: Есть ли в тексте http(s)-ссылки
        spam_indicators: Отсортированный список индикаторов
        threat_type: Тип угрозы
        ip: IP-адрес отправителя
        user_agent_family: Семейство браузера/клиента
    """
    content_length: int
    length_bucket: int
    has_links: bool
    spam_indicators: List[str] = field(default_factory=list)
    threat_type: str = "unknown"
    ip: str = ""
    user_agent_family: str = "unknown"

    def canonical(self) -> Dict[str, Any]:
        """Признаки, входящие в hash (без сырой длины)."""
        return {
            "length_bucket": self.length_bucket,
            "has_links": self.has_links,
            "spam_indicators": sorted(self.spam_indicators),
            "threat_type": self.threat_type,
            "ip": self.ip,
            "user_agent_family": self.user_agent_family,
        }

    def fingerprint(self) -> str:
        payload = json.dumps(self.canonical(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatternFeatures":
        return cls(
            content_length=int(data.get("content_length", 0)),
            length_bucket=int(data.get("length_bucket", 0)),
            has_links=bool(data.get("has_links", False)),
            spam_indicators=list(data.get("spam_indicators") or []),
            threat_type=str(data.get("threat_type", "unknown")),
            ip=str(data.get("ip", "")),
            user_agent_family=str(data.get("user_agent_family", "unknown")),
        )


@dataclass
class ThreatPattern:
    """
    Выученный отпечаток подтвержденного спама.

    Attributes:
        pattern_hash: Уникальный hash признаков
        pattern_type: Тип угрозы
        confidence_score: Уверенность 0-100 (только растет)
        detection_count: Сколько раз обнаружен
        last_detected: Unix-время последнего обнаружения
        created_at: Unix-время создания
        pattern_data: Признаки
        ai_analysis: Снимок анализа AI
        is_verified: Подтвержден оператором
    """
    pattern_hash: str
    pattern_type: str
    confidence_score: float
    detection_count: int
    last_detected: float
    created_at: float
    pattern_data: PatternFeatures
    ai_analysis: Optional[Dict[str, Any]] = None
    is_verified: bool = False

    @classmethod
    def from_redis(cls, raw: Dict[str, str]) -> "ThreatPattern":
        """Собирает паттерн из HASH Redis (decode_responses=True)."""
        try:
            pattern_data = json.loads(raw.get("pattern_data") or "{}")
        except json.JSONDecodeError:
            pattern_data = {}
        try:
            ai_analysis = json.loads(raw.get("ai_analysis") or "null")
        except json.JSONDecodeError:
            ai_analysis = None

        return cls(
            pattern_hash=raw["pattern_hash"],
            pattern_type=raw.get("pattern_type", "unknown"),
            confidence_score=float(raw.get("confidence_score", 0)),
            detection_count=int(raw.get("detection_count", 1)),
            last_detected=float(raw.get("last_detected", 0)),
            created_at=float(raw.get("created_at", 0)),
            pattern_data=PatternFeatures.from_dict(pattern_data),
            ai_analysis=ai_analysis,
            is_verified=raw.get("is_verified") in ("1", "true", "True"),
        )


@dataclass(frozen=True)
class ThreatStatistics:
    """
    Сводка по базе паттернов.

    Attributes:
        total_threats: Всего паттернов
        recent_threats: Обнаружено за 24 часа
        active_patterns: Паттерны с уверенностью >= 75
        verified_patterns: Подтвержденные оператором
        detection_accuracy: Доля подтвержденных, %
        top_threats: Самые частые типы угроз
    """
    total_threats: int
    recent_threats: int
    active_patterns: int
    verified_patterns: int
    detection_accuracy: float
    top_threats: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
