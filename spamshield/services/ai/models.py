# spamshield/services/ai/models.py
"""
Модели ответа удаленного классификатора.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, field_validator

from spamshield.services.protection.models import DetectionMethod


class RecommendedAction(str, Enum):
    BLOCK = "block"
    FLAG = "flag"
    ALLOW = "allow"


class ClassifierAnalysis(BaseModel):
    """
    Разбор ответа модели.

    Каждое поле приводится к безопасному значению по умолчанию,
    если модель вернула что-то неожиданное.
    """
    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    is_spam: bool = False
    confidence: int = 0
    spam_indicators: List[str] = []
    threat_type: str = "legitimate"
    reasoning: str = "Default safe response"
    recommended_action: RecommendedAction = RecommendedAction.ALLOW

    @field_validator("is_spam", mode="before")
    @classmethod
    def coerce_is_spam(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1", "spam")
        return False

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, value: Any) -> int:
        if isinstance(value, bool):
            return 0
        try:
            number = float(str(value).strip().rstrip("%"))
        except (TypeError, ValueError):
            return 0
        if number != number:  # NaN
            return 0
        return int(max(0.0, min(100.0, number)))

    @field_validator("spam_indicators", mode="before")
    @classmethod
    def coerce_indicators(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item).strip() for item in value if str(item).strip()]

    @field_validator("threat_type", mode="before")
    @classmethod
    def coerce_threat_type(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "legitimate"
        return value.strip().lower()

    @field_validator("reasoning", mode="before")
    @classmethod
    def coerce_reasoning(cls, value: Any) -> str:
        if value is None:
            return "Default safe response"
        return str(value)

    @field_validator("recommended_action", mode="before")
    @classmethod
    def coerce_action(cls, value: Any) -> RecommendedAction:
        try:
            return RecommendedAction(str(value).strip().lower())
        except ValueError:
            return RecommendedAction.ALLOW

    @classmethod
    def safe_default(cls, reasoning: str = "AI response parsing failed, defaulting to safe") -> "ClassifierAnalysis":
        return cls(reasoning=reasoning)


@dataclass(frozen=True)
class ClassificationResult:
    """
    Итог обращения к классификатору.

    Attributes:
        is_spam: Решение с учетом порога уверенности
        confidence: Уверенность модели 0-100
        analysis: Разобранный ответ модели
        provider: Имя провайдера, давшего ответ
        detection_method: Метка для аналитики
        raw_response: Сырой текст ответа
        parsed: False если ответ не удалось разобрать
        cached: True если результат взят из кэша
    """
    is_spam: bool
    confidence: int
    analysis: ClassifierAnalysis
    provider: str
    detection_method: DetectionMethod
    raw_response: str = ""
    parsed: bool = True
    cached: bool = False

    @property
    def threat_type(self) -> str:
        return self.analysis.threat_type

    @property
    def spam_indicators(self) -> List[str]:
        return list(self.analysis.spam_indicators)

    def to_payload(self) -> Dict[str, Any]:
        """Снимок для Verdict.ai_analysis и базы угроз."""
        payload = self.analysis.model_dump(mode="json")
        payload["provider"] = self.provider
        return payload
