# spamshield/services/protection/models.py
"""
Модели данных конвейера антиспама.
"""
import hashlib
import json
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class EntryKind(str, Enum):
    """Тип проверяемой записи."""
    COMMENT = "comment"
    CONTACT_FORM = "contact_form"
    CUSTOM_FORM = "custom_form"


class ReasonCode(str, Enum):
    """Закрытый набор причин, по которым сработала проверка."""
    BLOCKED_IP = "blocked_ip"
    HONEYPOT = "honeypot"
    TIME_VALIDATION = "time_validation"
    RATE_LIMIT = "rate_limit"
    AI_ANALYSIS = "ai_analysis"
    CONTENT_ANALYSIS = "content_analysis"
    AUTHOR_ANALYSIS = "author_analysis"
    URL_ANALYSIS = "url_analysis"
    SUSPICIOUS_MARKUP = "suspicious_markup"
    PATTERN_FALLBACK = "pattern_fallback"


class DetectionMethod(str, Enum):
    """Метка метода обнаружения для аналитики."""
    BLOCKED_IP = "blocked_ip"
    HONEYPOT = "honeypot"
    TIME_VALIDATION = "time_validation"
    RATE_LIMIT = "rate_limit"
    GEMINI_AI = "gemini_ai"
    OPENAI_AI = "openai_ai"
    HEURISTIC = "heuristic"
    PATTERN_FALLBACK = "pattern_fallback"
    CLEAN = "clean"


@dataclass(frozen=True)
class SubmissionContext:
    """
    Единица проверки: одна отправка формы или комментарий.

    Attributes:
        content: Текст сообщения
        author_name: Имя автора
        author_email: Email автора
        author_url: Сайт автора
        ip: IP-адрес отправителя
        user_agent: User-Agent браузера
        form_loaded_at: Unix-время загрузки формы (None если не передано)
        submitted_at: Unix-время отправки
        entry_kind: Тип записи
        honeypot_value: Значение скрытого поля-ловушки
    """
    content: str = ""
    author_name: str = ""
    author_email: str = ""
    author_url: str = ""
    ip: str = ""
    user_agent: str = ""
    form_loaded_at: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)
    entry_kind: EntryKind = EntryKind.CONTACT_FORM
    honeypot_value: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["entry_kind"] = self.entry_kind.value
        return data

    def cache_key(self) -> str:
        """Стабильный хэш всех полей контекста."""
        payload = json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class Signal:
    """
    Сработавшая проверка.

    Attributes:
        code: Код причины
        score: Вклад в итоговую оценку
        detail: Доп. сведения (найденные слова, hash паттерна и т.п.)
    """
    code: ReasonCode
    score: int = 0
    detail: str = ""


@dataclass
class InspectionResult:
    """
    Результат проверки одним инспектором.

    Attributes:
        score: Оценка угрозы (чем выше, тем опаснее)
        signals: Сработавшие проверки
        metadata: Дополнительные данные
    """
    score: int = 0
    signals: List[Signal] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def add_signal(self, code: ReasonCode, score_increment: int = 0, detail: str = "") -> None:
        """Добавляет сигнал и увеличивает оценку."""
        self.signals.append(Signal(code=code, score=score_increment, detail=detail))
        self.score += score_increment

    def add_score(self, score_increment: int) -> None:
        """Увеличивает оценку без отдельного сигнала."""
        self.score += score_increment

    def merge(self, other: "InspectionResult") -> None:
        """Объединяет с другим результатом."""
        self.score += other.score
        self.signals.extend(other.signals)
        self.metadata.update(other.metadata)

    @property
    def triggered(self) -> bool:
        return bool(self.signals)


@dataclass(frozen=True)
class Verdict:
    """
    Итог проверки одной отправки.

    Attributes:
        is_spam: Решение
        confidence: Уверенность 0-100
        signals: Цепочка сработавших проверок по порядку
        detection_method: Метод, определивший решение
        ai_analysis: Сырой разбор ответа AI (если был)
    """
    is_spam: bool
    confidence: int = 0
    signals: Tuple[Signal, ...] = ()
    detection_method: DetectionMethod = DetectionMethod.CLEAN
    ai_analysis: Optional[Dict[str, Any]] = None

    @property
    def reason_codes(self) -> List[ReasonCode]:
        return [signal.code for signal in self.signals]

    @property
    def reason(self) -> str:
        if not self.signals:
            return "clean"
        return ", ".join(code.value for code in self.reason_codes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_spam": self.is_spam,
            "confidence": self.confidence,
            "reasons": [code.value for code in self.reason_codes],
            "detection_method": self.detection_method.value,
            "ai_analysis": self.ai_analysis,
        }
