# spamshield/services/ai/providers/base.py
"""
Базовый абстрактный класс для AI провайдеров.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict


class ClassifierError(Exception):
    """Ошибка обращения к удаленному классификатору."""


class ClassifierHTTPError(ClassifierError):
    """Удаленный сервис вернул код, отличный от 200."""

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"API returned error code: {status} - {body[:200]}")
        self.status = status
        self.body = body


class ClassifierResponseError(ClassifierError):
    """Ответ сервиса не содержит ожидаемых полей."""


class BaseAIProvider(ABC):
    """
    Базовый класс для всех AI провайдеров.

    Определяет единый интерфейс для работы с различными LLM API.
    """

    @abstractmethod
    def get_name(self) -> str:
        """Возвращает название провайдера."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Проверяет доступность провайдера."""
        pass

    @abstractmethod
    async def generate_json(
        self,
        prompt: str,
        json_schema: Dict[str, Any],
        temperature: float = 0.1,
    ) -> str:
        """
        Генерирует ответ, который должен содержать JSON.

        Args:
            prompt: Запрос с описанием требуемой структуры
            json_schema: Схема JSON
            temperature: Температура генерации

        Returns:
            Сырой текст ответа модели
        """
        pass

    async def close(self) -> None:
        """Освобождает сетевые ресурсы провайдера."""
        return None
