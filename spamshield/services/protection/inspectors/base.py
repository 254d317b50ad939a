# spamshield/services/protection/inspectors/base.py
"""
Базовый класс для всех инспекторов.
"""
from abc import ABC, abstractmethod

from spamshield.services.protection.config import HeuristicConfig
from spamshield.services.protection.models import InspectionResult, SubmissionContext


class BaseInspector(ABC):
    """
    Базовый класс для эвристических инспекторов.

    Каждый инспектор синхронно анализирует один аспект отправки
    без ввода-вывода и возвращает оценку с сигналами.
    """

    def __init__(self, config: HeuristicConfig):
        self.config = config

    @abstractmethod
    def inspect(self, context: SubmissionContext) -> InspectionResult:
        """
        Выполняет проверку.

        Returns:
            Результат проверки с оценкой и сигналами
        """
        pass
