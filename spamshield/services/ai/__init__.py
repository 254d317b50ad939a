# spamshield/services/ai/__init__.py
"""
Удаленный AI-классификатор спама.

Компоненты:
- ClassifierAdapter - кэш, квота, failover провайдеров, разбор ответа
- parse_classifier_output - защитный разбор JSON из ответа модели
"""

from spamshield.services.ai.models import (
    ClassificationResult,
    ClassifierAnalysis,
    RecommendedAction,
)
from spamshield.services.ai.parser import parse_classifier_output
from spamshield.services.ai.service import ClassifierAdapter

__all__ = [
    "ClassificationResult",
    "ClassifierAdapter",
    "ClassifierAnalysis",
    "RecommendedAction",
    "parse_classifier_output",
]
