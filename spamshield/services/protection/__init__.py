# spamshield/services/protection/__init__.py
"""
Конвейер проверки отправок.

Модули:
- models - контекст отправки, сигналы, вердикт
- rate_limiter - ограничение частоты в окне
- blocklist - черный список IP
- evaluator - локальные эвристики и резервное сравнение с базой угроз
- engine - порядок проверок и итоговый вердикт
"""

from spamshield.services.protection.models import (
    DetectionMethod,
    EntryKind,
    InspectionResult,
    ReasonCode,
    Signal,
    SubmissionContext,
    Verdict,
)

__all__ = [
    "DetectionMethod",
    "EntryKind",
    "InspectionResult",
    "ReasonCode",
    "Signal",
    "SubmissionContext",
    "Verdict",
]
