# spamshield/services/protection/inspectors/honeypot_inspector.py
from spamshield.services.protection.inspectors.base import BaseInspector
from spamshield.services.protection.models import (
    InspectionResult,
    ReasonCode,
    SubmissionContext,
)


class HoneypotInspector(BaseInspector):
    """Скрытое поле-ловушка: человек его не видит, бот заполняет."""

    def inspect(self, context: SubmissionContext) -> InspectionResult:
        result = InspectionResult()
        if (context.honeypot_value or "").strip():
            result.add_signal(ReasonCode.HONEYPOT, self.config.HONEYPOT_SCORE)
        return result
