# spamshield/services/protection/inspectors/timing_inspector.py
from spamshield.services.protection.config import HeuristicConfig
from spamshield.services.protection.inspectors.base import BaseInspector
from spamshield.services.protection.models import (
    InspectionResult,
    ReasonCode,
    SubmissionContext,
)


class TimingInspector(BaseInspector):
    """
    Время заполнения формы.

    Боты отправляют форму сразу после загрузки. Отсутствие метки
    времени загрузки считается подозрительным.
    """

    def __init__(self, config: HeuristicConfig, min_seconds: int):
        super().__init__(config)
        self.min_seconds = min_seconds

    def inspect(self, context: SubmissionContext) -> InspectionResult:
        result = InspectionResult()

        if context.form_loaded_at is None:
            result.add_signal(
                ReasonCode.TIME_VALIDATION,
                self.config.TIMING_SCORE,
                "missing_timestamp",
            )
            return result

        elapsed = context.submitted_at - context.form_loaded_at
        if elapsed < self.min_seconds:
            result.add_signal(
                ReasonCode.TIME_VALIDATION,
                self.config.TIMING_SCORE,
                f"elapsed:{elapsed:.1f}s",
            )
            result.metadata["elapsed_seconds"] = elapsed

        return result
