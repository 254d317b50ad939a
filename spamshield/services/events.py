# spamshield/services/events.py
"""
Событие "отправка оценена" и его рассылка подписчикам.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Set

from loguru import logger

from spamshield.services.protection.models import SubmissionContext, Verdict


@dataclass(frozen=True)
class SubmissionEvaluated:
    context: SubmissionContext
    verdict: Verdict
    evaluated_at: float = field(default_factory=time.time)


EventHandler = Callable[[SubmissionEvaluated], Awaitable[None]]


class EvaluationEventBus:
    """
    Рассылает события подписчикам в фоновых задачах.

    publish() не ждет подписчиков: путь принятия решения не зависит
    от обучения и аналитики. Ошибки подписчиков логируются.
    drain() дожидается всех запущенных задач (тесты, остановка).
    """

    def __init__(self):
        self._handlers: List[EventHandler] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, handler: EventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def publish(self, event: SubmissionEvaluated) -> None:
        for handler in self._handlers:
            task = asyncio.create_task(self._run(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    @staticmethod
    async def _run(handler: EventHandler, event: SubmissionEvaluated) -> None:
        try:
            await handler(event)
        except Exception as e:
            name = getattr(handler, "__qualname__", repr(handler))
            logger.exception(f"❌ Подписчик {name} завершился с ошибкой: {e}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Ждет завершения всех фоновых задач, включая порожденные ими."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
