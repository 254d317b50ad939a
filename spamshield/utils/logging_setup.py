# =============================================================================
# Файл: spamshield/utils/logging_setup.py
# Описание:
#   • Настройка логирования через loguru
#   • Поддержка JSON-формата для structured logging
#   • Перехват стандартного logging (aiohttp, openai, httpx)
# =============================================================================

import logging
import sys
from typing import Iterable, Literal

from loguru import logger


NOISY_LOGGERS = (
    "aiohttp",
    "asyncio",
    "httpx",
    "httpcore",
    "openai",
    "backoff",
)


# =============================================================================
# LOGURU INTERCEPTOR
# =============================================================================

class InterceptHandler(logging.Handler):
    """
    Перехватчик стандартных логов Python и перенаправление в loguru.
    Нужен для библиотек, которые используют стандартный logging.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Находим правильный caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_logging(
    level: str = "INFO",
    format: Literal["text", "json"] = "text",
    debug_loggers: Iterable[str] = (),
    service_name: str = "spamshield",
) -> None:
    """
    Настраивает систему логирования для всего приложения.

    Args:
        level: Уровень логирования ("DEBUG", "INFO", "WARNING", "ERROR")
        format: Формат вывода ("text" или "json")
        debug_loggers: Логгеры, которым оставляем уровень DEBUG
        service_name: Имя сервиса в поле extra каждой записи
    """
    logger.remove()
    logger.configure(extra={"service": service_name})

    if format == "json":
        # serialize=True отдает запись целиком в JSON (продакшен)
        logger.add(
            sys.stdout,
            level=level.upper(),
            serialize=True,
            backtrace=False,
            diagnose=False,
        )
    else:
        log_format = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
        logger.add(
            sys.stdout,
            format=log_format,
            level=level.upper(),
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    for logger_name in debug_loggers:
        logging.getLogger(logger_name).setLevel(logging.DEBUG)

    logger.info(
        f"✅ Logging configured: level={level.upper()}, format={format}"
    )
