# spamshield/services/ai/parser.py
"""
Защитный разбор ответа классификатора.
"""
import json
import re
from typing import Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from spamshield.services.ai.models import ClassifierAnalysis

FENCE_RE = re.compile(r"```[a-zA-Z]*\s*(.*?)\s*```", re.DOTALL)
TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _strip_fences(text: str) -> str:
    match = FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.replace("```", "").strip()


def _first_json_object(text: str) -> Optional[str]:
    """
    Первый сбалансированный объект {...}; если баланс не сходится,
    отрезок от первой { до последней }.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]

    end = text.rfind("}")
    if end > start:
        return text[start:end + 1]
    return None


def parse_classifier_output(raw: str) -> Tuple[ClassifierAnalysis, bool]:
    """
    Извлекает анализ из текста модели.

    Снимает обертки ```json```, находит первый JSON-объект,
    убирает висячие запятые. Отсутствующие или неверные поля
    заменяются безопасными значениями.

    Args:
        raw: Сырой текст ответа

    Returns:
        (анализ, удалось ли разобрать JSON)
    """
    if not raw or not raw.strip():
        logger.warning("⚠️ Пустой ответ классификатора")
        return ClassifierAnalysis.safe_default(), False

    text = _strip_fences(raw.strip())
    candidate = _first_json_object(text)
    if candidate is None:
        logger.warning(f"⚠️ JSON не найден в ответе классификатора: {raw[:500]!r}")
        return ClassifierAnalysis.safe_default(), False

    candidate = re.sub(r"[\r\n\t]", " ", candidate)
    candidate = TRAILING_COMMA_RE.sub(r"\1", candidate)

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ Некорректный JSON классификатора ({e}): {candidate[:500]!r}")
        return ClassifierAnalysis.safe_default("JSON parsing failed, defaulting to safe"), False

    if not isinstance(data, dict):
        logger.warning(f"⚠️ Ответ классификатора не является объектом: {candidate[:500]!r}")
        return ClassifierAnalysis.safe_default(), False

    try:
        return ClassifierAnalysis.model_validate(data), True
    except ValidationError as e:
        logger.warning(f"⚠️ Ответ классификатора не прошел валидацию: {e}")
        return ClassifierAnalysis.safe_default(), False
