# spamshield/services/protection/inspectors/content_inspector.py
"""
Инспекторы текстового контента.
"""
import re
from typing import List

from loguru import logger

from spamshield.services.protection.inspectors.base import BaseInspector
from spamshield.services.protection.models import (
    InspectionResult,
    ReasonCode,
    SubmissionContext,
)
from spamshield.utils.text_utils import count_links

# Компилированные регулярные выражения
PUNCTUATION_RE = re.compile(r"!{3,}|\?{3,}")

MARKUP_PATTERNS = (
    re.compile(r"\[url=", re.IGNORECASE),
    re.compile(r"\[link=", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"onload=", re.IGNORECASE),
    re.compile(r"onclick=", re.IGNORECASE),
)


class ContentInspector(BaseInspector):
    """
    Проверяет текст на:
    - Спам-слова из взвешенного словаря
    - Избыток ссылок
    - Текст целиком капсом
    - Серии !!! и ???
    """

    def inspect(self, context: SubmissionContext) -> InspectionResult:
        result = InspectionResult()
        content = context.content or ""

        if not content:
            return result

        details: List[str] = []
        score = 0

        score += self._score_keywords(content.lower(), details)
        score += self._score_links(content, details, result)
        score += self._score_caps(content, details)
        score += self._score_punctuation(content, details)

        if score > self.config.CONTENT_SIGNAL_MIN_SCORE:
            result.add_signal(ReasonCode.CONTENT_ANALYSIS, score, ",".join(details))
        else:
            result.add_score(score)

        if score > 0:
            logger.debug(f"ContentInspector: score={score}, details={details}")

        return result

    def _score_keywords(self, content_lower: str, details: List[str]) -> int:
        score = 0
        for keyword, points in self.config.SPAM_KEYWORDS.items():
            if keyword in content_lower:
                score += points
                details.append(f"keyword:{keyword}")
        return score

    def _score_links(
        self,
        content: str,
        details: List[str],
        result: InspectionResult,
    ) -> int:
        links = count_links(content)
        result.metadata["link_count"] = links

        excess = links - self.config.FREE_LINKS
        if excess <= 0:
            return 0
        details.append(f"links:{links}")
        return excess * self.config.LINK_SCORE

    def _score_caps(self, content: str, details: List[str]) -> int:
        if (
            len(content) > self.config.CAPS_MIN_LENGTH
            and any(char.isalpha() for char in content)
            and content == content.upper()
        ):
            details.append("all_caps")
            return self.config.CAPS_SCORE
        return 0

    def _score_punctuation(self, content: str, details: List[str]) -> int:
        if PUNCTUATION_RE.search(content):
            details.append("punctuation")
            return self.config.PUNCTUATION_SCORE
        return 0


class MarkupInspector(BaseInspector):
    """Ищет BBCode-ссылки, скрипты и обработчики событий в полях формы."""

    def inspect(self, context: SubmissionContext) -> InspectionResult:
        result = InspectionResult()
        combined = " ".join(
            part for part in (context.content, context.author_name, context.author_url)
            if part
        )

        for pattern in MARKUP_PATTERNS:
            if pattern.search(combined):
                result.add_signal(
                    ReasonCode.SUSPICIOUS_MARKUP,
                    self.config.MARKUP_SCORE,
                    pattern.pattern,
                )
                break

        return result
