"""
Эвристические инспекторы отправок.
"""

from spamshield.services.protection.inspectors.author_inspector import AuthorInspector
from spamshield.services.protection.inspectors.base import BaseInspector
from spamshield.services.protection.inspectors.content_inspector import (
    ContentInspector,
    MarkupInspector,
)
from spamshield.services.protection.inspectors.honeypot_inspector import HoneypotInspector
from spamshield.services.protection.inspectors.timing_inspector import TimingInspector

__all__ = [
    "AuthorInspector",
    "BaseInspector",
    "ContentInspector",
    "HoneypotInspector",
    "MarkupInspector",
    "TimingInspector",
]
