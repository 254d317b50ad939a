# spamshield/services/protection/inspectors/author_inspector.py
"""
Инспектор данных автора: имя, email, сайт.
"""
from typing import Optional
from urllib.parse import urlparse

from spamshield.services.protection.inspectors.base import BaseInspector
from spamshield.services.protection.models import (
    InspectionResult,
    ReasonCode,
    SubmissionContext,
)
from spamshield.utils.text_utils import has_links


class AuthorInspector(BaseInspector):
    """
    Проверяет:
    - Пустое или односимвольное имя
    - Ссылку в имени
    - Одноразовый/подозрительный домен email
    - Сайт автора с глубокой вложенностью поддоменов или подозрительной TLD
    """

    def inspect(self, context: SubmissionContext) -> InspectionResult:
        result = InspectionResult()

        author_reason = self._author_reason(context)
        if author_reason:
            result.add_signal(ReasonCode.AUTHOR_ANALYSIS, self.config.AUTHOR_SCORE, author_reason)

        url_reason = self._url_reason(context.author_url)
        if url_reason:
            result.add_signal(ReasonCode.URL_ANALYSIS, self.config.URL_SCORE, url_reason)

        return result

    def _author_reason(self, context: SubmissionContext) -> Optional[str]:
        name = (context.author_name or "").strip()

        if len(name) < 2:
            return "short_name"

        if has_links(name):
            return "url_in_name"

        email = (context.author_email or "").strip().lower()
        if email:
            domain = email.rsplit("@", 1)[-1]
            if any(domain.endswith(tld) for tld in self.config.SUSPICIOUS_EMAIL_TLDS):
                return f"email_tld:{domain}"
            if any(marker in domain for marker in self.config.DISPOSABLE_EMAIL_MARKERS):
                return f"disposable_email:{domain}"

        return None

    def _url_reason(self, url: str) -> Optional[str]:
        url = (url or "").strip().lower()
        if not url:
            return None

        try:
            host = urlparse(url if "://" in url else f"http://{url}").hostname or ""
        except ValueError:
            return "malformed_url"
        if not host:
            return None

        if host.count(".") > self.config.MAX_URL_DOTS:
            return f"subdomains:{host}"

        if any(host.endswith(tld) for tld in self.config.SUSPICIOUS_URL_TLDS):
            return f"tld:{host}"

        return None
