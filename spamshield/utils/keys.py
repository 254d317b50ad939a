# spamshield/utils/keys.py
class KeyFactory:
    """Генерирует стандартизированные ключи для Redis."""

    def __init__(self, prefix: str = "spamshield"):
        self.prefix = prefix

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix, *parts))

    # --- Ограничение частоты ---
    def rate_window(self, scope: str, identity: str) -> str:
        return self._key(scope, identity)

    # --- Черный список IP ---
    def blocked_ips(self) -> str:
        return self._key("blocked_ips")

    # --- Паттерны угроз ---
    def threat_pattern(self, pattern_hash: str) -> str:
        return self._key("threat", "pattern", pattern_hash)

    def threat_by_confidence(self) -> str:
        """ZSET: hash паттерна -> confidence_score."""
        return self._key("threat", "by_confidence")

    def threat_by_created(self) -> str:
        """ZSET: hash паттерна -> created_at (unix)."""
        return self._key("threat", "by_created")

    def threat_by_detected(self) -> str:
        """ZSET: hash паттерна -> last_detected (unix)."""
        return self._key("threat", "by_detected")

    def threat_ip_index(self, ip: str) -> str:
        return self._key("threat", "ip", ip)

    # --- AI классификатор ---
    def ai_cache(self, context_hash: str) -> str:
        return self._key("ai", "cache", context_hash)

    # --- Аналитика ---
    def analytics_log(self) -> str:
        return self._key("analytics", "log")

    def spam_stats(self) -> str:
        return self._key("stats", "spam")

    @staticmethod
    def monthly_field(month: str) -> str:
        return f"monthly:{month}"
