# ===============================================================
# Файл: spamshield/texts/ai_prompts.py
# Описание: Промпты и JSON-схема для удаленного классификатора спама.
# ===============================================================
from typing import Any, Dict, Iterable, List

SAFE_THREAT_TYPES = ("promotional", "malicious", "bot", "legitimate")


def get_spam_analysis_json_schema() -> Dict[str, Any]:
    """
    Возвращает JSON-схему ответа классификатора.
    """
    return {
        "type": "OBJECT",
        "properties": {
            "is_spam": {
                "type": "BOOLEAN",
                "description": "True if the submission is spam.",
            },
            "confidence": {
                "type": "NUMBER",
                "description": "Confidence of the decision, 0-100.",
            },
            "spam_indicators": {
                "type": "ARRAY",
                "description": "Short labels of the spam indicators found.",
                "items": {"type": "STRING"},
            },
            "threat_type": {
                "type": "STRING",
                "description": "One of: " + ", ".join(SAFE_THREAT_TYPES),
            },
            "reasoning": {
                "type": "STRING",
                "description": "Detailed explanation of the decision.",
            },
            "recommended_action": {
                "type": "STRING",
                "description": "One of: block, flag, allow",
            },
        },
        "required": ["is_spam", "confidence", "spam_indicators", "threat_type"],
    }


def build_spam_analysis_prompt(
    submission: Dict[str, Any],
    known_patterns: Iterable[str] = (),
    recent_spam: Iterable[str] = (),
) -> str:
    """
    Промпт анализа одной отправки.

    Args:
        submission: Поля отправки (type, content, author, email, url, ip, user_agent)
        known_patterns: Описания уверенных паттернов из базы угроз
        recent_spam: Превью недавно заблокированного спама

    Returns:
        Текст промпта
    """
    lines: List[str] = [
        "You are an advanced spam detection system. "
        "Analyze the following content and determine if it's spam.",
        "",
        "CONTENT TO ANALYZE:",
        f"Type: {submission.get('type') or 'unknown'}",
        f"Content: {submission.get('content') or ''}",
        f"Author: {submission.get('author') or 'unknown'}",
        f"Email: {submission.get('email') or 'unknown'}",
        f"URL: {submission.get('url') or 'none'}",
        f"IP: {submission.get('ip') or 'unknown'}",
        f"User Agent: {submission.get('user_agent') or 'unknown'}",
    ]

    patterns = list(known_patterns)
    if patterns:
        lines += ["", "KNOWN SPAM PATTERNS (learn from these):"]
        lines += [f"- {pattern}" for pattern in patterns]

    previews = list(recent_spam)
    if previews:
        lines += ["", "RECENT SPAM INDICATORS:"]
        lines += [f"- {preview}" for preview in previews]

    lines += [
        "",
        "ANALYSIS REQUIREMENTS:",
        "1. Examine content for spam indicators: promotional language, "
        "suspicious links, gibberish, repetitive patterns",
        "2. Check author details for legitimacy",
        "3. Analyze IP and user agent for bot patterns",
        "4. Consider context and intent",
        "5. Look for social engineering attempts",
        "",
        "Respond with JSON in this exact format:",
        "{",
        '  "is_spam": boolean,',
        '  "confidence": number (0-100),',
        '  "spam_indicators": ["indicator1", "indicator2"],',
        '  "threat_type": "string (promotional/malicious/bot/legitimate)",',
        '  "reasoning": "detailed explanation",',
        '  "recommended_action": "block/flag/allow"',
        "}",
    ]
    return "\n".join(lines)


CONNECTION_TEST_PROMPT = (
    'Return strict JSON only with keys: {"is_spam":boolean,"confidence":number,'
    '"spam_indicators":array,"threat_type":string,"reasoning":string,'
    '"recommended_action":string}. Example: {"is_spam":false,"confidence":0,'
    '"spam_indicators":[],"threat_type":"legitimate","reasoning":"connectivity test",'
    '"recommended_action":"allow"}'
)
