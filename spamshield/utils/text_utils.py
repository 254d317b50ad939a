# spamshield/utils/text_utils.py
import html
import re

TAG_RE = re.compile(r"<[^>]+>")
URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
HAS_LINK_RE = re.compile(r"https?://", re.IGNORECASE)


def strip_tags(text: str) -> str:
    """Удаляет HTML-теги и раскрывает сущности."""
    if not text:
        return ""
    return html.unescape(TAG_RE.sub("", text)).strip()


def count_links(text: str) -> int:
    """Количество http(s)-ссылок в тексте."""
    if not text:
        return 0
    return len(URL_RE.findall(text))


def has_links(text: str) -> bool:
    return bool(text) and HAS_LINK_RE.search(text) is not None


def clip_text(text: str, max_length: int) -> str:
    """
    Обрезает текст до максимальной длины, стараясь не разрывать слова.
    """
    if len(text) <= max_length:
        return text
    clipped = text[:max_length]
    last_space = clipped.rfind(" ")
    if last_space > max_length * 0.8:
        clipped = clipped[:last_space]
    return clipped.rstrip() + "…"
