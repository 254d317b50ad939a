# spamshield/utils/network.py
"""
Определение IP-адреса клиента за прокси.
"""
import ipaddress
from typing import Mapping, Optional

# Порядок важен: первый валидный публичный адрес побеждает
IP_HEADERS = (
    "CF-Connecting-IP",
    "Client-IP",
    "X-Forwarded-For",
    "X-Forwarded",
    "X-Cluster-Client-IP",
    "Forwarded-For",
    "Forwarded",
)

UNKNOWN_IP = "0.0.0.0"


def _is_public_ip(value: str) -> bool:
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return False
    return not (ip.is_private or ip.is_reserved or ip.is_loopback or ip.is_link_local)


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def resolve_client_ip(
    headers: Mapping[str, str],
    remote_addr: Optional[str] = None,
) -> str:
    """
    Возвращает IP клиента с учетом заголовков прокси.

    Args:
        headers: Заголовки запроса (регистр ключей не важен)
        remote_addr: Адрес TCP-соединения

    Returns:
        Публичный IP из заголовков, иначе remote_addr, иначе "0.0.0.0"
    """
    normalized = {key.lower(): value for key, value in headers.items()}

    for header in IP_HEADERS:
        value = normalized.get(header.lower())
        if not value:
            continue
        # Цепочка прокси: берем первый адрес
        candidate = value.split(",")[0].strip()
        if _is_public_ip(candidate):
            return candidate

    return remote_addr or UNKNOWN_IP
