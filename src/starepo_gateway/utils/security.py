"""
Security helpers

Header filtering for user-supplied custom headers, base URL validation and
redaction of secrets before anything reaches the logs.
"""

import re
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)

# Headers a user must never be able to set through account configuration
FORBIDDEN_HEADERS = frozenset(
    {
        "host",
        "connection",
        "content-length",
        "transfer-encoding",
        "cookie",
        "set-cookie",
        "authorization",
    }
)

# Client identity headers that leak or spoof network origin
SENSITIVE_HEADERS = frozenset(
    {
        "x-real-ip",
        "x-forwarded-for",
        "x-forwarded-host",
        "x-client-ip",
        "cf-connecting-ip",
    }
)

SENSITIVE_KEYS = frozenset({"apikey", "api_key", "token", "password", "secret", "authorization"})

REDACTED = "***REDACTED***"

_SECRET_PATTERNS = [
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "sk-" + REDACTED),
    (re.compile(r"Bearer\s+[A-Za-z0-9._\-]+"), "Bearer " + REDACTED),
    (re.compile(r'("api_?key"\s*:\s*")[^"]*(")', re.IGNORECASE), r"\1" + REDACTED + r"\2"),
]


def validate_custom_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Drop forbidden and sensitive headers from user-supplied headers"""
    if not headers:
        return {}

    safe: Dict[str, str] = {}
    for name, value in headers.items():
        lowered = name.lower()
        if lowered in FORBIDDEN_HEADERS or lowered in SENSITIVE_HEADERS:
            logger.warning("Dropping disallowed custom header", header=name)
            continue
        safe[name] = str(value)
    return safe


def is_valid_base_url(url: str) -> bool:
    """Only absolute http/https URLs with a host are accepted"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sanitize_for_log(value: Any) -> Any:
    """Return a copy of value with secrets redacted

    Dict keys that look like credentials are replaced wholesale; strings are
    scrubbed for API key and bearer token patterns.
    """
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else sanitize_for_log(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [sanitize_for_log(item) for item in value]
    if isinstance(value, str):
        for pattern, replacement in _SECRET_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    return value
