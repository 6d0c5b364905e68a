"""
Request middleware for outbound AI calls

Provides:
- MiddlewareChain, the priority-ordered onion pipeline
- LoggingMiddleware, RetryMiddleware and RateLimitMiddleware built-ins
"""

from typing import Optional

from starepo_gateway.config import Settings, get_settings
from starepo_gateway.middleware.chain import Middleware, MiddlewareChain, MiddlewareContext
from starepo_gateway.middleware.logging import LoggingMiddleware
from starepo_gateway.middleware.rate_limiting import RateLimitMiddleware, RateLimitRecord
from starepo_gateway.middleware.retry import RetryMiddleware


def create_default_chain(settings: Optional[Settings] = None) -> MiddlewareChain:
    """Build a chain with the three built-ins configured from settings"""
    settings = settings or get_settings()
    return MiddlewareChain(
        [
            LoggingMiddleware(),
            RetryMiddleware(
                max_retries=settings.retry_max_retries,
                base_delay=settings.retry_base_delay,
                retryable_errors=settings.retry_errors,
            ),
            RateLimitMiddleware(
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            ),
        ]
    )


__all__ = [
    "LoggingMiddleware",
    "Middleware",
    "MiddlewareChain",
    "MiddlewareContext",
    "RateLimitMiddleware",
    "RateLimitRecord",
    "RetryMiddleware",
    "create_default_chain",
]
