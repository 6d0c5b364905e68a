"""Retry middleware with exponential backoff"""

import asyncio
from typing import Any, List, Optional

import structlog

from starepo_gateway.config import DEFAULT_RETRYABLE_ERRORS
from starepo_gateway.middleware.chain import Middleware, MiddlewareContext, Next

logger = structlog.get_logger(__name__)


class RetryMiddleware(Middleware):
    """Re-runs the rest of the chain on retryable failures

    An error is retryable when its message contains one of the configured
    fragments (case-insensitive) or its code/status_code equals one. Attempt
    n (zero-based) is followed by a sleep of base_delay * 2**n seconds.
    """

    name = "retry"
    priority = 50

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        retryable_errors: Optional[List[str]] = None,
        enabled: bool = True,
    ):
        super().__init__(enabled=enabled)
        self.max_retries = max(0, max_retries)
        self.base_delay = base_delay
        self.retryable_errors = list(retryable_errors or DEFAULT_RETRYABLE_ERRORS)

    def should_retry(self, error: Exception) -> bool:
        message = str(error).lower()
        codes = {
            str(value)
            for value in (getattr(error, "code", None), getattr(error, "status_code", None))
            if value is not None
        }
        for retryable in self.retryable_errors:
            if retryable.lower() in message or retryable in codes:
                return True
        return False

    async def on_request(self, params: Any, context: MiddlewareContext, next: Next) -> Any:
        for attempt in range(self.max_retries + 1):
            try:
                return await next()
            except Exception as e:
                if attempt >= self.max_retries or not self.should_retry(e):
                    raise

                delay = self.base_delay * (2 ** attempt)
                logger.warning(
                    "Retrying AI request",
                    request_id=context.request_id,
                    provider=context.provider_id,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay_seconds=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
