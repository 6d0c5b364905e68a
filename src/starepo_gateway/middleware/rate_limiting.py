"""Fixed-window rate limiting middleware"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

from starepo_gateway.errors import RateLimitExceededError
from starepo_gateway.middleware.chain import Middleware, MiddlewareContext, Next

logger = structlog.get_logger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float


class RateLimitMiddleware(Middleware):
    """Per-provider fixed-window counter that fails fast instead of queueing"""

    name = "rate_limit"
    priority = 10

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        enabled: bool = True,
    ):
        super().__init__(enabled=enabled)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = asyncio.Lock()

    async def _acquire(self, provider_id: str) -> None:
        async with self._lock:
            now = self._clock()
            record = self._records.get(provider_id)

            if record is None or now > record.reset_time:
                self._records[provider_id] = RateLimitRecord(count=1, reset_time=now + self.window_seconds)
                return

            if record.count >= self.max_requests:
                retry_after = max(1, math.ceil(record.reset_time - now))
                logger.warning(
                    "Rate limit exceeded",
                    provider=provider_id,
                    max_requests=self.max_requests,
                    retry_after=retry_after,
                )
                raise RateLimitExceededError(provider_id, retry_after)

            record.count += 1

    async def on_request(self, params: Any, context: MiddlewareContext, next: Next) -> Any:
        await self._acquire(context.provider_id)
        return await next()

    def reset(self, provider_id: str) -> None:
        self._records.pop(provider_id, None)

    def get_status(self, provider_id: str) -> Optional[Dict[str, Any]]:
        """Current window for provider_id, or None if no window is open"""
        record = self._records.get(provider_id)
        if record is None:
            return None
        return {
            "count": record.count,
            "remaining": max(0, self.max_requests - record.count),
            "reset_time": record.reset_time,
        }

    def clear(self) -> None:
        self._records.clear()
