"""Request logging middleware"""

import time
from typing import Any

import structlog

from starepo_gateway.middleware.chain import Middleware, MiddlewareContext, Next
from starepo_gateway.utils.security import sanitize_for_log

logger = structlog.get_logger(__name__)


class LoggingMiddleware(Middleware):
    """Logs start, duration and failure of every call"""

    name = "logging"
    priority = 100

    async def on_request(self, params: Any, context: MiddlewareContext, next: Next) -> Any:
        start_time = time.perf_counter()
        logger.debug(
            "AI request started",
            request_id=context.request_id,
            provider=context.provider_id,
            model=context.model_id,
            metadata=sanitize_for_log(context.metadata),
        )
        try:
            result = await next()
        except Exception as e:
            logger.error(
                "AI request failed",
                request_id=context.request_id,
                provider=context.provider_id,
                model=context.model_id,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=sanitize_for_log(str(e)),
            )
            raise

        logger.debug(
            "AI request completed",
            request_id=context.request_id,
            provider=context.provider_id,
            model=context.model_id,
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return result

    async def on_error(self, error: Exception, context: MiddlewareContext, next: Next) -> Any:
        logger.error(
            "AI middleware error",
            request_id=context.request_id,
            provider=context.provider_id,
            model=context.model_id,
            error_type=type(error).__name__,
            error_code=getattr(error, "code", None),
        )
        return await next()
