"""
Middleware Chain

Onion-style interceptor pipeline wrapped around every outbound vendor call.
Middlewares are kept in a list sorted ascending by priority; the lowest
priority runs first on the way in and last on the way out.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

Next = Callable[[], Awaitable[Any]]
Call = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class MiddlewareContext:
    """Per-call record threaded unchanged through every hook"""
    provider_id: str
    model_id: str
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)


class Middleware:
    """Base middleware; every hook passes straight through to next()"""

    name: str = "middleware"
    priority: int = 0

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    async def on_request(self, params: Any, context: MiddlewareContext, next: Next) -> Any:
        return await next()

    async def on_response(self, response: Any, context: MiddlewareContext, next: Next) -> Any:
        return await next()

    async def on_error(self, error: Exception, context: MiddlewareContext, next: Next) -> Any:
        return await next()


async def _return(value: Any) -> Any:
    return value


async def _reraise(error: Exception) -> Any:
    raise error


class MiddlewareChain:
    """Ordered list of middlewares plus an index-based invoke helper"""

    def __init__(self, middlewares: Optional[List[Middleware]] = None):
        self._middlewares: List[Middleware] = []
        for middleware in middlewares or []:
            self.use(middleware)

    def use(self, middleware: Middleware) -> "MiddlewareChain":
        """Add a middleware; disabled ones are ignored"""
        if not middleware.enabled:
            logger.debug("Skipping disabled middleware", middleware=middleware.name)
            return self
        self._middlewares.append(middleware)
        # sort is stable: equal priorities keep insertion order
        self._middlewares.sort(key=lambda m: m.priority)
        return self

    def remove(self, name: str) -> bool:
        before = len(self._middlewares)
        self._middlewares = [m for m in self._middlewares if m.name != name]
        return len(self._middlewares) != before

    def clear(self) -> None:
        self._middlewares = []

    @property
    def size(self) -> int:
        return len(self._middlewares)

    @property
    def middlewares(self) -> List[Middleware]:
        return list(self._middlewares)

    async def execute(self, params: Any, context: MiddlewareContext, call: Call) -> Any:
        """Run call(params) wrapped by every middleware"""
        # snapshot so concurrent use()/remove() cannot shift indices mid-call
        middlewares = list(self._middlewares)
        return await self._invoke(middlewares, 0, params, context, call)

    async def _invoke(
        self,
        middlewares: List[Middleware],
        index: int,
        params: Any,
        context: MiddlewareContext,
        call: Call,
    ) -> Any:
        if index >= len(middlewares):
            return await call(params)

        middleware = middlewares[index]
        downstream = partial(self._invoke, middlewares, index + 1, params, context, call)
        try:
            result = await middleware.on_request(params, context, downstream)
        except Exception as error:
            return await middleware.on_error(error, context, partial(_reraise, error))
        return await middleware.on_response(result, context, partial(_return, result))
