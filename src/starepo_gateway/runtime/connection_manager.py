"""
Connection Manager

Owns pooled keep-alive httpx clients, one per destination host and pool
options, split into an http and an https pool. A single instance is created
by the Gateway at startup and torn down with destroy_all() at shutdown.
"""

import json
import threading
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
import structlog

from starepo_gateway.errors import ConfigurationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PoolOptions:
    """Settings that key a pooled HTTP client"""
    keep_alive: bool = True
    keepalive_expiry: float = 30.0
    max_connections: int = 10
    max_keepalive_connections: int = 5
    timeout: float = 60.0
    verify: bool = True
    proxy: Optional[str] = None


class ConnectionManager:
    """Lazily creates and caches pooled httpx.AsyncClient handles"""

    def __init__(
        self,
        default_options: Optional[PoolOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.default_options = default_options or PoolOptions()
        # Injected transport replaces the network layer (tests, custom routing)
        self._transport = transport
        # scheme -> host (netloc) -> options key -> client
        self._pools: Dict[str, Dict[str, Dict[str, httpx.AsyncClient]]] = {"http": {}, "https": {}}
        self._lock = threading.Lock()

    @staticmethod
    def _split(base_url: str):
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(f"Invalid base URL: {base_url}")
        return parsed.scheme, parsed.netloc

    @staticmethod
    def _options_key(options: PoolOptions) -> str:
        return json.dumps(asdict(options), sort_keys=True)

    def _create_client(self, options: PoolOptions) -> httpx.AsyncClient:
        limits = httpx.Limits(
            max_connections=options.max_connections,
            max_keepalive_connections=options.max_keepalive_connections if options.keep_alive else 0,
            keepalive_expiry=options.keepalive_expiry if options.keep_alive else 0,
        )
        kwargs: Dict[str, Any] = {"timeout": httpx.Timeout(options.timeout)}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        else:
            kwargs["limits"] = limits
            kwargs["verify"] = options.verify
            if options.proxy:
                kwargs["proxy"] = options.proxy
        return httpx.AsyncClient(**kwargs)

    def get_client(self, base_url: str, options: Optional[PoolOptions] = None) -> httpx.AsyncClient:
        """Return the pooled client for base_url's host, creating it on first use"""
        scheme, host = self._split(base_url)
        options = options or self.default_options
        key = self._options_key(options)

        client = self._pools[scheme].get(host, {}).get(key)
        if client is not None and not client.is_closed:
            return client

        with self._lock:
            by_options = self._pools[scheme].setdefault(host, {})
            client = by_options.get(key)
            if client is None or client.is_closed:
                client = self._create_client(options)
                by_options[key] = client
                logger.debug("Created pooled HTTP client", scheme=scheme, host=host)
        return client

    async def destroy(self, base_url: str) -> int:
        """Close and evict every client for base_url's host

        Returns:
            Number of clients closed
        """
        scheme, host = self._split(base_url)
        with self._lock:
            clients = list(self._pools[scheme].pop(host, {}).values())

        for client in clients:
            await client.aclose()
        if clients:
            logger.info("Destroyed pooled HTTP clients", scheme=scheme, host=host, count=len(clients))
        return len(clients)

    def _clients(self, scheme: str) -> List[httpx.AsyncClient]:
        return [client for by_options in self._pools[scheme].values() for client in by_options.values()]

    async def destroy_all(self) -> None:
        """Close every pooled client (process shutdown)"""
        with self._lock:
            clients = [client for scheme in self._pools for client in self._clients(scheme)]
            for pool in self._pools.values():
                pool.clear()

        for client in clients:
            await client.aclose()
        logger.info("Destroyed all pooled HTTP clients", count=len(clients))

    @staticmethod
    def _pool_counts(client: httpx.AsyncClient) -> Dict[str, int]:
        transport = getattr(client, "_transport", None)
        pool = getattr(transport, "_pool", None)
        connections = list(getattr(pool, "connections", []) or [])
        requests = list(getattr(pool, "_requests", []) or [])

        idle = 0
        for connection in connections:
            is_idle = getattr(connection, "is_idle", None)
            if callable(is_idle) and is_idle():
                idle += 1
        return {"active": len(connections) - idle, "idle": idle, "queued": len(requests)}

    @property
    def stats(self) -> Dict[str, Dict[str, int]]:
        """Per-pool client/active/idle/queued counts"""
        result: Dict[str, Dict[str, int]] = {}
        with self._lock:
            snapshot = {name: self._clients(name) for name in self._pools}

        for name, clients in snapshot.items():
            totals = {"clients": len(clients), "active": 0, "idle": 0, "queued": 0}
            for client in clients:
                for field_name, count in self._pool_counts(client).items():
                    totals[field_name] += count
            result[name] = totals
        return result
