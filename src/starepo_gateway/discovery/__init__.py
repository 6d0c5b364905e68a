"""Model discovery with persisted caching and fallback"""

from starepo_gateway.discovery.cache import ModelCacheEntry, ModelCacheStorage
from starepo_gateway.discovery.service import (
    ConnectionTestResult,
    ModelDiscoveryService,
    ModelListResponse,
    compute_account_hash,
)

__all__ = [
    "ConnectionTestResult",
    "ModelCacheEntry",
    "ModelCacheStorage",
    "ModelDiscoveryService",
    "ModelListResponse",
    "compute_account_hash",
]
