"""Runtime resources shared by every outbound call"""

from starepo_gateway.runtime.connection_manager import ConnectionManager, PoolOptions

__all__ = ["ConnectionManager", "PoolOptions"]
