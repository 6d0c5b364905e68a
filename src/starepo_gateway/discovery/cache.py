"""
Model Cache Storage

In-memory map of discovered model lists, mirrored to one JSON file. The map
is the source of truth for reads; every mutation rewrites the whole file
through a single lock so concurrent writers never interleave.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field, ValidationError

from starepo_gateway.providers.base import AIModel

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

DEFAULT_TTL_SECONDS = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModelCacheEntry(BaseModel):
    """Model list cached for one (provider id, account hash) key"""

    provider_id: str
    account_hash: str
    models: List[AIModel] = Field(default_factory=list)
    fetched_at: datetime
    expires_at: datetime
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def ttl_remaining(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))


class ModelCacheStorage:
    """Persisted cache of model lists"""

    def __init__(self, cache_file: Path, clock: Optional[Clock] = None):
        self.cache_file = Path(cache_file)
        self._clock = clock or utcnow
        self._entries: Dict[Tuple[str, str], ModelCacheEntry] = {}
        self._write_lock = asyncio.Lock()

    def now(self) -> datetime:
        return self._clock()

    async def load(self) -> None:
        """Load the cache file; expired entries are kept as stale fallbacks"""
        try:
            raw = await asyncio.to_thread(self.cache_file.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No model cache file yet", path=str(self.cache_file))
            return
        except OSError as e:
            logger.warning("Failed to read model cache", path=str(self.cache_file), error=str(e))
            return

        try:
            items = json.loads(raw)
            entries = [ModelCacheEntry.model_validate(item) for item in items]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.warning("Ignoring corrupt model cache", path=str(self.cache_file), error=str(e))
            return

        self._entries = {(entry.provider_id, entry.account_hash): entry for entry in entries}
        logger.info("Loaded model cache", path=str(self.cache_file), entries=len(self._entries))

    def get(self, provider_id: str, account_hash: str, include_expired: bool = False) -> Optional[ModelCacheEntry]:
        """Cached entry for the key, or None if absent (or expired unless include_expired)"""
        entry = self._entries.get((provider_id, account_hash))
        if entry is None:
            return None
        if not include_expired and entry.is_expired(self.now()):
            return None
        return entry

    async def set(
        self,
        provider_id: str,
        account_hash: str,
        models: List[AIModel],
        ttl: int = DEFAULT_TTL_SECONDS,
        etag: Optional[str] = None,
        last_modified: Optional[str] = None,
    ) -> ModelCacheEntry:
        """Store models under the key, superseding any earlier entry"""
        fetched_at = self.now()
        entry = ModelCacheEntry(
            provider_id=provider_id,
            account_hash=account_hash,
            models=list(models),
            fetched_at=fetched_at,
            expires_at=fetched_at + timedelta(seconds=ttl),
            etag=etag,
            last_modified=last_modified,
        )
        self._entries[(provider_id, account_hash)] = entry
        await self._persist()
        return entry

    async def clear(self, provider_id: Optional[str] = None) -> int:
        """Remove all entries, or only those of one provider

        Returns:
            Number of entries removed
        """
        if provider_id is None:
            removed = len(self._entries)
            self._entries = {}
        else:
            keys = [key for key in self._entries if key[0] == provider_id]
            for key in keys:
                del self._entries[key]
            removed = len(keys)

        await self._persist()
        logger.info("Cleared model cache", provider=provider_id, removed=removed)
        return removed

    def entries(self) -> List[ModelCacheEntry]:
        return list(self._entries.values())

    @property
    def size(self) -> int:
        return len(self._entries)

    async def _persist(self) -> None:
        async with self._write_lock:
            payload = json.dumps(
                [entry.model_dump(mode="json") for entry in self._entries.values()],
                indent=2,
            )
            try:
                await asyncio.to_thread(self._write_atomic, payload)
            except OSError as e:
                # in-memory map stays authoritative; next mutation retries the write
                logger.error("Failed to persist model cache", path=str(self.cache_file), error=str(e))

    def _write_atomic(self, payload: str) -> None:
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.cache_file.parent, prefix=".models-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.cache_file)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
