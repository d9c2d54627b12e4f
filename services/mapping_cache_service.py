"""
Temporary storage for column mappings.

Remembers the last mapping used for a given header row so the next upload
of the same supplier file is pre-mapped. In memory with TTL expiration.
Single-server only.
"""
import hashlib
from datetime import datetime, timedelta
from typing import Optional, Protocol

import structlog

from config import settings
from utils.text_utils import normalize_header

logger = structlog.get_logger(__name__)


class MappingCache(Protocol):
    """Stores column mappings keyed by header row."""

    def load(self, headers: list[str]) -> Optional[dict[int, str]]:
        ...

    def save(self, headers: list[str], mapping: dict[int, str]) -> None:
        ...


def headers_fingerprint(headers: list[str]) -> str:
    """Stable key for a header row; ignores case, accents and punctuation."""
    normalized = "|".join(normalize_header(h) for h in headers)
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


class InMemoryMappingCache:
    """Column mappings in a dict, expiring after ttl_minutes."""

    def __init__(self, ttl_minutes: Optional[int] = None):
        self.ttl_minutes = ttl_minutes or settings.mapping_cache_ttl_minutes
        self._cache: dict[str, tuple[datetime, dict[int, str]]] = {}

    def save(self, headers: list[str], mapping: dict[int, str]) -> None:
        """Store a mapping for this header row."""
        key = headers_fingerprint(headers)
        expires_at = datetime.now() + timedelta(minutes=self.ttl_minutes)
        self._cache[key] = (expires_at, dict(mapping))
        self._cleanup_expired()
        logger.debug("mapping_cached", fingerprint=key[:12], columns=len(mapping))

    def load(self, headers: list[str]) -> Optional[dict[int, str]]:
        """Mapping for this header row. Returns None if expired/not found."""
        key = headers_fingerprint(headers)
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, mapping = entry
        if datetime.now() > expires_at:
            del self._cache[key]
            return None
        return dict(mapping)

    def clear(self) -> None:
        self._cache.clear()

    def _cleanup_expired(self) -> None:
        """Remove all expired entries."""
        now = datetime.now()
        expired = [k for k, (exp, _) in self._cache.items() if now > exp]
        for k in expired:
            del self._cache[k]


# Singleton instance
_mapping_cache: Optional[InMemoryMappingCache] = None


def get_mapping_cache() -> InMemoryMappingCache:
    """Get or create the process-wide mapping cache."""
    global _mapping_cache
    if _mapping_cache is None:
        _mapping_cache = InMemoryMappingCache()
    return _mapping_cache
