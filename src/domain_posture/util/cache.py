"""TTL cache for scan aggregates.

Holds the most recent aggregate per normalized domain. Optionally mirrors
entries to JSON files under cache_dir so a restart doesn't throw away
fresh results. There is no history - a new set() overwrites the old entry.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .io import ensure_dir, read_json, write_json
from .time import now_utc
from .types import ScanAggregate

logger = logging.getLogger(__name__)


def cache_key(domain: str) -> str:
    """Cache entries are keyed by the trimmed, lower-cased domain."""
    return domain.strip().lower()


class ScanCache:
    """Aggregate cache with TTL support.

    Memory is the source of truth; the JSON files are only consulted on a
    memory miss (e.g. after a restart).
    """

    def __init__(self,
                 ttl_seconds: int = 900,
                 cache_dir: Optional[Path] = None,
                 clock: Callable[[], datetime] = now_utc):
        """Initialize cache with TTL and optional on-disk directory."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = timedelta(seconds=ttl_seconds)
        self.cache_dir = ensure_dir(cache_dir) if cache_dir else None
        self._clock = clock
        self._entries: Dict[str, Tuple[datetime, ScanAggregate]] = {}

    def _cache_file(self, key: str) -> Path:
        """Generate cache file path for a given key."""
        # Simple sanitization - replace unsafe chars
        safe_key = key.replace("/", "_").replace(":", "_").replace("?", "_").replace("\\", "_")
        return self.cache_dir / f"{safe_key}.json"

    def _expired(self, stored_at: datetime) -> bool:
        return self._clock() - stored_at > self.ttl

    def get(self, domain: str) -> Optional[ScanAggregate]:
        """Return the cached aggregate if present and unexpired, else None."""
        key = cache_key(domain)

        entry = self._entries.get(key)
        if entry is None and self.cache_dir is not None:
            entry = self._load(key)
            if entry is not None:
                self._entries[key] = entry

        if entry is None:
            return None

        stored_at, aggregate = entry
        if self._expired(stored_at):
            logger.debug(f"Cache entry for {key} expired")
            self.invalidate(key)
            return None

        return aggregate

    def set(self, domain: str, aggregate: ScanAggregate) -> None:
        """Store (or overwrite) the aggregate for a domain, refreshing its TTL."""
        key = cache_key(domain)
        stored_at = self._clock()
        self._entries[key] = (stored_at, aggregate)

        if self.cache_dir is not None:
            write_json(self._cache_file(key), {
                'timestamp': stored_at.isoformat(),
                'data': aggregate.to_dict(),
            })

    def invalidate(self, domain: str) -> None:
        """Drop a single entry from memory and disk."""
        key = cache_key(domain)
        self._entries.pop(key, None)
        if self.cache_dir is not None:
            self._cache_file(key).unlink(missing_ok=True)

    def clear(self) -> int:
        """Clear all entries. Returns number of entries dropped."""
        count = len(self._entries)
        self._entries.clear()
        if self.cache_dir is not None:
            files = list(self.cache_dir.glob("*.json"))
            for cache_file in files:
                cache_file.unlink(missing_ok=True)
            count = max(count, len(files))
        return count

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        valid = sum(1 for stored_at, _ in self._entries.values() if not self._expired(stored_at))
        return {
            'entries': len(self._entries),
            'valid': valid,
            'expired': len(self._entries) - valid,
            'cache_dir': str(self.cache_dir) if self.cache_dir else None,
        }

    def _load(self, key: str) -> Optional[Tuple[datetime, ScanAggregate]]:
        cache_file = self._cache_file(key)
        cached = read_json(cache_file)
        if cached is None:
            return None

        try:
            stored_at = datetime.fromisoformat(cached['timestamp'])
            aggregate = ScanAggregate.from_dict(cached['data'])
        except (KeyError, TypeError, ValueError) as e:
            # Corrupted cache file - delete it
            logger.warning(f"Discarding corrupt cache file {cache_file}: {e}")
            cache_file.unlink(missing_ok=True)
            return None

        return stored_at, aggregate
