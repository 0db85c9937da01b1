"""Per-organization TTL cache for generated insight sets.

Usage:
    registry = CacheRegistry()
    cache = registry.create("org_1", ttl=3600, max_entries=1000)

    key = fingerprint("org_1", options.fingerprint_payload())
    cached = cache.get(key)
    if cached is None:
        result = await cache.deduplicate(key, lambda: produce(options))
        cache.set(key, result, tags={"org_1", "insights", "revenue"})

    # after a sync job lands new revenue data
    registry.invalidate("org_1", ["data_update"])
"""
import asyncio
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional

from growth_insights.utils.exceptions import CacheError
from growth_insights.utils.helpers import hash_data
from growth_insights.utils.logger import log

# Which entry tags each invalidation trigger clears.
# Triggers not listed here clear entries tagged with the trigger itself.
DATA_TAGS = frozenset({"revenue", "orders", "customers", "sessions", "conversions", "traffic"})
INTEGRATION_TAGS = frozenset({"channel", "integration", "performance"})
_TRIGGER_TAGS: dict[str, FrozenSet[str]] = {
    "data_update": DATA_TAGS,
    "settings_change": frozenset({"business_context"}),
    "new_integration": INTEGRATION_TAGS,
}


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float
    tags: FrozenSet[str]


def fingerprint(organization_id: str, payload: Dict[str, Any]) -> str:
    """Stable cache key for one generation request"""
    return f"insights:{organization_id}:{hash_data(payload)}"


class CacheManager:
    """Thread-safe TTL cache owned by one organization."""

    def __init__(
        self,
        organization_id: str,
        default_ttl: int = 3600,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.time,
    ):
        self.organization_id = organization_id
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, asyncio.Future] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._store[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise CacheError(f"Cache TTL must be positive, got {ttl}")

        now = self._clock()
        with self._lock:
            self._store[key] = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + ttl,
                tags=frozenset(tags),
            )
            self._evict_oldest()

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def invalidate(self, organization_id: str, triggers: Iterable[str]) -> int:
        """Remove entries matching any trigger. Returns count removed."""
        triggers = set(triggers)
        if organization_id != self.organization_id and "global" not in triggers:
            return 0

        with self._lock:
            if "global" in triggers:
                removed = len(self._store)
                self._store.clear()
            else:
                keys = [
                    k for k, entry in self._store.items()
                    if any(self._matches(trigger, entry.tags) for trigger in triggers)
                ]
                for k in keys:
                    del self._store[k]
                removed = len(keys)

        if removed:
            log.info(f"Invalidated {removed} cache entries for {self.organization_id} ({', '.join(sorted(triggers))})")
        return removed

    def enforce_max_size(self) -> int:
        """Evict oldest entries until within max_entries. Returns count evicted."""
        with self._lock:
            return self._evict_oldest()

    def sweep_expired(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, entry in self._store.items() if now >= entry.expires_at]
            for k in expired:
                del self._store[k]
        if expired:
            log.debug(f"Swept {len(expired)} expired cache entries for {self.organization_id}")
        return len(expired)

    async def deduplicate(self, key: str, producer: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run producer once for concurrent callers with the same key

        Every caller awaits the same task; the key is released as soon as the
        task finishes, whether it succeeded or failed.
        """
        with self._lock:
            task = self._in_flight.get(key)
            if task is None:
                task = asyncio.ensure_future(producer())
                self._in_flight[key] = task
                task.add_done_callback(lambda done, k=key: self._release(k, done))
            else:
                log.debug(f"Joining in-flight generation for {key}")

        # A cancelled waiter must not cancel the shared task
        return await asyncio.shield(task)

    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def cancel_in_flight(self) -> int:
        """Cancel every shared producer task. Returns count cancelled."""
        with self._lock:
            tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            log.debug(f"Cancelled {len(tasks)} in-flight generations for {self.organization_id}")
        return len(tasks)

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            created = [entry.created_at for entry in self._store.values()]
            lookups = self._hits + self._misses
            return {
                "organization_id": self.organization_id,
                "size": len(self._store),
                "max_size": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
                "oldest_entry": datetime.fromtimestamp(min(created), timezone.utc).isoformat() if created else None,
                "newest_entry": datetime.fromtimestamp(max(created), timezone.utc).isoformat() if created else None,
            }

    def _release(self, key: str, task: asyncio.Future) -> None:
        with self._lock:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

    def _evict_oldest(self) -> int:
        """Caller holds the lock"""
        evicted = 0
        while len(self._store) > self.max_entries:
            oldest_key = min(self._store, key=lambda k: self._store[k].created_at)
            del self._store[oldest_key]
            evicted += 1
        return evicted

    def _matches(self, trigger: str, tags: FrozenSet[str]) -> bool:
        if trigger == "manual_refresh":
            return self.organization_id in tags
        trigger_tags = _TRIGGER_TAGS.get(trigger)
        if trigger_tags is None:
            return trigger in tags
        return bool(tags & trigger_tags)


class CacheRegistry:
    """Owns one CacheManager per organization. Nothing is created implicitly."""

    def __init__(self, default_ttl: int = 3600, max_entries: int = 1000):
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._caches: dict[str, CacheManager] = {}
        self._lock = threading.Lock()

    def create(
        self,
        organization_id: str,
        ttl: Optional[int] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> CacheManager:
        """Create the organization's cache, or return it if it already exists"""
        with self._lock:
            cache = self._caches.get(organization_id)
            if cache is None:
                cache = CacheManager(
                    organization_id,
                    default_ttl=ttl or self.default_ttl,
                    max_entries=max_entries or self.max_entries,
                    clock=clock,
                )
                self._caches[organization_id] = cache
                log.debug(f"Created insight cache for {organization_id}")
            return cache

    def get(self, organization_id: str) -> Optional[CacheManager]:
        with self._lock:
            return self._caches.get(organization_id)

    def destroy(self, organization_id: str) -> bool:
        with self._lock:
            cache = self._caches.pop(organization_id, None)
        if cache is None:
            return False
        cache.clear()
        log.debug(f"Destroyed insight cache for {organization_id}")
        return True

    def organizations(self) -> list[str]:
        with self._lock:
            return sorted(self._caches)

    def invalidate(self, organization_id: str, triggers: Iterable[str]) -> int:
        """Invalidate one organization; "global" fans out to every organization"""
        triggers = list(triggers)
        with self._lock:
            if "global" in triggers:
                caches = list(self._caches.values())
            else:
                cache = self._caches.get(organization_id)
                caches = [cache] if cache else []
        return sum(cache.invalidate(organization_id, triggers) for cache in caches)

    def sweep_expired(self) -> int:
        with self._lock:
            caches = list(self._caches.values())
        removed = sum(cache.sweep_expired() for cache in caches)
        if removed:
            log.info(f"Cache sweep removed {removed} expired entries across {len(caches)} organizations")
        return removed
