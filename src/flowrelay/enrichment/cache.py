"""TTL cache of reverse DNS results.

Entries are refreshed lazily when they are found expired and are
never evicted otherwise.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from flowrelay.common.exceptions import DNSResolutionError
from flowrelay.common.logging import get_logger
from flowrelay.common.metrics import DNS_CACHE_HITS, DNS_CACHE_SIZE
from flowrelay.enrichment.resolvers.dns import HostnameResolver

logger = get_logger(__name__)

DEFAULT_TTL = 24 * 60 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DNSCacheEntry:
    """Cache entry with absolute expiry."""

    hostname: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Check if entry has expired at ``now``."""
        return now >= self.expires_at


class DNSCache:
    """Hostname cache keyed by IP string.

    The lock covers the map read and the map write, never the lookup
    in between. Two tasks missing on the same address at the same
    time both resolve it; the later write wins.
    """

    def __init__(
        self,
        resolver: HostnameResolver,
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize DNS cache.

        Args:
            resolver: Resolver used on a miss.
            ttl: Entry lifetime in seconds.
            clock: Returns the current time, timezone-aware.
        """
        self._resolver = resolver
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._entries: dict[str, DNSCacheEntry] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0
        self._failures = 0

    async def get(self, ip: str) -> str:
        """Get hostname for ``ip``, resolving on a miss.

        A failed lookup caches and returns ``ip`` itself, whatever the
        resolver raised.
        """
        async with self._lock:
            entry = self._entries.get(ip)

        if entry is not None and not entry.is_expired(self._clock()):
            self._hits += 1
            DNS_CACHE_HITS.inc()
            return entry.hostname

        self._misses += 1
        try:
            hostname = await self._resolver.resolve(ip)
        except DNSResolutionError as e:
            self._failures += 1
            logger.debug("Reverse lookup failed", ip=ip, error=e.message)
            hostname = ip
        except Exception as e:
            self._failures += 1
            logger.warning(
                "Resolver error, using address as hostname",
                ip=ip,
                error=str(e),
                error_type=type(e).__name__,
            )
            hostname = ip

        async with self._lock:
            self._entries[ip] = DNSCacheEntry(
                hostname=hostname,
                expires_at=self._clock() + self._ttl,
            )
            DNS_CACHE_SIZE.set(len(self._entries))

        return hostname

    def peek(self, ip: str) -> DNSCacheEntry | None:
        """Return the stored entry for ``ip`` without resolving."""
        return self._entries.get(ip)

    @property
    def size(self) -> int:
        """Get current cache size."""
        return len(self._entries)

    @property
    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0.0

        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "failures": self._failures,
            "hit_rate": round(hit_rate, 2),
        }
