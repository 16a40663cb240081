"""DNS resolver for reverse hostname lookup.

Caching is not done here; see ``flowrelay.enrichment.cache.DNSCache``.
"""

import asyncio
from contextlib import AbstractAsyncContextManager, nullcontext
from typing import Protocol

import dns.asyncresolver
import dns.exception
import dns.resolver
import dns.reversename

from flowrelay.common.config import DNSSettings, get_settings
from flowrelay.common.exceptions import DNSResolutionError
from flowrelay.common.logging import get_logger
from flowrelay.common.metrics import DNS_LOOKUPS

logger = get_logger(__name__)


class HostnameResolver(Protocol):
    """Anything that maps an IP string to a hostname."""

    async def resolve(self, ip: str) -> str:
        """Return the hostname for ``ip`` or raise ``DNSResolutionError``."""
        ...


class PTRResolver:
    """Async reverse DNS resolver.

    Performs PTR lookups and returns the first answer as the resolver
    delivers it, fully qualified with its trailing dot.
    """

    def __init__(self, settings: DNSSettings | None = None) -> None:
        """Initialize DNS resolver.

        Args:
            settings: DNS settings. Uses global settings if not provided.
        """
        if settings is None:
            settings = get_settings().dns

        self._resolver = dns.asyncresolver.Resolver()
        self._resolver.timeout = settings.timeout
        self._resolver.lifetime = settings.timeout * 2

        if settings.servers:
            self._resolver.nameservers = settings.servers

        self._semaphore: asyncio.Semaphore | None = None
        if settings.max_concurrent_lookups > 0:
            self._semaphore = asyncio.Semaphore(settings.max_concurrent_lookups)

    def _slot(self) -> AbstractAsyncContextManager:
        if self._semaphore is None:
            return nullcontext()
        return self._semaphore

    async def resolve(self, ip: str) -> str:
        """Resolve IP address to hostname.

        Args:
            ip: IP address string.

        Returns:
            First PTR target.

        Raises:
            DNSResolutionError: If no name could be found.
        """
        try:
            rev_name = dns.reversename.from_address(ip)
        except (dns.exception.SyntaxError, ValueError) as e:
            DNS_LOOKUPS.labels(status="invalid").inc()
            raise DNSResolutionError(f"invalid address {ip!r}", cause=e) from e

        try:
            async with self._slot():
                answers = await self._resolver.resolve(rev_name, "PTR")
        except dns.resolver.NXDOMAIN as e:
            DNS_LOOKUPS.labels(status="nxdomain").inc()
            raise DNSResolutionError(f"no PTR record for {ip}", cause=e) from e
        except dns.resolver.NoAnswer as e:
            DNS_LOOKUPS.labels(status="noanswer").inc()
            raise DNSResolutionError(f"no PTR answer for {ip}", cause=e) from e
        except dns.exception.Timeout as e:
            DNS_LOOKUPS.labels(status="timeout").inc()
            raise DNSResolutionError(f"PTR lookup for {ip} timed out", cause=e) from e
        except dns.exception.DNSException as e:
            DNS_LOOKUPS.labels(status="error").inc()
            logger.debug("DNS error", ip=ip, error=str(e))
            raise DNSResolutionError(f"PTR lookup for {ip} failed", cause=e) from e

        if not answers:
            DNS_LOOKUPS.labels(status="noanswer").inc()
            raise DNSResolutionError(f"no PTR answer for {ip}")

        DNS_LOOKUPS.labels(status="success").inc()
        return str(answers[0])
