"""Async DNS lookups for the DNS and email probes.

Thin layer over dnspython's async resolver that hands back records as
plain strings. "The name has no such record" is an empty list; "we could not
ask" (timeout, no reachable nameserver) is an UpstreamError.
"""

import logging
from typing import List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..util.errors import UpstreamError

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ('A', 'AAAA', 'MX', 'TXT', 'CNAME')


def _format_rdata(rdtype: str, rdata) -> str:
    if rdtype == 'MX':
        return f"{rdata.preference} {rdata.exchange.to_text()}"
    if rdtype == 'TXT':
        # Long TXT records arrive as several <=255 byte chunks
        return b''.join(rdata.strings).decode('utf-8', errors='replace')
    if rdtype == 'CNAME':
        return rdata.target.to_text()
    return rdata.to_text()


class DnsResolver:
    """Record lookups with a bounded lifetime per query."""

    def __init__(self, timeout: float = 4.0, nameservers: Optional[List[str]] = None):
        """Initialize resolver with per-query lifetime in seconds."""
        self.timeout = timeout
        self.nameservers = nameservers
        self._resolver: Optional[dns.asyncresolver.Resolver] = None

    def _get_resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            resolver = dns.asyncresolver.Resolver()
            if self.nameservers:
                resolver.nameservers = self.nameservers
            resolver.lifetime = self.timeout
            self._resolver = resolver
        return self._resolver

    async def query(self, name: str, rdtype: str) -> List[str]:
        """Resolve one record type for a name.

        Returns:
            List of records as strings (empty if the name has none)

        Raises:
            UpstreamError: if the lookup itself failed
        """
        rdtype = rdtype.upper()
        if rdtype not in SUPPORTED_TYPES:
            raise ValueError(f"Unsupported record type {rdtype!r}")

        try:
            answer = await self._get_resolver().resolve(name, rdtype)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            logger.debug(f"No {rdtype} records for {name}")
            return []
        except dns.exception.Timeout as e:
            raise UpstreamError(f"DNS {rdtype} lookup for {name} timed out") from e
        except dns.exception.DNSException as e:
            raise UpstreamError(f"DNS {rdtype} lookup for {name} failed: {e}") from e

        return [_format_rdata(rdtype, rdata) for rdata in answer]

    async def txt(self, name: str) -> List[str]:
        return await self.query(name, 'TXT')
