"""Probe registry - the static, ordered battery of checks.

Registry order is report order. Ids are checked for uniqueness once, here,
and the registry is read-only afterwards.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

from ..util.config import Config
from ..util.errors import ProbeNotFoundError, RegistryError
from .probes import (CertificateProbe, DNSProbe, EmailAuthProbe, Probe,
                     RDAPProbe, SecurityHeadersProbe)
from .resolver import DnsResolver
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


class ProbeRegistry(Sequence[Probe]):
    """Immutable, ordered collection of probes with unique ids."""

    def __init__(self, probes: Iterable[Probe]):
        probes = tuple(probes)
        seen = set()
        for probe in probes:
            if not getattr(probe, 'id', None):
                raise RegistryError(f"Probe {probe!r} has no id")
            if not callable(getattr(probe, 'run', None)):
                raise RegistryError(f"Probe {probe.id!r} has no run()")
            if probe.id in seen:
                raise RegistryError(f"Duplicate probe id: {probe.id!r}")
            seen.add(probe.id)
        self._probes: Tuple[Probe, ...] = probes

    def __getitem__(self, index):
        return self._probes[index]

    def __len__(self) -> int:
        return len(self._probes)

    def get(self, probe_id: str) -> Probe:
        for probe in self._probes:
            if probe.id == probe_id:
                return probe
        raise ProbeNotFoundError(probe_id)

    def ids(self) -> Tuple[str, ...]:
        return tuple(p.id for p in self._probes)

    def describe(self) -> list:
        """List of {id, label, description, data_source, timeout_ms} in order."""
        return [p.describe() for p in self._probes]


def build_default_registry(config: Optional[Config] = None,
                           client: Optional[UpstreamClient] = None,
                           resolver: Optional[DnsResolver] = None) -> ProbeRegistry:
    """Assemble the standard five-probe battery.

    The HTTP client and resolver are shared by the probes that need them.
    Callers own the client and should close() it when done.
    """
    config = config or Config()
    client = client or UpstreamClient(timeout=config.http_timeout, user_agent=config.user_agent)
    resolver = resolver or DnsResolver(timeout=config.dns_timeout)

    registry = ProbeRegistry([
        DNSProbe(resolver),
        EmailAuthProbe(resolver),
        CertificateProbe(client),
        RDAPProbe(client),
        SecurityHeadersProbe(client),
    ])
    logger.debug(f"Probe registry: {', '.join(registry.ids())}")
    return registry
