"""Probe contract.

A probe is one independent check against a domain. It knows how to talk to
its upstream and how to summarize what it found - nothing about timeouts,
progress, or other probes. The orchestrator handles all of that.

Rules every probe follows:
  - "No data" is a successful outcome with an informational issue, never
    an exception.
  - Exceptions mean the check could not be completed (network failure,
    malformed upstream answer, non-2xx from a required service).
  - The target is validated with validate_hostname() before it goes into
    any outbound request.
"""

from typing import List, Optional

from ...util.types import DataSource, ProbeOutcome


class Probe:
    """Base class for all probes.

    Subclasses set the class attributes and implement run().
    """

    id: str = ''
    label: str = ''
    description: str = ''
    # None means "use the orchestrator's default"
    timeout_ms: Optional[int] = None
    data_source: Optional[DataSource] = None

    async def run(self, domain: str) -> ProbeOutcome:
        raise NotImplementedError

    def derive_issues(self, outcome: ProbeOutcome, domain: str) -> Optional[List[str]]:
        """Build an issue list from outcome.data when run() left issues unset."""
        return None

    def describe(self) -> dict:
        """Registry entry for progress displays built before any scan starts."""
        return {
            'id': self.id,
            'label': self.label,
            'description': self.description,
            'timeout_ms': self.timeout_ms,
            'data_source': self.data_source.to_dict() if self.data_source else None,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"
