"""Exception types raised by the scanner.

Probe failures never escape a batch - the orchestrator turns them into
error-status results. These types cover everything else.
"""

from typing import Optional


class ScannerError(Exception):
    """Base class for all scanner errors."""


class InvalidDomainError(ScannerError, ValueError):
    """Target is not a hostname we are willing to put in an outbound request."""

    def __init__(self, domain: str, reason: str):
        self.domain = domain
        self.reason = reason
        super().__init__(f"Invalid domain {domain!r}: {reason}")


class UpstreamError(ScannerError):
    """A required upstream service answered with a non-2xx status or garbage."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(message)


class ProbeNotFoundError(ScannerError, LookupError):
    """run_one() was asked for an id that is not in the registry."""

    def __init__(self, probe_id: str):
        self.probe_id = probe_id
        super().__init__(f"Probe not found: {probe_id}")


class RegistryError(ScannerError):
    """The probe registry is malformed (e.g. duplicate ids)."""


class RateLimitedError(ScannerError):
    """The gate refused to start a new batch."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(f"Rate limit exceeded - wait {retry_after_seconds} seconds before scanning again")
