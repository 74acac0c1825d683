"""Domain normalization and validation.

Two different jobs live here:

1. normalize_domain() - the cheap canonical form the orchestrator and the
   cache use as a key: trimmed and lower-cased, nothing else. It never fails.

2. validate_hostname() - the strict gate every probe runs before putting the
   target into an outbound request. Anything that could change the meaning of
   a URL (path separators, whitespace, credentials, ports, query strings) is
   rejected outright rather than stripped, so "evil.com/@internal" never turns
   into a request against something we didn't intend.

Internationalized names are converted to Punycode, since DNS and the upstream
services only understand the ASCII form:
    "münchen.example.com" -> "xn--mnchen-3ya.example.com"

REFERENCES:
- RFC 1035: DNS name format rules
- RFC 3492: Punycode (IDN encoding)
"""

import logging
import re

from ..util.errors import InvalidDomainError

logger = logging.getLogger(__name__)

# Characters that must never reach a URL we build from the target
_FORBIDDEN_CHARS = set('/\\@:?#%&=+[]{}<>"\'`|^,;')

_LABEL_RE = re.compile(r'^[a-z0-9_-]+$')


def normalize_domain(domain: str) -> str:
    """Trim and lower-case a raw domain string."""
    return (domain or '').strip().lower()


def validate_hostname(domain: str) -> str:
    """Validate a target hostname before it is used in any outbound request.

    Args:
        domain: Raw or normalized domain

    Returns:
        The canonical ASCII hostname (lower-case, Punycode, no trailing dot)

    Raises:
        InvalidDomainError: if the value is not a plain DNS hostname

    Examples:
        validate_hostname(" Example.COM. ") -> "example.com"
        validate_hostname("example.com/admin") -> InvalidDomainError
        validate_hostname("user@example.com") -> InvalidDomainError
    """
    if not isinstance(domain, str):
        raise InvalidDomainError(str(domain), "not a string")

    host = normalize_domain(domain)
    if not host:
        raise InvalidDomainError(domain, "empty")

    if any(ch.isspace() for ch in host):
        raise InvalidDomainError(domain, "contains whitespace")

    bad = sorted(ch for ch in set(host) if ch in _FORBIDDEN_CHARS)
    if bad:
        raise InvalidDomainError(domain, f"contains forbidden characters {''.join(bad)!r}")

    # Trailing root dot is legal DNS, but not part of the canonical form
    host = host[:-1] if host.endswith('.') else host

    if '' in host.split('.'):
        raise InvalidDomainError(domain, "contains an empty label")

    try:
        host = host.encode('idna').decode('ascii')
    except UnicodeError:
        raise InvalidDomainError(domain, "not a valid internationalized name")

    if len(host) > 253:
        raise InvalidDomainError(domain, "longer than 253 characters")

    labels = host.split('.')
    if len(labels) < 2:
        raise InvalidDomainError(domain, "needs at least two labels")

    for label in labels:
        if not 1 <= len(label) <= 63:
            raise InvalidDomainError(domain, "label length must be 1-63 characters")
        if label.startswith('-') or label.endswith('-'):
            raise InvalidDomainError(domain, f"label {label!r} starts or ends with a hyphen")
        if not _LABEL_RE.match(label):
            raise InvalidDomainError(domain, f"label {label!r} has invalid characters")

    return host


def is_valid_hostname(domain: str) -> bool:
    """Boolean form of validate_hostname()."""
    try:
        validate_hostname(domain)
    except InvalidDomainError as e:
        logger.debug(str(e))
        return False
    return True


def top_level_domain(hostname: str) -> str:
    """Last label of an already-validated hostname."""
    return hostname.rsplit('.', 1)[-1]
