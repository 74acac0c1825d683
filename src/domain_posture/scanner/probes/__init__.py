"""The fixed battery of posture probes."""

from .base import Probe
from .certificate_probe import CertificateProbe
from .dns_probe import DNSProbe
from .email_probe import EmailAuthProbe
from .headers_probe import SecurityHeadersProbe
from .rdap_probe import RDAPProbe

__all__ = [
    'Probe',
    'DNSProbe',
    'EmailAuthProbe',
    'CertificateProbe',
    'RDAPProbe',
    'SecurityHeadersProbe',
]
