"""Certificate probe - what Certificate Transparency logs say about the domain.

Queries crt.sh for every logged certificate, de-duplicates the rows, keeps the
most recent unexpired certificate per common name, and looks for:
  - certificates expiring within 7 days (issue) or 30 days (warning)
  - self-signed certificates
  - wildcard certificates
  - an unusually large number of active certificates
  - certificates that expired in the last 30 days with no replacement
  - many different issuing authorities
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List

from ...util.errors import UpstreamError
from ...util.time import days_between, now_utc, parse_iso
from ...util.types import DataSource, ProbeOutcome
from ..messages import translate as t
from ..normalization import validate_hostname
from ..upstream import UpstreamClient
from .base import Probe

logger = logging.getLogger(__name__)

CRTSH_URL = 'https://crt.sh/'

CRITICAL_EXPIRY_DAYS = 7
WARNING_EXPIRY_DAYS = 30
RECENT_EXPIRY_DAYS = 30
MAX_ACTIVE_CERTS = 10
MAX_ISSUERS = 3


@dataclass
class CertInfo:
    """One certificate as far as the analysis cares."""
    common_name: str
    issuer: str
    not_before: datetime
    not_after: datetime
    days_until_expiry: int

    @property
    def issuer_common_name(self) -> str:
        for part in self.issuer.split(','):
            key, _, value = part.strip().partition('=')
            if key.upper() == 'CN':
                return value.strip()
        return self.issuer

    @property
    def is_self_signed(self) -> bool:
        return 'self-signed' in self.issuer.lower() or self.common_name == self.issuer_common_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            'common_name': self.common_name,
            'issuer': self.issuer,
            'not_before': self.not_before.isoformat(),
            'not_after': self.not_after.isoformat(),
            'days_until_expiry': self.days_until_expiry,
        }


def dedupe_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """crt.sh lists precertificate and leaf entries separately - collapse them."""
    seen = set()
    unique = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        key = (
            row.get('common_name'), row.get('issuer_name'),
            row.get('not_before'), row.get('not_after'), row.get('name_value'),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique


def parse_certificates(rows: List[Dict[str, Any]], now: datetime) -> List[CertInfo]:
    """Rows without parseable validity dates are skipped."""
    certs = []
    for row in rows:
        not_before = parse_iso(row.get('not_before'))
        not_after = parse_iso(row.get('not_after'))
        if not_before is None or not_after is None:
            logger.debug(f"Skipping crt.sh row {row.get('id')} with unparseable dates")
            continue
        certs.append(CertInfo(
            common_name=row.get('common_name') or row.get('name_value') or 'Unknown',
            issuer=row.get('issuer_name') or 'Unknown',
            not_before=not_before,
            not_after=not_after,
            days_until_expiry=days_between(now, not_after),
        ))
    return certs


def analyze_certificates(certs: List[CertInfo], now: datetime) -> Dict[str, Any]:
    """Run the analyses over parsed certificates.

    Returns a dict with 'issues' (issues first, then warnings) and the
    counters the interpretation layer reads back.
    """
    issues: List[str] = []
    warnings: List[str] = []

    expired = [c for c in certs if c.not_after < now]

    # Most recent unexpired certificate per common name
    active_by_name: Dict[str, CertInfo] = {}
    for cert in sorted((c for c in certs if c.not_after >= now),
                       key=lambda c: c.not_before, reverse=True):
        active_by_name.setdefault(cert.common_name, cert)
    active = list(active_by_name.values())

    expiring_7 = [c for c in active if c.days_until_expiry <= CRITICAL_EXPIRY_DAYS]
    expiring_30 = [c for c in active if c.days_until_expiry <= WARNING_EXPIRY_DAYS]

    if expiring_7:
        for cert in expiring_7:
            issues.append(t('certificates.issues.expiring7Days',
                            commonName=cert.common_name, days=cert.days_until_expiry))
    elif expiring_30:
        for cert in expiring_30:
            warnings.append(t('certificates.issues.expiring30Days',
                              commonName=cert.common_name, days=cert.days_until_expiry))

    self_signed = [c for c in active if c.is_self_signed]
    if self_signed:
        issues.append(t('certificates.issues.selfSigned', count=len(self_signed)))

    wildcards = [c for c in active if c.common_name.startswith('*.')]
    if wildcards:
        warnings.append(t('certificates.issues.wildcard', count=len(wildcards)))

    if len(active) > MAX_ACTIVE_CERTS:
        warnings.append(t('certificates.issues.excessive', count=len(active)))

    # Only recently expired names that have no active replacement
    active_names = set(active_by_name)
    orphaned = [
        c for c in expired
        if days_between(c.not_after, now) <= RECENT_EXPIRY_DAYS and c.common_name not in active_names
    ]
    if orphaned:
        names = ', '.join(c.common_name for c in orphaned)
        warnings.append(t('certificates.issues.recentExpired', count=len(orphaned), names=names))

    issuers = []
    for cert in active:
        if cert.issuer not in issuers:
            issuers.append(cert.issuer)
    if len(issuers) > MAX_ISSUERS:
        warnings.append(t('certificates.issues.manyIssuers', count=len(issuers)))

    return {
        'issues': issues + warnings,
        'active': active,
        'expired': expired,
        'expiring_in_7_days': len(expiring_7),
        'expiring_in_30_days': len(expiring_30),
        'wildcard_count': len(wildcards),
        'unique_issuers': issuers,
        'expired_without_replacement': [c.common_name for c in orphaned],
    }


class CertificateProbe(Probe):
    """Inspects certificates logged for the domain in crt.sh."""

    id = 'certificates'
    label = 'certificates.label'
    description = 'certificates.description'
    data_source = DataSource(name='crt.sh Certificate Transparency', url='https://crt.sh')

    def __init__(self, client: UpstreamClient, clock: Callable[[], datetime] = now_utc):
        self.client = client
        self._clock = clock

    async def run(self, domain: str) -> ProbeOutcome:
        host = validate_hostname(domain)

        rows = await self.client.get_json(CRTSH_URL, params={'q': host, 'output': 'json'})
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise UpstreamError("crt.sh returned an unexpected response shape", url=CRTSH_URL)

        rows = dedupe_rows(rows)
        now = self._clock()
        certs = parse_certificates(rows, now)

        if not certs:
            return ProbeOutcome(
                summary=t('certificates.summary.none'),
                issues=[t('certificates.issues.noCerts')],
                data={'cert_count': 0, 'certificates': []},
            )

        result = analyze_certificates(certs, now)
        active = result['active']
        expired = result['expired']

        summary = t('certificates.summary.found', total=len(certs))
        if active:
            summary += t('certificates.summary.active', active=len(active))
        if expired:
            summary += t('certificates.summary.expired', expired=len(expired))

        data = {
            'cert_count': len(certs),
            'active_cert_count': len(active),
            'expired_cert_count': len(expired),
            # Limited for display
            'active_certs': [c.to_dict() for c in active[:10]],
            'expiring_in_7_days': result['expiring_in_7_days'],
            'expiring_in_30_days': result['expiring_in_30_days'],
            'wildcard_count': result['wildcard_count'],
            'unique_issuers': result['unique_issuers'][:5],
            'expired_without_replacement': result['expired_without_replacement'],
        }
        return ProbeOutcome(summary=summary, issues=result['issues'], data=data)
