"""DNS probe - collect common record types and look for misconfigurations.

Checks performed on the collected records:
  - the name resolves at all (A, AAAA or CNAME present)
  - A records pointing at reserved/private ranges
  - CNAME coexisting with other data, or more than one CNAME
  - an unusually large A record set
  - no MX (domain cannot receive mail)
  - TXT records over 255 characters
  - MX targets that are bare IP addresses
"""

import asyncio
import ipaddress
import logging
import re
from typing import Dict, List

from ...util.types import DataSource, ProbeOutcome
from ..messages import translate as t
from ..normalization import validate_hostname
from ..resolver import DnsResolver
from .base import Probe

logger = logging.getLogger(__name__)

RECORD_TYPES = ('A', 'AAAA', 'MX', 'TXT', 'CNAME')

MAX_A_RECORDS = 10
MAX_TXT_LENGTH = 255

_IPV4_RE = re.compile(r'^\d+\.\d+\.\d+\.\d+\.?$')


def is_reserved_ip(ip: str) -> bool:
    """True for addresses that are not publicly routable."""
    try:
        addr = ipaddress.ip_address(ip.rstrip('.'))
    except ValueError:
        return False
    return (addr.is_private or addr.is_reserved or addr.is_loopback
            or addr.is_link_local or addr.is_unspecified)


def analyze_records(records: Dict[str, List[str]]) -> List[str]:
    """Turn a {type: [values]} map into issue strings."""
    issues = []
    a_records = records.get('A', [])
    aaaa_records = records.get('AAAA', [])
    mx_records = records.get('MX', [])
    cname_records = records.get('CNAME', [])
    txt_records = records.get('TXT', [])

    if not a_records and not aaaa_records and not cname_records:
        issues.append(t('dns.issues.noRecords'))

    for ip in a_records:
        if is_reserved_ip(ip):
            issues.append(t('dns.issues.reservedIP', ip=ip))

    # A CNAME cannot coexist with other data at the same name
    if cname_records:
        if a_records or aaaa_records or mx_records:
            issues.append(t('dns.issues.cnameConflict'))
        if len(cname_records) > 1:
            issues.append(t('dns.issues.multipleCNAME'))

    if len(a_records) > MAX_A_RECORDS:
        issues.append(t('dns.issues.excessiveA', count=len(a_records)))

    if not mx_records:
        issues.append(t('dns.issues.noMX'))

    for txt in txt_records:
        if len(txt) > MAX_TXT_LENGTH:
            issues.append(t('dns.issues.longTXT'))

    for mx in mx_records:
        # "priority hostname", e.g. "10 mail.example.com."
        parts = mx.split(' ')
        hostname = parts[1] if len(parts) > 1 else parts[0]
        if _IPV4_RE.match(hostname):
            issues.append(t('dns.issues.mxIP', hostname=hostname))

    return issues


class DNSProbe(Probe):
    """Collects A, AAAA, MX, TXT and CNAME records for the domain."""

    id = 'dns'
    label = 'dns.label'
    description = 'dns.description'
    timeout_ms = 5000
    data_source = DataSource(name='System DNS resolver', url='https://www.dnspython.org/')

    def __init__(self, resolver: DnsResolver):
        self.resolver = resolver

    async def run(self, domain: str) -> ProbeOutcome:
        host = validate_hostname(domain)

        answers = await asyncio.gather(
            *(self.resolver.query(host, rdtype) for rdtype in RECORD_TYPES),
            return_exceptions=True
        )
        for answer in answers:
            if isinstance(answer, BaseException):
                raise answer

        records = [
            {'type': rdtype, 'data': values}
            for rdtype, values in zip(RECORD_TYPES, answers)
            if values
        ]
        by_type = {r['type']: r['data'] for r in records}
        issues = analyze_records(by_type)

        if records:
            counts = ', '.join(f"{r['type']}:{len(r['data'])}" for r in records)
            summary = t('dns.summary.found', records=counts)
        else:
            summary = t('dns.summary.none')

        logger.debug(f"DNS for {host}: {len(records)} record types, {len(issues)} issues")
        return ProbeOutcome(summary=summary, issues=issues, data={'records': records})
