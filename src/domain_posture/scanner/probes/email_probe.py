"""Email authentication probe - SPF and DMARC.

Both are TXT records: SPF at the domain itself, DMARC at _dmarc.<domain>.
A missing record is a finding, not an error - the probe only fails when the
DNS lookups themselves fail.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from ...util.types import DataSource, ProbeOutcome
from ..messages import translate as t
from ..normalization import validate_hostname
from ..resolver import DnsResolver
from .base import Probe

logger = logging.getLogger(__name__)


@dataclass
class SPFRecord:
    """SPF record parsing result"""
    raw_value: str
    mechanisms: List[str]
    all_mechanism: Optional[str]  # +all, -all, ~all, ?all
    includes: List[str]
    redirect: Optional[str]


@dataclass
class DMARCRecord:
    """DMARC record parsing result"""
    raw_value: str
    p: Optional[str]  # Policy: none, quarantine, reject
    sp: Optional[str]  # Subdomain policy
    rua: Optional[List[str]]  # Aggregate report URIs
    pct: int  # Policy percentage


def _strip_quotes(value: str) -> str:
    return value.strip().strip('"').strip()


def parse_spf(record: str) -> SPFRecord:
    """Parse SPF record into components"""
    mechanisms = []
    includes = []
    redirect = None
    all_mechanism = None

    for part in record.split()[1:]:
        mechanisms.append(part)
        mechanism = part[1:] if part[0] in '+-~?' else part
        if mechanism.lower() == 'all':
            all_mechanism = part if part[0] in '+-~?' else '+all'
        elif mechanism.startswith('include:'):
            includes.append(mechanism.split(':', 1)[1])
        elif mechanism.startswith('redirect='):
            redirect = mechanism.split('=', 1)[1]

    return SPFRecord(
        raw_value=record,
        mechanisms=mechanisms,
        all_mechanism=all_mechanism,
        includes=includes,
        redirect=redirect,
    )


def parse_dmarc(record: str) -> DMARCRecord:
    """Parse DMARC record into components"""
    tags: Dict[str, str] = {}
    for tag_str in record.split(';'):
        tag_str = tag_str.strip()
        if '=' in tag_str:
            key, value = tag_str.split('=', 1)
            tags[key.strip().lower()] = value.strip()

    pct = tags.get('pct', '100')
    return DMARCRecord(
        raw_value=record,
        p=tags.get('p', '').lower() or None,
        sp=tags.get('sp', '').lower() or None,
        rua=[u.strip() for u in tags['rua'].split(',')] if tags.get('rua') else None,
        pct=int(pct) if pct.isdigit() else 100,
    )


def find_spf(txt_records: List[str]) -> List[str]:
    return [r for r in map(_strip_quotes, txt_records) if r.lower().startswith('v=spf1')]


def find_dmarc(txt_records: List[str]) -> Optional[str]:
    for record in map(_strip_quotes, txt_records):
        if record.lower().startswith('v=dmarc1'):
            return record
    return None


def analyze_email_auth(spf_records: List[str], dmarc_record: Optional[str]) -> List[str]:
    """Issues for the SPF/DMARC pair, missing records first."""
    issues = []

    if not spf_records:
        issues.append(t('emailAuth.issues.noSPF'))
    if not dmarc_record:
        issues.append(t('emailAuth.issues.noDMARC'))

    if len(spf_records) > 1:
        issues.append(t('emailAuth.issues.multipleSPF'))
    if spf_records:
        spf = parse_spf(spf_records[0])
        if spf.all_mechanism in ('+all', '?all'):
            issues.append(t('emailAuth.issues.spfPermissive', mechanism=spf.all_mechanism))
        elif spf.all_mechanism is None and spf.redirect is None:
            issues.append(t('emailAuth.issues.spfNoAll'))

    if dmarc_record:
        dmarc = parse_dmarc(dmarc_record)
        if dmarc.p in (None, 'none'):
            issues.append(t('emailAuth.issues.dmarcNone'))
        elif dmarc.pct < 100:
            issues.append(t('emailAuth.issues.dmarcPartial', pct=dmarc.pct))

    return issues


class EmailAuthProbe(Probe):
    """Checks SPF and DMARC records via DNS."""

    id = 'emailAuth'
    label = 'emailAuth.label'
    description = 'emailAuth.description'
    data_source = DataSource(name='System DNS resolver', url='https://www.dnspython.org/')

    def __init__(self, resolver: DnsResolver):
        self.resolver = resolver

    async def run(self, domain: str) -> ProbeOutcome:
        host = validate_hostname(domain)

        txt, dmarc_txt = await asyncio.gather(
            self.resolver.txt(host),
            self.resolver.txt(f"_dmarc.{host}"),
        )

        spf_records = find_spf(txt)
        dmarc_record = find_dmarc(dmarc_txt)
        issues = analyze_email_auth(spf_records, dmarc_record)

        spf = parse_spf(spf_records[0]) if spf_records else None
        dmarc = parse_dmarc(dmarc_record) if dmarc_record else None

        summary = t(
            'emailAuth.summary',
            spf='present' if spf else 'missing',
            dmarc='present' if dmarc else 'missing',
        )
        data = {
            'spf': spf.raw_value if spf else None,
            'dmarc': dmarc.raw_value if dmarc else None,
            'spf_all': spf.all_mechanism if spf else None,
            'dmarc_policy': dmarc.p if dmarc else None,
            'spf_details': asdict(spf) if spf else None,
            'dmarc_details': asdict(dmarc) if dmarc else None,
        }
        return ProbeOutcome(summary=summary, issues=issues, data=data)
