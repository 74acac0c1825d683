"""RDAP probe - domain registration status via the Registration Data Access Protocol.

Two steps:
1. IANA's bootstrap file maps each TLD to the RDAP server(s) that hold its data
2. Ask those servers for the domain, first good answer wins

The bootstrap file is required - if IANA can't be reached the check fails.
Registry servers that don't know the domain (404) or misbehave are a finding
("domain may not be registered"), not an error.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ...util.errors import UpstreamError
from ...util.time import days_between, now_utc, parse_iso
from ...util.types import DataSource, ProbeOutcome
from ..messages import translate as t
from ..normalization import top_level_domain, validate_hostname
from ..upstream import UpstreamClient
from .base import Probe

logger = logging.getLogger(__name__)

BOOTSTRAP_URL = 'https://data.iana.org/rdap/dns.json'

PROBLEM_STATUSES = ('clienthold', 'serverhold', 'redemptionperiod', 'pendingdelete')

EXPIRY_CRITICAL_DAYS = 30
EXPIRY_WARNING_DAYS = 60


def find_rdap_servers(bootstrap: Dict[str, Any], tld: str) -> List[str]:
    """Look up the RDAP base URLs for a TLD in the IANA bootstrap document."""
    tld = tld.lower()
    for service in bootstrap.get('services') or []:
        if not isinstance(service, list) or len(service) < 2:
            continue
        tlds, servers = service[0], service[1]
        if tld in [str(x).lower() for x in tlds]:
            return [str(s) for s in servers]
    return []


def _event_date(events: List[Dict[str, Any]], action: str) -> Optional[str]:
    for event in events:
        if isinstance(event, dict) and event.get('eventAction') == action:
            return event.get('eventDate')
    return None


def _registrar_name(entities: List[Dict[str, Any]]) -> Optional[str]:
    for entity in entities:
        if not isinstance(entity, dict) or 'registrar' not in (entity.get('roles') or []):
            continue
        vcard = entity.get('vcardArray') or []
        properties = vcard[1] if len(vcard) > 1 else []
        for prop in properties:
            if isinstance(prop, list) and len(prop) > 3 and prop[0] == 'fn':
                return prop[3]
    return None


def analyze_registration(rdap: Dict[str, Any], domain: str, now: datetime) -> ProbeOutcome:
    """Turn an RDAP domain object into an outcome."""
    issues: List[str] = []
    warnings: List[str] = []

    statuses = [str(s) for s in rdap.get('status') or []]
    ldh_name = rdap.get('ldhName') or domain

    problems = [s for s in statuses if any(p in s.lower().replace(' ', '') for p in PROBLEM_STATUSES)]
    if problems:
        issues.append(t('rdap.issues.problemStatus', statuses=', '.join(problems)))

    events = rdap.get('events') or []
    expiration_date = _event_date(events, 'expiration')
    days_until_expiration = None
    expires = parse_iso(expiration_date)
    if expires is not None:
        days_until_expiration = days_between(now, expires)
        if days_until_expiration < 0:
            issues.append(t('rdap.issues.expired', days=abs(days_until_expiration)))
        elif days_until_expiration <= EXPIRY_CRITICAL_DAYS:
            issues.append(t('rdap.issues.expiringSoon', days=days_until_expiration))
        elif days_until_expiration <= EXPIRY_WARNING_DAYS:
            warnings.append(t('rdap.issues.expiringWarning', days=days_until_expiration))

    secure_dns = rdap.get('secureDNS') or {}
    if secure_dns and secure_dns.get('delegationSigned') is False:
        warnings.append(t('rdap.issues.noDNSSEC'))

    nameservers = [ns.get('ldhName') for ns in rdap.get('nameservers') or [] if isinstance(ns, dict)]
    if not nameservers:
        issues.append(t('rdap.issues.noNameservers'))
    elif len(nameservers) < 2:
        warnings.append(t('rdap.issues.singleNameserver'))

    if not statuses:
        status = 'unknown'
    else:
        status = 'active' if 'active' in statuses else statuses[0]

    return ProbeOutcome(
        summary=t('rdap.summary.found', domain=ldh_name, status=status),
        issues=issues + warnings,
        data={
            'ldh_name': ldh_name,
            'status': statuses,
            'problem_statuses': problems,
            'nameservers': nameservers,
            'dnssec_enabled': bool(secure_dns.get('delegationSigned')),
            'expiration_date': expiration_date,
            'days_until_expiration': days_until_expiration,
            'registration_date': _event_date(events, 'registration'),
            'registrar': _registrar_name(rdap.get('entities') or []),
        },
    )


class RDAPProbe(Probe):
    """Fetches registration data for the domain over RDAP."""

    id = 'rdap'
    label = 'rdap.label'
    description = 'rdap.description'
    timeout_ms = 10000
    data_source = DataSource(name='RDAP', url='https://about.rdap.org/')

    def __init__(self, client: UpstreamClient, clock: Callable[[], datetime] = now_utc):
        self.client = client
        self._clock = clock
        self._bootstrap: Optional[Dict[str, Any]] = None

    async def _load_bootstrap(self) -> Dict[str, Any]:
        # The IANA file changes rarely; keep it for the process lifetime
        if self._bootstrap is None:
            bootstrap = await self.client.get_json(BOOTSTRAP_URL)
            if not isinstance(bootstrap, dict):
                raise UpstreamError("RDAP bootstrap data is malformed", url=BOOTSTRAP_URL)
            self._bootstrap = bootstrap
        return self._bootstrap

    async def run(self, domain: str) -> ProbeOutcome:
        host = validate_hostname(domain)
        tld = top_level_domain(host)

        servers = find_rdap_servers(await self._load_bootstrap(), tld)
        if not servers:
            return ProbeOutcome(
                summary=t('rdap.summary.unavailable'),
                issues=[t('rdap.issues.noRDAPServer', tld=tld), t('rdap.issues.legacyWhois')],
                data={'error': f"No RDAP server found for .{tld} TLD", 'tld': tld},
            )

        rdap = None
        last_error = None
        for server in servers:
            url = f"{server.rstrip('/')}/domain/{host}"
            try:
                rdap = await self.client.get_json(url)
            except UpstreamError as e:
                last_error = 'Domain not found' if e.status == 404 else str(e)
                logger.debug(f"RDAP server {server} failed for {host}: {e}")
                continue
            if isinstance(rdap, dict):
                break
            last_error = f"{server} returned an unexpected response"
            rdap = None

        if rdap is None:
            error = last_error or 'Domain not found'
            return ProbeOutcome(
                summary=t('rdap.summary.failed'),
                issues=[t('rdap.issues.notFound', error=error), t('rdap.issues.notRegistered')],
                data={'error': error, 'rdap_servers': servers},
            )

        return analyze_registration(rdap, host, self._clock())
