"""
Unit Tests for the Certificate, RDAP and Security Headers Probes
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from domain_posture.scanner.interpretation import interpret
from domain_posture.scanner.orchestrator import ScanOrchestrator
from domain_posture.scanner.probes.certificate_probe import (CertificateProbe, analyze_certificates,
                                                             dedupe_rows, parse_certificates)
from domain_posture.scanner.probes.headers_probe import SecurityHeadersProbe, parse_report
from domain_posture.scanner.probes.rdap_probe import (BOOTSTRAP_URL, RDAPProbe, analyze_registration,
                                                      find_rdap_servers)
from domain_posture.scanner.registry import ProbeRegistry
from domain_posture.util.errors import UpstreamError
from domain_posture.util.types import ProbeStatus, Severity

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

LE_ISSUER = "C=US, O=Let's Encrypt, CN=R3"


def crt_row(common_name, not_before, not_after, issuer=LE_ISSUER, row_id=1):
    return {
        'id': row_id,
        'issuer_name': issuer,
        'common_name': common_name,
        'name_value': common_name,
        'not_before': not_before,
        'not_after': not_after,
    }


@pytest.fixture
def crt_rows():
    return [
        crt_row('example.com', '2024-12-20T00:00:00', '2025-01-20T00:00:00', row_id=1),
        # Precertificate duplicate of the row above
        crt_row('example.com', '2024-12-20T00:00:00', '2025-01-20T00:00:00', row_id=2),
        crt_row('www.example.com', '2024-12-01T00:00:00', '2025-04-01T00:00:00', row_id=3),
        crt_row('old.example.com', '2024-10-01T00:00:00', '2025-01-01T00:00:00', row_id=4),
    ]


def json_client(responses):
    """UpstreamClient double: url -> payload, or an exception to raise."""
    client = Mock()

    async def get_json(url, params=None):
        response = responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    client.get_json = AsyncMock(side_effect=get_json)
    return client


class TestCertificateAnalysis:

    def test_dedupe_rows(self, crt_rows):
        assert [r['id'] for r in dedupe_rows(crt_rows)] == [1, 3, 4]

    def test_parse_skips_bad_dates(self):
        rows = [crt_row('example.com', 'garbage', '2025-04-01T00:00:00')]
        assert parse_certificates(rows, NOW) == []

    def test_expiry_windows_and_orphans(self, crt_rows):
        certs = parse_certificates(dedupe_rows(crt_rows), NOW)
        result = analyze_certificates(certs, NOW)

        assert result['expiring_in_7_days'] == 1
        assert result['expiring_in_30_days'] == 1
        assert len(result['active']) == 2
        assert len(result['expired']) == 1
        assert result['expired_without_replacement'] == ['old.example.com']
        assert result['issues'][0] == 'Certificate for example.com expires in 4 day(s)'
        assert any('old.example.com' in i for i in result['issues'])

    def test_self_signed_and_wildcard(self):
        rows = [
            crt_row('internal.example.com', '2024-12-01T00:00:00', '2025-12-01T00:00:00',
                    issuer='CN=internal.example.com'),
            crt_row('*.example.com', '2024-12-01T00:00:00', '2025-12-01T00:00:00', row_id=2),
        ]
        result = analyze_certificates(parse_certificates(rows, NOW), NOW)

        assert '1 self-signed certificate(s) found' in result['issues']
        assert '1 wildcard certificate(s) in use' in result['issues']

    def test_many_issuers(self):
        rows = [
            crt_row(f"h{i}.example.com", '2024-12-01T00:00:00', '2025-12-01T00:00:00',
                    issuer=f"CN=CA {i}", row_id=i)
            for i in range(4)
        ]
        result = analyze_certificates(parse_certificates(rows, NOW), NOW)
        assert result['issues'] == ['Certificates issued by 4 different authorities']


class TestCertificateProbe:

    def test_run(self, crt_rows):
        client = json_client({'https://crt.sh/': crt_rows})
        outcome = asyncio.run(CertificateProbe(client, clock=lambda: NOW).run('Example.com'))

        client.get_json.assert_awaited_once_with('https://crt.sh/', params={'q': 'example.com', 'output': 'json'})
        assert outcome.data['cert_count'] == 3
        assert outcome.data['active_cert_count'] == 2
        assert outcome.data['expired_cert_count'] == 1
        assert outcome.data['expiring_in_7_days'] == 1
        assert outcome.summary == '3 certificate(s) found, 2 active, 1 expired'

    @pytest.mark.parametrize('payload', [[], None])
    def test_no_certificates_is_informational(self, payload):
        client = json_client({'https://crt.sh/': payload})
        outcome = asyncio.run(CertificateProbe(client, clock=lambda: NOW).run('example.com'))

        assert outcome.data['cert_count'] == 0
        assert outcome.issues == ['No certificates found in Certificate Transparency logs']

    def test_unexpected_shape_raises(self):
        client = json_client({'https://crt.sh/': {'error': 'busy'}})
        with pytest.raises(UpstreamError):
            asyncio.run(CertificateProbe(client, clock=lambda: NOW).run('example.com'))

    def test_expiring_within_hours_is_critical(self):
        rows = [crt_row('example.com', '2024-12-20T00:00:00', '2025-01-15T18:00:00')]
        client = json_client({'https://crt.sh/': rows})
        orchestrator = ScanOrchestrator(ProbeRegistry([CertificateProbe(client, clock=lambda: NOW)]))
        result = asyncio.run(orchestrator.run_one('certificates', 'example.com'))

        assert result.data['expiring_in_7_days'] == 1
        assert result.issues == ['Certificate for example.com expires in 0 day(s)']
        assert interpret(result).severity is Severity.CRITICAL


RDAP_SERVER = 'https://rdap.verisign.com/com/v1/'
RDAP_URL = 'https://rdap.verisign.com/com/v1/domain/example.com'

BOOTSTRAP = {'services': [[['com', 'net'], [RDAP_SERVER]], [['org'], ['https://rdap.org.example/']]]}


def rdap_domain(expiration='2025-08-13T04:00:00Z', nameservers=2, statuses=None, signed=True):
    return {
        'ldhName': 'EXAMPLE.COM',
        'status': statuses or ['client transfer prohibited', 'active'],
        'events': [
            {'eventAction': 'registration', 'eventDate': '1995-08-14T04:00:00Z'},
            {'eventAction': 'expiration', 'eventDate': expiration},
        ],
        'secureDNS': {'delegationSigned': signed},
        'nameservers': [{'ldhName': f"NS{i}.EXAMPLE.NET"} for i in range(nameservers)],
        'entities': [{
            'roles': ['registrar'],
            'vcardArray': ['vcard', [['version', {}, 'text', '4.0'], ['fn', {}, 'text', 'Example Registrar']]],
        }],
    }


class TestRdapAnalysis:

    def test_find_servers(self):
        assert find_rdap_servers(BOOTSTRAP, 'NET') == [RDAP_SERVER]
        assert find_rdap_servers(BOOTSTRAP, 'zz') == []

    def test_healthy_registration(self):
        outcome = analyze_registration(rdap_domain(), 'example.com', NOW)

        assert outcome.issues == []
        assert outcome.summary == 'EXAMPLE.COM is registered (status: active)'
        assert outcome.data['registrar'] == 'Example Registrar'
        assert outcome.data['dnssec_enabled'] is True
        assert outcome.data['registration_date'] == '1995-08-14T04:00:00Z'
        assert outcome.data['days_until_expiration'] > 200

    def test_expired_and_problem_status(self):
        outcome = analyze_registration(
            rdap_domain(expiration='2025-01-10T00:00:00Z', statuses=['client hold']),
            'example.com', NOW,
        )
        assert outcome.data['days_until_expiration'] < 0
        assert outcome.data['problem_statuses'] == ['client hold']
        assert any('expired' in i for i in outcome.issues)
        assert any('client hold' in i for i in outcome.issues)

    def test_expiry_windows(self):
        soon = analyze_registration(rdap_domain(expiration='2025-02-01T00:00:00Z'), 'example.com', NOW)
        later = analyze_registration(rdap_domain(expiration='2025-03-05T00:00:00Z'), 'example.com', NOW)

        assert soon.issues == ['Domain registration expires in 16 days']
        assert later.issues == ['Domain registration expires in 48 days - consider renewing']

    def test_nameservers_and_dnssec(self):
        none = analyze_registration(rdap_domain(nameservers=0), 'example.com', NOW)
        single = analyze_registration(rdap_domain(nameservers=1, signed=False), 'example.com', NOW)

        assert none.issues == ['No nameservers found - domain cannot resolve']
        assert single.issues == [
            'DNSSEC is not enabled for this domain',
            'Only one nameserver configured - add a redundant nameserver',
        ]


class TestRDAPProbe:

    def test_run(self):
        client = json_client({BOOTSTRAP_URL: BOOTSTRAP, RDAP_URL: rdap_domain()})
        outcome = asyncio.run(RDAPProbe(client, clock=lambda: NOW).run('example.com'))
        assert outcome.data['ldh_name'] == 'EXAMPLE.COM'
        assert 'error' not in outcome.data

    def test_bootstrap_fetched_once(self):
        client = json_client({BOOTSTRAP_URL: BOOTSTRAP, RDAP_URL: rdap_domain()})
        probe = RDAPProbe(client, clock=lambda: NOW)

        async def twice():
            await probe.run('example.com')
            await probe.run('example.com')

        asyncio.run(twice())
        urls = [c.args[0] for c in client.get_json.await_args_list]
        assert urls.count(BOOTSTRAP_URL) == 1

    def test_unknown_tld_is_informational(self):
        client = json_client({BOOTSTRAP_URL: BOOTSTRAP})
        outcome = asyncio.run(RDAPProbe(client, clock=lambda: NOW).run('example.zz'))

        assert outcome.data['error'] == 'No RDAP server found for .zz TLD'
        assert outcome.issues == [
            'No RDAP server is published for the .zz TLD',
            'Registration data may only be available through legacy WHOIS',
        ]

    def test_domain_not_found(self):
        client = json_client({
            BOOTSTRAP_URL: BOOTSTRAP,
            RDAP_URL: UpstreamError('rdap.verisign.com returned 404', status=404, url=RDAP_URL),
        })
        outcome = asyncio.run(RDAPProbe(client, clock=lambda: NOW).run('example.com'))

        assert outcome.data['error'] == 'Domain not found'
        assert outcome.issues[-1] == 'The domain may not be registered'

    def test_bootstrap_failure_raises(self):
        client = json_client({BOOTSTRAP_URL: UpstreamError('data.iana.org returned 503', status=503)})
        with pytest.raises(UpstreamError):
            asyncio.run(RDAPProbe(client, clock=lambda: NOW).run('example.com'))


REPORT_HTML = """
<html><body>
<div class="reportSection">
  <div class="score"><span>C</span></div>
  <div class="reportTitle">Security Report Summary</div>
  <div>Score: 55</div>
</div>
<div class="reportSection">
  <div class="reportTitle">Missing Headers</div>
  <table>
    <tr><th class="tableLabel table_red">Content-Security-Policy</th><td>...</td></tr>
    <tr><th class="tableLabel table_red">Permissions-Policy</th><td>...</td></tr>
  </table>
</div>
<div class="reportSection">
  <div class="reportTitle">Warnings</div>
  <table>
    <tr><th class="tableLabel table_orange">Site is using HTTP</th><td>...</td></tr>
  </table>
</div>
<div class="reportSection">
  <div class="reportTitle">Raw Headers</div>
  <table>
    <tr><th class="tableLabel table_green">x-frame-options</th><td>DENY</td></tr>
  </table>
</div>
</body></html>
"""


class TestSecurityHeaders:

    def test_parse_report(self):
        report = parse_report(REPORT_HTML)
        assert report['grade'] == 'C'
        assert report['score'] == 55
        assert report['missing_headers'] == ['Content-Security-Policy', 'Permissions-Policy']
        assert report['warnings'] == ['Site is using HTTP']

    def test_parse_page_without_grade(self):
        report = parse_report('<html><body><p>We could not reach the site.</p></body></html>')
        assert report == {'grade': None, 'score': None, 'missing_headers': [], 'warnings': []}

    @pytest.mark.parametrize('shown, grade', [('A+', 'A+'), ('b', 'B'), ('R', 'R'), ('A-', None), ('B+', None)])
    def test_only_published_grades_accepted(self, shown, grade):
        html = REPORT_HTML.replace('<span>C</span>', f"<span>{shown}</span>")
        assert parse_report(html)['grade'] == grade

    def test_probe_leaves_issues_to_derive_step(self):
        client = Mock()
        client.get_text = AsyncMock(return_value=REPORT_HTML)
        probe = SecurityHeadersProbe(client)
        outcome = asyncio.run(probe.run('example.com'))

        assert outcome.issues is None
        assert outcome.summary == 'Grade: C (score 55)'
        assert outcome.data['status'] == 'available'
        assert outcome.data['test_url'].startswith('https://securityheaders.com/?q=example.com')
        assert probe.derive_issues(outcome, 'example.com') == [
            'Missing security header: Content-Security-Policy',
            'Missing security header: Permissions-Policy',
            'Site is using HTTP',
        ]

    def test_ungraded_site(self):
        client = Mock()
        client.get_text = AsyncMock(return_value='<html><body>Sorry</body></html>')
        probe = SecurityHeadersProbe(client)
        outcome = asyncio.run(probe.run('example.com'))

        assert outcome.data['status'] == 'ungraded'
        assert probe.derive_issues(outcome, 'example.com') == ['securityheaders.com could not grade this site']

    def test_orchestrator_uses_derived_issues(self):
        client = Mock()
        client.get_text = AsyncMock(return_value=REPORT_HTML)
        orchestrator = ScanOrchestrator(ProbeRegistry([SecurityHeadersProbe(client)]))
        aggregate = asyncio.run(orchestrator.run_all('example.com'))

        result = aggregate.get('securityHeaders')
        assert result.status is ProbeStatus.COMPLETE
        assert len(result.issues) == 3
        assert aggregate.issues == result.issues
