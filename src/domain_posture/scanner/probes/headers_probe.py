"""Security headers probe - grade from securityheaders.com.

Fetches the public report page for the domain and scrapes:
  - the letter grade (A+ .. F, or R for redirect-only)
  - the numeric score when shown
  - the "Missing Headers" table (one issue per header)
  - the "Warnings" table (appended after the missing headers)

A page that loads but carries no grade (the service couldn't reach the site)
is reported as ungraded - that's a finding, not a probe failure.
"""

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from ...util.types import DataSource, ProbeOutcome
from ..messages import translate as t
from ..normalization import validate_hostname
from ..upstream import UpstreamClient
from .base import Probe

logger = logging.getLogger(__name__)

REPORT_URL = 'https://securityheaders.com/'

_GRADE_RE = re.compile(r'^(A\+|[A-FR])$')
_SCORE_RE = re.compile(r'Score:\s*(\d{1,3})', re.IGNORECASE)


def report_url(host: str) -> str:
    return f"{REPORT_URL}?{urlencode({'q': host, 'hide': 'on', 'followRedirects': 'on'})}"


def _section_labels(soup: BeautifulSoup, title: str, css_class: str) -> List[str]:
    """Table labels with the given colour class inside the titled report section."""
    labels: List[str] = []
    for heading in soup.find_all('div', class_='reportTitle'):
        if heading.get_text(strip=True).lower() != title.lower():
            continue
        section = heading.find_parent('div', class_='reportSection') or heading.parent
        for th in section.find_all('th', class_='tableLabel'):
            if css_class not in (th.get('class') or []):
                continue
            text = th.get_text(strip=True)
            if text and text not in labels:
                labels.append(text)
    return labels


def parse_report(html: str) -> Dict[str, Any]:
    """Extract grade, score, missing headers and warnings from the report page."""
    soup = BeautifulSoup(html, 'html.parser')

    grade: Optional[str] = None
    grade_el = soup.select_one('div.score span')
    if grade_el is not None:
        text = grade_el.get_text(strip=True).upper()
        if _GRADE_RE.match(text):
            grade = text

    score: Optional[int] = None
    match = _SCORE_RE.search(soup.get_text(' '))
    if match:
        score = int(match.group(1))

    return {
        'grade': grade,
        'score': score,
        'missing_headers': _section_labels(soup, 'Missing Headers', 'table_red'),
        'warnings': _section_labels(soup, 'Warnings', 'table_orange'),
    }


class SecurityHeadersProbe(Probe):
    """Grades the site's HTTP security headers via securityheaders.com."""

    id = 'securityHeaders'
    label = 'securityHeaders.label'
    description = 'securityHeaders.description'
    timeout_ms = 15000
    data_source = DataSource(name='securityheaders.com', url='https://securityheaders.com')

    def __init__(self, client: UpstreamClient):
        self.client = client

    async def run(self, domain: str) -> ProbeOutcome:
        host = validate_hostname(domain)
        test_url = report_url(host)

        html = await self.client.get_text(
            REPORT_URL,
            params={'q': host, 'hide': 'on', 'followRedirects': 'on'},
        )
        report = parse_report(html)
        grade, score = report['grade'], report['score']

        if grade:
            summary = t('securityHeaders.summary.grade', grade=grade)
            if score is not None:
                summary += t('securityHeaders.summary.score', score=score)
        elif score is not None:
            summary = t('securityHeaders.summary.grade', grade=f"{score}/100")
        else:
            summary = t('securityHeaders.summary.analyzed')

        status = 'available' if grade or score is not None else 'ungraded'
        if status == 'ungraded':
            logger.debug(f"securityheaders.com returned no grade for {host}")

        # Issues are left to derive_issues()
        return ProbeOutcome(
            summary=summary,
            data={
                'status': status,
                'grade': grade,
                'score': score,
                'test_url': test_url,
                'missing_headers': report['missing_headers'],
                'warnings': report['warnings'],
            },
        )

    def derive_issues(self, outcome: ProbeOutcome, domain: str) -> Optional[List[str]]:
        """Missing headers first, then the report's warnings verbatim."""
        data = outcome.data or {}
        issues = [t('securityHeaders.issues.missing', header=h) for h in data.get('missing_headers') or []]
        issues.extend(data.get('warnings') or [])
        if data.get('status') == 'ungraded':
            issues.append(t('securityHeaders.issues.ungraded'))
        return issues
