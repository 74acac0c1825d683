"""Interpretation - turn an executed probe into severity + message + advice.

Each probe id has one classifier in INTERPRETERS. Anything not listed goes
through the generic fallback. Classifiers only read the result they are
given, so the same result always interprets the same way.
"""

from typing import Callable, Dict

from ..util.types import ExecutedProbeResult, Interpretation, ProbeStatus, Severity
from .messages import Translator, translate

Classifier = Callable[[ExecutedProbeResult, Translator], Interpretation]

FALLBACK = '*'

GRADE_SUCCESS = ('A+', 'A')
GRADE_INFO = ('B',)
GRADE_WARNING = ('C',)

MANY_CERTS = 10


def _build(t: Translator, severity: Severity, prefix: str, **params) -> Interpretation:
    return Interpretation(
        severity=severity,
        message=t(f'{prefix}.message', **params),
        recommendation=t(f'{prefix}.recommendation'),
    )


def interpret_generic(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    if not result.issues:
        return Interpretation(
            severity=Severity.SUCCESS,
            message=t('common.interpretation.checkCompleted'),
            recommendation=t('common.interpretation.noIssuesDetected'),
        )
    return Interpretation(
        severity=Severity.WARNING,
        message=t('common.interpretation.issuesFound', count=len(result.issues)),
        recommendation=t('common.interpretation.reviewIssues'),
    )


def interpret_dns(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    count = len(result.issues)
    if count == 0:
        return _build(t, Severity.SUCCESS, 'dns.interpretation.success')
    if count <= 2:
        return _build(t, Severity.WARNING, 'dns.interpretation.warning')
    return _build(t, Severity.CRITICAL, 'dns.interpretation.critical')


def interpret_email_auth(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    data = result.data
    if data is None:
        return interpret_generic(result, t)
    if not data.get('spf') or not data.get('dmarc'):
        return _build(t, Severity.CRITICAL, 'emailAuth.interpretation.critical')
    if result.issues:
        return _build(t, Severity.WARNING, 'emailAuth.interpretation.warning')
    return _build(t, Severity.SUCCESS, 'emailAuth.interpretation.success')


def interpret_certificates(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    data = result.data or {}
    if not data.get('cert_count'):
        return _build(t, Severity.INFO, 'certificates.interpretation.none')

    expiring_7 = data.get('expiring_in_7_days') or 0
    expiring_30 = data.get('expiring_in_30_days') or 0
    active = data.get('active_cert_count') or 0

    if expiring_7 > 0:
        return _build(t, Severity.CRITICAL, 'certificates.interpretation.critical', count=expiring_7)
    if expiring_30 > 0:
        return _build(t, Severity.WARNING, 'certificates.interpretation.expiring', count=expiring_30)
    if result.issues:
        return _build(t, Severity.WARNING, 'certificates.interpretation.issues',
                      active=active, count=len(result.issues))

    recommendation = ('certificates.interpretation.successMany.recommendation' if active > MANY_CERTS
                      else 'certificates.interpretation.success.recommendation')
    return Interpretation(
        severity=Severity.SUCCESS,
        message=t('certificates.interpretation.success.message', active=active),
        recommendation=t(recommendation),
    )


def interpret_rdap(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    data = result.data or {}
    if data.get('error'):
        return _build(t, Severity.INFO, 'rdap.interpretation.incomplete')

    days = data.get('days_until_expiration')
    expired = days is not None and days < 0
    if expired or not data.get('nameservers'):
        return _build(t, Severity.CRITICAL, 'rdap.interpretation.critical')
    if days is not None and days <= 30:
        return _build(t, Severity.WARNING, 'rdap.interpretation.warning')
    if result.issues:
        return _build(t, Severity.WARNING, 'rdap.interpretation.recommendations')

    recommendation = ('rdap.interpretation.healthy.recommendation' if data.get('dnssec_enabled')
                      else 'rdap.interpretation.healthyNoDnssec.recommendation')
    return Interpretation(
        severity=Severity.SUCCESS,
        message=t('rdap.interpretation.healthy.message'),
        recommendation=t(recommendation),
    )


def interpret_security_headers(result: ExecutedProbeResult, t: Translator) -> Interpretation:
    data = result.data or {}
    grade = (data.get('grade') or '').upper()
    if not grade or data.get('status', 'available') != 'available':
        return _build(t, Severity.INFO, 'securityHeaders.interpretation.unavailable')
    if grade in GRADE_SUCCESS:
        return _build(t, Severity.SUCCESS, 'securityHeaders.interpretation.gradeA')
    if grade in GRADE_INFO:
        return _build(t, Severity.INFO, 'securityHeaders.interpretation.gradeB')
    if grade in GRADE_WARNING:
        return _build(t, Severity.WARNING, 'securityHeaders.interpretation.gradeC')
    # D, E, F, R and anything unexpected
    return _build(t, Severity.CRITICAL, 'securityHeaders.interpretation.gradeDF')


INTERPRETERS: Dict[str, Classifier] = {
    'dns': interpret_dns,
    'emailAuth': interpret_email_auth,
    'certificates': interpret_certificates,
    'rdap': interpret_rdap,
    'securityHeaders': interpret_security_headers,
    FALLBACK: interpret_generic,
}


def interpret(result: ExecutedProbeResult, t: Translator = translate) -> Interpretation:
    """Classify one executed probe.

    Error-status results always map to the error severity with a retry hint,
    regardless of probe id.
    """
    if result.status is ProbeStatus.ERROR:
        return Interpretation(
            severity=Severity.ERROR,
            message=result.error or t('common.errors.scannerFailed'),
            recommendation=t('common.errors.retryMessage'),
        )
    classifier = INTERPRETERS.get(result.id, INTERPRETERS[FALLBACK])
    return classifier(result, t)
