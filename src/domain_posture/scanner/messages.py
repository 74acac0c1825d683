"""User-facing message catalog.

Every sentence a probe or the interpretation layer shows to a person is
looked up here by key. Callers that render in another locale pass their own
translate function with the same (key, **params) signature - severities
never depend on the text.
"""

from typing import Callable

Translator = Callable[..., str]

CATALOG = {
    # ----- common -----
    'common.errors.timeout': "{label} timed out after {timeout} ms",
    'common.errors.scannerFailed': "The check failed to complete",
    'common.errors.retryMessage': "Check your network connection and retry this check.",
    'common.interpretation.checkCompleted': "Check completed",
    'common.interpretation.issuesFound': "{count} issue(s) found",
    'common.interpretation.noIssuesDetected': "No issues were detected.",
    'common.interpretation.reviewIssues': "Review the issues listed for this check.",

    # ----- probe labels -----
    'dns.label': "DNS Records",
    'dns.description': "Collects A, AAAA, MX, TXT and CNAME records and checks them for common misconfigurations",
    'emailAuth.label': "Email Authentication",
    'emailAuth.description': "Checks SPF and DMARC configuration via DNS",
    'certificates.label': "TLS Certificates",
    'certificates.description': "Inspects certificates published in Certificate Transparency logs",
    'rdap.label': "Domain Registration",
    'rdap.description': "Looks up registration status, expiry and DNSSEC via RDAP",
    'securityHeaders.label': "Security Headers",
    'securityHeaders.description': "Grades HTTP security headers using securityheaders.com",

    # ----- dns -----
    'dns.issues.noRecords': "No A, AAAA or CNAME records found - the domain will not resolve",
    'dns.issues.reservedIP': "A record points to a reserved or private address: {ip}",
    'dns.issues.cnameConflict': "CNAME record coexists with other record types at the same name",
    'dns.issues.multipleCNAME': "Multiple CNAME records found at the same name",
    'dns.issues.excessiveA': "Unusually many A records ({count})",
    'dns.issues.noMX': "No MX records - the domain cannot receive email",
    'dns.issues.longTXT': "TXT record longer than 255 characters",
    'dns.issues.mxIP': "MX record points to an IP address instead of a hostname: {hostname}",
    'dns.summary.found': "Records found: {records}",
    'dns.summary.none': "No DNS records found",
    'dns.interpretation.success.message': "DNS configuration looks healthy",
    'dns.interpretation.success.recommendation': "No DNS misconfigurations were detected. Keep records reviewed when infrastructure changes.",
    'dns.interpretation.warning.message': "Minor DNS configuration issues found",
    'dns.interpretation.warning.recommendation': "Review the listed DNS issues with your DNS provider.",
    'dns.interpretation.critical.message': "Multiple DNS configuration problems found",
    'dns.interpretation.critical.recommendation': "Fix the listed DNS problems promptly - they can break resolution or email delivery.",

    # ----- emailAuth -----
    'emailAuth.issues.noSPF': "No SPF record found",
    'emailAuth.issues.noDMARC': "No DMARC record found",
    'emailAuth.issues.spfPermissive': "SPF record ends with '{mechanism}', which lets any server send mail for the domain",
    'emailAuth.issues.spfNoAll': "SPF record has no 'all' mechanism",
    'emailAuth.issues.multipleSPF': "Multiple SPF records found - receivers treat this as an error",
    'emailAuth.issues.dmarcNone': "DMARC policy is 'none' - spoofed mail is only monitored, not blocked",
    'emailAuth.issues.dmarcPartial': "DMARC policy applies to only {pct}% of mail",
    'emailAuth.summary': "SPF: {spf}, DMARC: {dmarc}",
    'emailAuth.interpretation.critical.message': "Mandatory email authentication records are missing",
    'emailAuth.interpretation.critical.recommendation': "Publish an SPF record and a DMARC record so receivers can reject mail spoofing your domain.",
    'emailAuth.interpretation.warning.message': "Email authentication is present but weak",
    'emailAuth.interpretation.warning.recommendation': "Tighten SPF to '-all' or '~all' and move DMARC towards 'quarantine' or 'reject'.",
    'emailAuth.interpretation.success.message': "SPF and DMARC are configured",
    'emailAuth.interpretation.success.recommendation': "Keep monitoring DMARC aggregate reports and consider DKIM key rotation.",

    # ----- certificates -----
    'certificates.issues.noCerts': "No certificates found in Certificate Transparency logs",
    'certificates.issues.expiring7Days': "Certificate for {commonName} expires in {days} day(s)",
    'certificates.issues.expiring30Days': "Certificate for {commonName} expires in {days} days",
    'certificates.issues.selfSigned': "{count} self-signed certificate(s) found",
    'certificates.issues.wildcard': "{count} wildcard certificate(s) in use",
    'certificates.issues.excessive': "Unusually many active certificates ({count})",
    'certificates.issues.recentExpired': "{count} certificate(s) expired recently without replacement: {names}",
    'certificates.issues.manyIssuers': "Certificates issued by {count} different authorities",
    'certificates.summary.none': "No certificates found",
    'certificates.summary.found': "{total} certificate(s) found",
    'certificates.summary.active': ", {active} active",
    'certificates.summary.expired': ", {expired} expired",
    'certificates.interpretation.none.message': "No certificates found",
    'certificates.interpretation.none.recommendation': "No certificates appear in public Certificate Transparency logs. If you serve HTTPS, the certificate may be very new or not yet logged.",
    'certificates.interpretation.critical.message': "{count} certificate(s) expiring within 7 days",
    'certificates.interpretation.critical.recommendation': "Renew expiring certificates immediately to avoid service disruption and set up automated renewal.",
    'certificates.interpretation.expiring.message': "{count} certificate(s) expiring within 30 days",
    'certificates.interpretation.expiring.recommendation': "Plan renewals now and add monitoring alerts for certificate expiry.",
    'certificates.interpretation.issues.message': "{active} active certificate(s), {count} issue(s) detected",
    'certificates.interpretation.issues.recommendation': "Review the certificate issues. Consider cleaning up stale certificates and standardizing on one Certificate Authority.",
    'certificates.interpretation.success.message': "{active} valid certificate(s) found",
    'certificates.interpretation.success.recommendation': "Certificate Transparency logs show valid certificates with no immediate issues.",
    'certificates.interpretation.successMany.recommendation': "Large number of certificates found. Regularly review and revoke the ones you no longer need.",

    # ----- rdap -----
    'rdap.issues.noRDAPServer': "No RDAP server is published for the .{tld} TLD",
    'rdap.issues.legacyWhois': "Registration data may only be available through legacy WHOIS",
    'rdap.issues.notFound': "Registration lookup failed: {error}",
    'rdap.issues.notRegistered': "The domain may not be registered",
    'rdap.issues.problemStatus': "Domain has problematic status: {statuses}",
    'rdap.issues.expired': "Domain registration expired {days} day(s) ago",
    'rdap.issues.expiringSoon': "Domain registration expires in {days} days",
    'rdap.issues.expiringWarning': "Domain registration expires in {days} days - consider renewing",
    'rdap.issues.noDNSSEC': "DNSSEC is not enabled for this domain",
    'rdap.issues.noNameservers': "No nameservers found - domain cannot resolve",
    'rdap.issues.singleNameserver': "Only one nameserver configured - add a redundant nameserver",
    'rdap.summary.unavailable': "RDAP not available for this TLD",
    'rdap.summary.failed': "Registration lookup failed",
    'rdap.summary.found': "{domain} is registered (status: {status})",
    'rdap.interpretation.incomplete.message': "Registration data could not be retrieved",
    'rdap.interpretation.incomplete.recommendation': "Check the registration manually with your registrar or a WHOIS service.",
    'rdap.interpretation.critical.message': "Domain registration needs urgent attention",
    'rdap.interpretation.critical.recommendation': "Renew the domain and confirm its nameservers with your registrar immediately.",
    'rdap.interpretation.warning.message': "Domain registration expires soon",
    'rdap.interpretation.warning.recommendation': "Renew the domain or enable auto-renewal with your registrar.",
    'rdap.interpretation.recommendations.message': "Registration is healthy with recommendations",
    'rdap.interpretation.recommendations.recommendation': "Review the listed registration recommendations.",
    'rdap.interpretation.healthy.message': "Domain registration is healthy",
    'rdap.interpretation.healthy.recommendation': "Registration, nameservers and DNSSEC look good.",
    'rdap.interpretation.healthyNoDnssec.recommendation': "Registration looks good. Consider enabling DNSSEC.",

    # ----- securityHeaders -----
    'securityHeaders.issues.missing': "Missing security header: {header}",
    'securityHeaders.issues.ungraded': "securityheaders.com could not grade this site",
    'securityHeaders.summary.grade': "Grade: {grade}",
    'securityHeaders.summary.score': " (score {score})",
    'securityHeaders.summary.analyzed': "Security headers analyzed",
    'securityHeaders.interpretation.unavailable.message': "No security header grade available",
    'securityHeaders.interpretation.unavailable.recommendation': "Run the test manually at securityheaders.com to review your headers.",
    'securityHeaders.interpretation.gradeA.message': "Excellent security header configuration",
    'securityHeaders.interpretation.gradeA.recommendation': "Your security headers are well configured. Keep them in place when changing hosting.",
    'securityHeaders.interpretation.gradeB.message': "Good security headers with room to improve",
    'securityHeaders.interpretation.gradeB.recommendation': "Add the missing headers to reach an A grade.",
    'securityHeaders.interpretation.gradeC.message': "Several important security headers are missing",
    'securityHeaders.interpretation.gradeC.recommendation': "Add Content-Security-Policy, Strict-Transport-Security and the other missing headers.",
    'securityHeaders.interpretation.gradeDF.message': "Poor security header configuration",
    'securityHeaders.interpretation.gradeDF.recommendation': "Most recommended security headers are missing. Configure them on your web server or CDN as a priority.",
}


def translate(key: str, **params) -> str:
    """Render a catalog entry. Unknown keys come back unchanged."""
    template = CATALOG.get(key)
    if template is None:
        return key
    return template.format(**params) if params else template
