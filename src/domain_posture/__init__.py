"""Domain security posture scanner.

Runs a fixed battery of public, unauthenticated probes (DNS, email
authentication, Certificate Transparency, RDAP, HTTP security headers)
against one domain and turns the results into ranked findings.
"""

__version__ = '1.0.0'
