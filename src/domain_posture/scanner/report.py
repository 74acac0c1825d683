"""Severity-ranked report for one scan.

Pairs every executed probe with its interpretation and orders the rows so
the worst findings come first. Within one severity the registry order is
kept (sorted() is stable).
"""

from dataclasses import dataclass
from typing import Dict, List

from ..util.types import ExecutedProbeResult, Interpretation, ScanAggregate, Severity
from .interpretation import interpret
from .messages import Translator, translate

SEVERITY_RANK: Dict[Severity, int] = {
    Severity.CRITICAL: 0,
    Severity.ERROR: 1,
    Severity.WARNING: 2,
    Severity.INFO: 3,
    Severity.SUCCESS: 4,
}

SEVERITY_MARKERS = {
    Severity.CRITICAL: '[CRITICAL]',
    Severity.ERROR: '[ERROR]',
    Severity.WARNING: '[WARNING]',
    Severity.INFO: '[INFO]',
    Severity.SUCCESS: '[OK]',
}


@dataclass(frozen=True)
class ReportRow:
    result: ExecutedProbeResult
    interpretation: Interpretation

    @property
    def severity(self) -> Severity:
        return self.interpretation.severity

    def to_dict(self) -> dict:
        row = self.result.to_dict()
        row['interpretation'] = self.interpretation.to_dict()
        return row


def build_report(aggregate: ScanAggregate, t: Translator = translate) -> List[ReportRow]:
    """Interpret every probe and rank worst-first."""
    rows = [ReportRow(result, interpret(result, t)) for result in aggregate.probes]
    return sorted(rows, key=lambda row: SEVERITY_RANK[row.severity])


def severity_counts(rows: List[ReportRow]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in SEVERITY_RANK}
    for row in rows:
        counts[row.severity.value] += 1
    return counts


def render_text(aggregate: ScanAggregate, t: Translator = translate) -> str:
    """Plain-text report suitable for a terminal."""
    rows = build_report(aggregate, t)
    counts = severity_counts(rows)

    lines = [
        "=" * 60,
        f"Security posture: {aggregate.domain}",
        f"Scanned at: {aggregate.timestamp}",
        "=" * 60,
    ]

    for row in rows:
        result, interpretation = row.result, row.interpretation
        lines.append("")
        lines.append(f"{SEVERITY_MARKERS[row.severity]} {t(result.label)}: {interpretation.message}")
        if result.summary:
            lines.append(f"    {result.summary}")
        for issue in result.issues:
            lines.append(f"    - {issue}")
        lines.append(f"    -> {interpretation.recommendation}")
        if result.data_source:
            lines.append(f"    Source: {result.data_source.name} ({result.data_source.url})")

    lines.append("")
    lines.append("-" * 60)
    lines.append(", ".join(f"{name}: {count}" for name, count in counts.items() if count))
    lines.append(f"Total issues: {len(aggregate.issues)}")
    return "\n".join(lines)
