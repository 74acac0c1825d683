"""Core data types and enums used across the scanner.

These types make scan results explicit and consistent.
No magic strings floating around - every status and severity has a defined meaning.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional


class ProbeStatus(Enum):
    """Lifecycle of a single probe inside one scan.

    Pending: Registered but not started yet
    Running: Launched, waiting for the probe or its timer
    Complete: The probe returned an outcome before its deadline
    Error: The probe raised, or the deadline passed first
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProbeStatus.COMPLETE, ProbeStatus.ERROR)


class Severity(Enum):
    """How concerning a probe's findings are, as shown to the user."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    ERROR = "error"


@dataclass(frozen=True)
class DataSource:
    """Attribution for the public service a probe relies on."""
    name: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {'name': self.name, 'url': self.url}


@dataclass
class ProbeOutcome:
    """What a probe's run() returns on success.

    issues=None means the probe did not decide; the orchestrator then asks
    the probe's derive_issues() step, falling back to an empty list.
    """
    summary: str
    issues: Optional[List[str]] = None
    data: Optional[Dict[str, Any]] = None


@dataclass
class ExecutedProbeResult:
    """Orchestrator-owned record of one probe in one scan.

    Exactly one of these exists per registered probe per scan.
    finished_at is set if and only if the status is terminal.
    """
    id: str
    label: str
    status: ProbeStatus = ProbeStatus.PENDING
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    summary: Optional[str] = None
    issues: List[str] = field(default_factory=list)
    data: Optional[Dict[str, Any]] = None
    data_source: Optional[DataSource] = None
    error: Optional[str] = None

    def snapshot(self) -> 'ExecutedProbeResult':
        """Detached copy safe to hand to progress observers."""
        return replace(self, issues=list(self.issues))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON output."""
        return {
            'id': self.id,
            'label': self.label,
            'status': self.status.value,
            'started_at': self.started_at,
            'finished_at': self.finished_at,
            'summary': self.summary,
            'issues': list(self.issues),
            'data': self.data,
            'data_source': self.data_source.to_dict() if self.data_source else None,
            'error': self.error,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ExecutedProbeResult':
        """Rebuild from stored JSON. Missing issues are treated as empty."""
        source = raw.get('data_source')
        issues = raw.get('issues')
        return cls(
            id=str(raw.get('id', '')),
            label=str(raw.get('label', '')),
            status=ProbeStatus(raw.get('status', ProbeStatus.PENDING.value)),
            started_at=raw.get('started_at'),
            finished_at=raw.get('finished_at'),
            summary=raw.get('summary'),
            issues=list(issues) if isinstance(issues, list) else [],
            data=raw.get('data'),
            data_source=DataSource(**source) if isinstance(source, dict) else None,
            error=raw.get('error'),
        )


@dataclass(frozen=True)
class ScanAggregate:
    """Consolidated result of one batch against one domain."""
    domain: str
    timestamp: str
    probes: List[ExecutedProbeResult] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def get(self, probe_id: str) -> Optional[ExecutedProbeResult]:
        for result in self.probes:
            if result.id == probe_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'domain': self.domain,
            'timestamp': self.timestamp,
            'probes': [p.to_dict() for p in self.probes],
            'issues': list(self.issues),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ScanAggregate':
        """Rebuild from stored JSON.

        Older exports may lack 'issues' or 'probes' entirely - both are
        treated as empty rather than rejected.
        """
        probes = raw.get('probes')
        issues = raw.get('issues')
        return cls(
            domain=str(raw.get('domain', '')),
            timestamp=str(raw.get('timestamp', '')),
            probes=[ExecutedProbeResult.from_dict(p) for p in probes if isinstance(p, dict)]
            if isinstance(probes, list) else [],
            issues=list(issues) if isinstance(issues, list) else [],
        )


@dataclass(frozen=True)
class Interpretation:
    """Severity, message and remediation derived from one executed probe."""
    severity: Severity
    message: str
    recommendation: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'severity': self.severity.value,
            'message': self.message,
            'recommendation': self.recommendation,
        }


@dataclass(frozen=True)
class RateLimitDecision:
    """Answer from the rate-limit gate.

    retry_after_seconds is only set when allowed is False.
    """
    allowed: bool
    retry_after_seconds: Optional[int] = None


# Observers may be plain functions or coroutine functions
ProgressCallback = Callable[[List[ExecutedProbeResult]], Optional[Awaitable[None]]]
