"""Scan orchestration, probes and interpretation."""

from .gate import ScanGate
from .interpretation import INTERPRETERS, interpret
from .orchestrator import OrchestratorSettings, ScanOrchestrator, ScanProgress
from .registry import ProbeRegistry, build_default_registry

__all__ = [
    'ScanGate',
    'INTERPRETERS',
    'interpret',
    'OrchestratorSettings',
    'ScanOrchestrator',
    'ScanProgress',
    'ProbeRegistry',
    'build_default_registry',
]
