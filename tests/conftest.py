"""Shared fixtures: scripted probes and a controllable clock."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from domain_posture.scanner.probes.base import Probe
from domain_posture.util.types import DataSource, ProbeOutcome


class StubProbe(Probe):
    """Probe whose behaviour is scripted by the test."""

    def __init__(self, probe_id, delay=0.0, issues=None, error=None,
                 timeout_ms=None, label=None, data=None, summary='ok'):
        self.id = probe_id
        self.label = label or f"{probe_id} probe"
        self.description = f"{probe_id} description"
        self.timeout_ms = timeout_ms
        self.data_source = DataSource(name=f"{probe_id} source", url=f"https://{probe_id}.example")
        self.delay = delay
        self.issues = issues
        self.error = error
        self.data = data
        self.summary = summary
        self.calls = []

    async def run(self, domain):
        self.calls.append(domain)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ProbeOutcome(summary=self.summary, issues=self.issues, data=self.data)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        if isinstance(self.now, datetime):
            self.now = self.now + timedelta(**kwargs)
        else:
            self.now = self.now + kwargs.get('seconds', 0)


@pytest.fixture
def make_probe():
    """Factory for StubProbe instances."""
    return StubProbe


@pytest.fixture
def utc_clock():
    return FakeClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def mono_clock():
    return FakeClock(1000.0)
