"""Scan orchestrator - runs every registered probe against one domain.

This is the engine that coordinates the probes:
1. Normalize the domain once
2. Mark every probe running and tell the observer
3. Launch all probes concurrently, each racing its own deadline
4. Record each settlement (complete / error) and tell the observer again
5. When the last probe settles, assemble the aggregate

A probe failing or timing out only ever affects its own row. run_all()
does not raise for probe problems - they come back as error-status results.
"""

import asyncio
import inspect
import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional

from ..util.time import duration_ms, iso_now, now_utc
from ..util.types import (ExecutedProbeResult, ProbeOutcome, ProbeStatus,
                          ProgressCallback, ScanAggregate)
from .messages import Translator, translate
from .normalization import normalize_domain
from .probes.base import Probe
from .registry import ProbeRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000


def validate_timeout_ms(ms) -> int:
    """Reject anything that isn't a finite, positive number of milliseconds."""
    if isinstance(ms, bool) or not isinstance(ms, (int, float)):
        raise ValueError(f"Invalid timeout value: {ms!r}")
    if not math.isfinite(ms) or ms <= 0:
        raise ValueError(f"Invalid timeout value: {ms!r}")
    return int(ms) if float(ms).is_integer() else ms


@dataclass(frozen=True)
class OrchestratorSettings:
    """Per-orchestrator configuration.

    default_timeout_ms applies to probes without their own timeout_ms.
    translate renders the timeout message (and the probe label inside it).
    """
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    translate: Translator = translate

    def __post_init__(self):
        validate_timeout_ms(self.default_timeout_ms)


def _discard_result(task: asyncio.Future) -> None:
    # Abandoned probe: mark any late exception as retrieved so the loop stays quiet
    if not task.cancelled():
        task.exception()


async def _invoke(probe: Probe, domain: str) -> ProbeOutcome:
    outcome = probe.run(domain)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


class ScanOrchestrator:
    """Drives the probe registry for one domain at a time.

    Holds no per-scan state - each run_all()/run_one() call builds its own
    results, so concurrent scans (even of the same domain) are independent.
    """

    def __init__(self, registry: ProbeRegistry, settings: Optional[OrchestratorSettings] = None):
        """Initialize with the probe registry and settings."""
        if not isinstance(registry, ProbeRegistry):
            registry = ProbeRegistry(registry)
        self.registry = registry
        self.settings = settings or OrchestratorSettings()

    @property
    def default_timeout_ms(self) -> int:
        return self.settings.default_timeout_ms

    def set_default_timeout(self, ms) -> None:
        """Change the fallback deadline for scans started from now on.

        Raises:
            ValueError: for non-finite or non-positive values (old value kept)
        """
        ms = validate_timeout_ms(ms)
        self.settings = replace(self.settings, default_timeout_ms=ms)
        logger.info(f"Default probe timeout set to {ms} ms")

    def list_probes(self) -> List[dict]:
        """Registry metadata for building progress displays before a scan."""
        return self.registry.describe()

    async def run_all(self, domain: str, on_progress: Optional[ProgressCallback] = None) -> ScanAggregate:
        """Run every registered probe concurrently against one domain.

        Args:
            domain: Target domain (whitespace and case are normalized)
            on_progress: Optional observer, called with a snapshot of all
                results at batch start and after each probe settles

        Returns:
            ScanAggregate with one result per registered probe, in registry order
        """
        domain = normalize_domain(domain)
        settings = self.settings  # later set_default_timeout() calls don't affect this batch
        started = now_utc()

        results = [self._new_result(probe) for probe in self.registry]
        for result in results:
            self._mark_running(result)

        logger.info(f"Starting scan of {domain} with {len(results)} probes")
        await self._notify(on_progress, results)

        async def settle(probe: Probe, result: ExecutedProbeResult):
            await self._execute(probe, domain, result, settings)
            await self._notify(on_progress, results)

        await asyncio.gather(*(settle(p, r) for p, r in zip(self.registry, results)))

        failed = sum(1 for r in results if r.status is ProbeStatus.ERROR)
        aggregate = ScanAggregate(
            domain=domain,
            timestamp=iso_now(),
            probes=results,
            issues=[issue for r in results for issue in r.issues],
        )
        logger.info(
            f"Scan of {domain} finished: {len(results) - failed} complete, "
            f"{failed} failed, {len(aggregate.issues)} issues ({duration_ms(started):.0f} ms)"
        )
        return aggregate

    def iter_progress(self, domain: str) -> 'ScanProgress':
        """Async-iterator form of run_all().

        Usage:
            progress = orchestrator.iter_progress("example.com")
            async for snapshot in progress:
                render(snapshot)
            aggregate = progress.aggregate
        """
        return ScanProgress(self, domain)

    async def run_one(self, probe_id: str, domain: str) -> ExecutedProbeResult:
        """Run a single probe outside of any batch (e.g. retrying a failed row).

        Raises:
            ProbeNotFoundError: if probe_id is not registered
        """
        probe = self.registry.get(probe_id)
        domain = normalize_domain(domain)

        result = self._new_result(probe)
        self._mark_running(result)
        await self._execute(probe, domain, result, self.settings)
        return result

    @staticmethod
    def _new_result(probe: Probe) -> ExecutedProbeResult:
        return ExecutedProbeResult(id=probe.id, label=probe.label, data_source=probe.data_source)

    @staticmethod
    def _mark_running(result: ExecutedProbeResult) -> None:
        result.status = ProbeStatus.RUNNING
        result.started_at = iso_now()

    async def _execute(self, probe: Probe, domain: str,
                       result: ExecutedProbeResult, settings: OrchestratorSettings) -> None:
        """Race one probe against its deadline and record the terminal state.

        Never raises for probe failures. If the caller is cancelled the probe
        is cancelled with it.
        """
        timeout_ms = probe.timeout_ms or settings.default_timeout_ms
        task = asyncio.ensure_future(_invoke(probe, domain))

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            # Lost the race - whatever the probe does later is ignored
            task.cancel()
            task.add_done_callback(_discard_result)
            label = settings.translate(probe.label)
            self._fail(result, settings.translate('common.errors.timeout', label=label, timeout=timeout_ms))
            logger.warning(f"Probe {probe.id} timed out after {timeout_ms} ms for {domain}")
            return

        try:
            outcome = self._coerce_outcome(task.result())
            issues = outcome.issues
            if issues is None:
                issues = probe.derive_issues(outcome, domain)
        except asyncio.CancelledError:
            # The probe cancelled itself
            self._fail(result, 'Probe was cancelled')
            logger.warning(f"Probe {probe.id} was cancelled for {domain}")
            return
        except Exception as e:
            self._fail(result, str(e) or type(e).__name__)
            logger.warning(f"Probe {probe.id} failed for {domain}: {type(e).__name__}: {e}")
            return

        result.summary = outcome.summary
        result.issues = list(issues or [])
        result.data = outcome.data
        result.status = ProbeStatus.COMPLETE
        result.finished_at = iso_now()
        logger.debug(f"Probe {probe.id} complete for {domain}: {len(result.issues)} issues")

    @staticmethod
    def _coerce_outcome(outcome) -> ProbeOutcome:
        if isinstance(outcome, ProbeOutcome):
            return outcome
        if isinstance(outcome, dict) and 'summary' in outcome:
            return ProbeOutcome(
                summary=outcome['summary'],
                issues=outcome.get('issues'),
                data=outcome.get('data'),
            )
        raise TypeError(f"Probe returned {type(outcome).__name__}, expected ProbeOutcome")

    @staticmethod
    def _fail(result: ExecutedProbeResult, message: str) -> None:
        result.status = ProbeStatus.ERROR
        result.error = message
        result.finished_at = iso_now()

    @staticmethod
    async def _notify(on_progress: Optional[ProgressCallback], results: List[ExecutedProbeResult]) -> None:
        if on_progress is None:
            return
        snapshot = [r.snapshot() for r in results]
        try:
            ret = on_progress(snapshot)
            if inspect.isawaitable(ret):
                await ret
        except Exception:
            # A broken observer must not take the batch down with it
            logger.exception("Progress callback raised")


_DONE = object()


class ScanProgress:
    """One batch exposed as a finite async iterator of snapshots.

    Yields a snapshot at batch start and one per probe settlement, then
    stops. The final aggregate is on .aggregate once iteration ends.
    Not restartable.
    """

    def __init__(self, orchestrator: ScanOrchestrator, domain: str):
        self._orchestrator = orchestrator
        self._domain = domain
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self.aggregate: Optional[ScanAggregate] = None

    def __aiter__(self):
        if self._task is not None:
            raise RuntimeError("ScanProgress can only be iterated once")
        self._queue = asyncio.Queue()
        self._task = asyncio.ensure_future(
            self._orchestrator.run_all(self._domain, on_progress=self._queue.put_nowait)
        )
        self._task.add_done_callback(lambda _: self._queue.put_nowait(_DONE))
        return self

    async def __anext__(self) -> List[ExecutedProbeResult]:
        if self._queue is None:
            self.__aiter__()
        item = await self._queue.get()
        if item is _DONE:
            self.aggregate = self._task.result()
            raise StopAsyncIteration
        return item
