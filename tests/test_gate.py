"""
Unit Tests for the Cache / Rate-Limit Gate
"""

import asyncio

import pytest

from domain_posture.scanner.gate import ScanGate
from domain_posture.scanner.orchestrator import ScanOrchestrator
from domain_posture.scanner.registry import ProbeRegistry
from domain_posture.util.cache import ScanCache
from domain_posture.util.concurrency import KeyedLock, RateLimiter
from domain_posture.util.config import Config
from domain_posture.util.errors import RateLimitedError


@pytest.fixture
def probe(make_probe):
    return make_probe('p', delay=0.01, issues=['finding'])


@pytest.fixture
def gate_for(probe, utc_clock, mono_clock):
    def build(max_requests=10, window_seconds=60):
        orchestrator = ScanOrchestrator(ProbeRegistry([probe]))
        return ScanGate(
            orchestrator,
            cache=ScanCache(ttl_seconds=900, clock=utc_clock),
            rate_limiter=RateLimiter(max_requests=max_requests, window_seconds=window_seconds, clock=mono_clock),
        )
    return build


class TestScanGate:
    """scan() combines cache lookup, budget check and run"""

    def test_second_scan_served_from_cache(self, gate_for, probe):
        gate = gate_for()

        async def twice():
            first = await gate.scan('example.com')
            second = await gate.scan('EXAMPLE.com ')
            return first, second

        first, second = asyncio.run(twice())
        assert first is second
        assert probe.calls == ['example.com']

    def test_cache_expiry_triggers_new_scan(self, gate_for, probe, utc_clock):
        gate = gate_for()
        asyncio.run(gate.scan('example.com'))
        utc_clock.advance(seconds=901)
        asyncio.run(gate.scan('example.com'))
        assert len(probe.calls) == 2

    def test_force_skips_cache(self, gate_for, probe):
        gate = gate_for()
        asyncio.run(gate.scan('example.com'))
        asyncio.run(gate.scan('example.com', force=True))
        assert len(probe.calls) == 2

    def test_concurrent_scans_of_same_domain_share_one_batch(self, gate_for, probe):
        gate = gate_for()

        async def together():
            return await asyncio.gather(gate.scan('example.com'), gate.scan('example.com'))

        first, second = asyncio.run(together())
        assert first is second
        assert probe.calls == ['example.com']

    def test_rate_limited_scan_raises_with_retry_after(self, gate_for, probe, mono_clock):
        gate = gate_for(max_requests=1, window_seconds=60)
        asyncio.run(gate.scan('one.example'))

        mono_clock.advance(seconds=30)
        with pytest.raises(RateLimitedError) as excinfo:
            asyncio.run(gate.scan('two.example'))

        assert excinfo.value.retry_after_seconds == 30
        assert 'wait 30 seconds' in str(excinfo.value)
        assert probe.calls == ['one.example']

    def test_cache_hit_does_not_consume_budget(self, gate_for, probe):
        gate = gate_for(max_requests=1)
        asyncio.run(gate.scan('example.com'))
        # Still answered from cache even though the budget is spent
        asyncio.run(gate.scan('example.com'))
        assert gate.rate_limiter.remaining() == 0
        assert len(probe.calls) == 1

    def test_progress_passed_through_on_miss(self, gate_for):
        gate = gate_for()
        snapshots = []
        asyncio.run(gate.scan('example.com', on_progress=snapshots.append))
        assert len(snapshots) == 2

    def test_all_failed_batch_is_not_cached(self, make_probe, utc_clock, mono_clock):
        broken = make_probe('broken', error=RuntimeError('upstream 503'))
        gate = ScanGate(
            ScanOrchestrator(ProbeRegistry([broken])),
            cache=ScanCache(ttl_seconds=900, clock=utc_clock),
            rate_limiter=RateLimiter(max_requests=10, window_seconds=60, clock=mono_clock),
        )

        async def twice():
            await gate.scan('example.com')
            return await gate.scan('example.com')

        second = asyncio.run(twice())
        assert second.probes[0].error == 'upstream 503'
        assert gate.get('example.com') is None
        assert broken.calls == ['example.com', 'example.com']

    def test_partially_failed_batch_is_cached(self, make_probe, utc_clock, mono_clock):
        probes = [make_probe('ok'), make_probe('broken', error=RuntimeError('upstream 503'))]
        gate = ScanGate(
            ScanOrchestrator(ProbeRegistry(probes)),
            cache=ScanCache(ttl_seconds=900, clock=utc_clock),
            rate_limiter=RateLimiter(max_requests=10, window_seconds=60, clock=mono_clock),
        )
        aggregate = asyncio.run(gate.scan('example.com'))
        assert gate.get('example.com') is aggregate

    def test_get_set_and_check_rate_limit(self, gate_for):
        gate = gate_for(max_requests=2)
        assert gate.get('example.com') is None

        aggregate = asyncio.run(gate.orchestrator.run_all('example.com'))
        gate.set('example.com', aggregate)
        assert gate.get('Example.com') is aggregate

        assert gate.check_rate_limit().allowed is True
        assert gate.check_rate_limit().allowed is True
        refused = gate.check_rate_limit()
        assert refused.allowed is False
        assert refused.retry_after_seconds == 60

    def test_from_config(self, probe, monkeypatch, tmp_path):
        monkeypatch.setenv('CACHE_TTL_SECONDS', '120')
        monkeypatch.setenv('RATE_LIMIT_MAX_SCANS', '3')
        monkeypatch.setenv('RATE_LIMIT_WINDOW_SECONDS', '30')
        monkeypatch.setenv('CACHE_DIR', str(tmp_path / 'cache'))
        config = Config(env_file=tmp_path / 'missing.env')

        gate = ScanGate.from_config(ScanOrchestrator(ProbeRegistry([probe])), config)
        assert gate.cache.ttl.total_seconds() == 120
        assert gate.cache.cache_dir == tmp_path / 'cache'
        assert gate.rate_limiter.max_requests == 3
        assert gate.rate_limiter.window_seconds == 30


class TestRateLimiter:

    def test_sliding_window(self, mono_clock):
        limiter = RateLimiter(max_requests=2, window_seconds=10, clock=mono_clock)
        assert limiter.check().allowed
        mono_clock.advance(seconds=4)
        assert limiter.check().allowed

        refused = limiter.check()
        assert not refused.allowed
        assert refused.retry_after_seconds == 6

        # Oldest request leaves the window
        mono_clock.advance(seconds=6)
        assert limiter.check().allowed

    def test_refused_requests_consume_nothing(self, mono_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=mono_clock)
        limiter.check()
        for _ in range(5):
            assert not limiter.check().allowed
        mono_clock.advance(seconds=10)
        assert limiter.remaining() == 1

    def test_retry_after_is_at_least_one_second(self, mono_clock):
        limiter = RateLimiter(max_requests=1, window_seconds=10, clock=mono_clock)
        limiter.check()
        mono_clock.advance(seconds=9.9)
        assert limiter.check().retry_after_seconds == 1

    @pytest.mark.parametrize('kwargs', [{'max_requests': 0}, {'window_seconds': 0}])
    def test_invalid_settings(self, kwargs):
        with pytest.raises(ValueError):
            RateLimiter(**kwargs)


class TestKeyedLock:

    def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.acquire('example.com'):
                events.append(f"{name} in")
                await asyncio.sleep(0.01)
                events.append(f"{name} out")

        async def main():
            await asyncio.gather(worker('a'), worker('b'))

        asyncio.run(main())
        assert events == ['a in', 'a out', 'b in', 'b out']

    def test_locks_dropped_when_idle(self):
        locks = KeyedLock()

        async def main():
            async with locks.acquire('example.com'):
                assert 'example.com' in locks._locks

        asyncio.run(main())
        assert locks._locks == {}
