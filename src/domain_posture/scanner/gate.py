"""Cache and rate-limit gate in front of the orchestrator.

The orchestrator knows nothing about caching or budgets - this is the only
place that does. scan() is the usual entry point:

    cached?  -> return it
    budget?  -> refuse with RateLimitedError
    otherwise run the batch and remember the result,
    unless every probe failed
"""

import logging
from typing import Optional

from ..util.cache import ScanCache, cache_key
from ..util.concurrency import KeyedLock, RateLimiter
from ..util.config import Config
from ..util.errors import RateLimitedError
from ..util.types import ProbeStatus, ProgressCallback, RateLimitDecision, ScanAggregate
from .orchestrator import ScanOrchestrator

logger = logging.getLogger(__name__)


class ScanGate:
    """Short-circuits repeat scans and enforces the scan budget."""

    def __init__(self, orchestrator: ScanOrchestrator,
                 cache: Optional[ScanCache] = None,
                 rate_limiter: Optional[RateLimiter] = None):
        self.orchestrator = orchestrator
        self.cache = cache or ScanCache()
        self.rate_limiter = rate_limiter or RateLimiter()
        self._locks = KeyedLock()

    @classmethod
    def from_config(cls, orchestrator: ScanOrchestrator, config: Config) -> 'ScanGate':
        return cls(
            orchestrator,
            cache=ScanCache(ttl_seconds=config.cache_ttl_seconds, cache_dir=config.cache_dir),
            rate_limiter=RateLimiter(
                max_requests=config.rate_limit_max_scans,
                window_seconds=config.rate_limit_window_seconds,
            ),
        )

    def get(self, domain: str) -> Optional[ScanAggregate]:
        return self.cache.get(domain)

    def set(self, domain: str, aggregate: ScanAggregate) -> None:
        self.cache.set(domain, aggregate)

    def check_rate_limit(self) -> RateLimitDecision:
        """Consume one unit of scan budget if available."""
        decision = self.rate_limiter.check()
        if not decision.allowed:
            logger.warning(f"Scan refused, retry in {decision.retry_after_seconds}s")
        return decision

    async def scan(self, domain: str,
                   on_progress: Optional[ProgressCallback] = None,
                   force: bool = False) -> ScanAggregate:
        """Cached-or-fresh aggregate for a domain.

        Concurrent calls for the same domain are serialized, so the second
        caller gets the first caller's result from the cache instead of
        starting another batch.

        Args:
            domain: Target domain
            on_progress: Passed through to run_all() on a cache miss
            force: Skip the cache lookup (the budget still applies)

        Raises:
            RateLimitedError: when the scan budget is exhausted
        """
        key = cache_key(domain)
        async with self._locks.acquire(key):
            if not force:
                cached = self.cache.get(key)
                if cached is not None:
                    logger.info(f"Cache hit for {key}")
                    return cached

            decision = self.check_rate_limit()
            if not decision.allowed:
                raise RateLimitedError(decision.retry_after_seconds)

            aggregate = await self.orchestrator.run_all(key, on_progress=on_progress)
            if aggregate.probes and all(r.status is ProbeStatus.ERROR for r in aggregate.probes):
                logger.warning(f"Every probe failed for {key}; result not cached")
            else:
                self.cache.set(key, aggregate)
            return aggregate
