"""HTTP client shared by the probes that talk to public web services.

Wraps one aiohttp session (connection pooling, common User-Agent, total
timeout) and turns anything other than a 2xx answer into UpstreamError, so
probes only ever see either a body they can parse or an exception.
"""

import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..util.errors import UpstreamError

logger = logging.getLogger(__name__)


class UpstreamClient:
    """Async HTTP client for the probes' upstream services.

    Usage:
        async with UpstreamClient(timeout=15.0) as client:
            data = await client.get_json("https://crt.sh/", params={...})

    The session is created lazily, so a client built outside a running loop
    (e.g. when the registry is assembled at startup) is still usable.
    """

    def __init__(self, timeout: float = 15.0, user_agent: Optional[str] = None):
        """Initialize client with per-request timeout in seconds."""
        self.timeout = timeout
        self.user_agent = user_agent or 'domain-posture/1.0'
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                connector=aiohttp.TCPConnector(limit=20, limit_per_host=4),
                headers={'User-Agent': self.user_agent},
            )
        return self.session

    async def close(self) -> None:
        """Clean up session."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    async def get_text(self, url: str,
                       params: Optional[Dict[str, str]] = None,
                       accept: str = 'text/html,*/*') -> str:
        """GET a URL and return the body as text.

        Raises:
            UpstreamError: on non-2xx status or a transport failure
        """
        session = self._ensure_session()
        try:
            async with session.get(url, params=params, headers={'Accept': accept}) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise UpstreamError(
                        f"{resp.url.host or url} returned {resp.status}",
                        status=resp.status,
                        url=str(resp.url),
                    )
                body = await resp.text()
                logger.debug(f"GET {resp.url} -> {resp.status} ({len(body)} bytes)")
                return body
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Request to {url} failed: {type(e).__name__}: {e}", url=url) from e

    async def get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET a URL and decode the JSON body.

        An empty body decodes to None - crt.sh does this under load.

        Raises:
            UpstreamError: on non-2xx status, transport failure or invalid JSON
        """
        text = await self.get_text(url, params=params, accept='application/json,text/plain,*/*')
        if not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise UpstreamError(f"{url} returned invalid JSON", url=url) from e
