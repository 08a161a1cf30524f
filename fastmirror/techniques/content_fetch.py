"""Content-fetch technique: a cache-busted ``GET`` of the mirror itself."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from fastmirror.config import USER_AGENT
from fastmirror.errors import InconclusiveReading, TechniqueFailed, TechniqueTimeout
from fastmirror.models import Endpoint, Technique
from fastmirror.techniques.base import ProbeTechnique, Reading, cache_busted, elapsed_ms

logger = logging.getLogger(__name__)


class ContentFetchTechnique(ProbeTechnique):
    """Fetch the full response body so load time can be measured too.

    Latency is the time to the response headers, load time the time until
    the body has been read.  Only OK and redirect responses confirm a full
    read; anything else is inconclusive and left to the other techniques.
    Redirects are not followed.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    @property
    def technique(self) -> Technique:
        return Technique.CONTENT_FETCH

    async def measure(self, endpoint: Endpoint, timeout: float) -> Reading:
        url = cache_busted(endpoint.url)
        headers = {
            "User-Agent": USER_AGENT,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }

        async with httpx.AsyncClient(
            http2=True,
            transport=self._transport,
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        ) as client:
            try:
                t0 = time.perf_counter()
                async with client.stream("GET", url, headers=headers) as response:
                    t_headers = time.perf_counter()
                    if not (200 <= response.status_code < 400):
                        raise InconclusiveReading(f"HTTP {response.status_code} from {endpoint.url}")
                    async for _ in response.aiter_raw():
                        pass
                    t_done = time.perf_counter()
            except httpx.TimeoutException as exc:
                raise TechniqueTimeout(f"content fetch timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                logger.debug("Content fetch failed for %s: %s", endpoint.url, exc)
                raise TechniqueFailed(f"{type(exc).__name__}: {exc}") from exc

        return Reading(
            latency_ms=elapsed_ms(t0, t_headers),
            load_time_ms=elapsed_ms(t0, t_done),
        )
