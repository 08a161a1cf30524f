"""Image-load technique: request the origin's favicon and time the answer."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx

from fastmirror.config import IMAGE_PROBE_PATH, USER_AGENT
from fastmirror.errors import TechniqueFailed, TechniqueTimeout
from fastmirror.models import Endpoint, Technique
from fastmirror.techniques.base import ProbeTechnique, Reading, cache_busted, elapsed_ms

logger = logging.getLogger(__name__)


class ImageLoadTechnique(ProbeTechnique):
    """Fallback that only needs the origin to answer an image request.

    Any HTTP response counts, a missing favicon included: the mirror
    still had to answer.  Only the headers are waited for.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    @property
    def technique(self) -> Technique:
        return Technique.IMAGE_LOAD

    async def measure(self, endpoint: Endpoint, timeout: float) -> Reading:
        url = cache_busted(endpoint.origin + IMAGE_PROBE_PATH)
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "image/avif,image/webp,image/*,*/*;q=0.8",
        }

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
        ) as client:
            try:
                t0 = time.perf_counter()
                async with client.stream("GET", url, headers=headers):
                    t_headers = time.perf_counter()
            except httpx.TimeoutException as exc:
                raise TechniqueTimeout(f"image load timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                logger.debug("Image load failed for %s: %s", url, exc)
                raise TechniqueFailed(f"{type(exc).__name__}: {exc}") from exc

        return Reading(latency_ms=elapsed_ms(t0, t_headers))
