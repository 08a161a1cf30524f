"""Endpoint registry.

Parses ``"url#Display Name"`` entries into :class:`Endpoint` records and
groups them by network origin so the preliminary pass probes each origin
only once.

One origin is assumed to have uniform latency for every path under it.
That is an approximation for CDNs that pick an edge by path.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence
from urllib.parse import unquote, urlsplit

from fastmirror.models import Endpoint, ProbeResult

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SEPARATORS = re.compile(r"[\t|\"'\r\n]+")
_COMMAS = re.compile(r",+")


def derive_origin(url: str) -> str:
    """Return ``scheme://host[:port]`` for *url*, eliding default ports."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def parse_endpoint(raw: str, index: int) -> Endpoint:
    """Parse one ``url`` or ``url#Name`` entry.

    Raises ``ValueError`` for empty entries, unparsable URLs, schemes
    other than http(s) and URLs without a host.
    """
    entry = (raw or "").strip()
    if not entry:
        raise ValueError("empty entry")

    url, _, name = entry.partition("#")
    url = url.strip()
    if not url:
        raise ValueError(f"no URL in {raw!r}")

    try:
        parts = urlsplit(url)
        parts.port  # raises on a malformed port
    except ValueError as exc:
        raise ValueError(f"invalid URL {url!r}: {exc}") from exc

    if parts.scheme.lower() not in _DEFAULT_PORTS:
        raise ValueError(f"unsupported scheme in {url!r}")
    if not parts.hostname:
        raise ValueError(f"no host in {url!r}")

    display_name = unquote(name).strip() or parts.hostname
    return Endpoint(
        url=url,
        display_name=display_name,
        origin=derive_origin(url),
        sequence_index=index,
    )


def parse_endpoints(entries: Iterable[str]) -> list[Endpoint]:
    """Parse every entry, dropping malformed ones with a warning."""
    endpoints: list[Endpoint] = []
    for raw in entries:
        try:
            endpoints.append(parse_endpoint(raw, len(endpoints)))
        except ValueError as exc:
            logger.warning("Dropping endpoint entry %r: %s", raw, exc)
    return endpoints


def parse_url_list(text: str | None) -> list[str]:
    """Split an environment-style URL list into entries.

    Tabs, pipes, quotes and line breaks all act as separators alongside
    commas; repeated separators collapse and empty entries are dropped.
    """
    if not text:
        return []
    normalized = _COMMAS.sub(",", _SEPARATORS.sub(",", text)).strip(",")
    return [item.strip() for item in normalized.split(",") if item.strip()]


def group_by_origin(endpoints: Sequence[Endpoint]) -> dict[str, list[Endpoint]]:
    """Group endpoints by origin, preserving first-seen order."""
    groups: dict[str, list[Endpoint]] = {}
    for endpoint in endpoints:
        groups.setdefault(endpoint.origin, []).append(endpoint)
    return groups


def representatives(groups: dict[str, list[Endpoint]]) -> list[Endpoint]:
    """Return the endpoint probed on behalf of each origin."""
    return [members[0] for members in groups.values()]


def broadcast(result: ProbeResult, members: Sequence[Endpoint]) -> list[ProbeResult]:
    """Copy a representative's reading to every endpoint of its origin."""
    return [
        result if member == result.endpoint else result.for_endpoint(member)
        for member in members
    ]
