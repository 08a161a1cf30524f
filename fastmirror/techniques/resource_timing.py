"""Resource-timing technique.

Observes the connection phases of one request directly:
  DNS -> TCP -> TLS -> first byte

Each phase is timed with time.perf_counter().  After TLS, the same
socket carries a ``HEAD`` request so the first-byte time reflects only
the server's response, not a second handshake.  Any status code counts:
a 404 still proves how quickly the mirror answers.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import os
import socket
import ssl
import time
from typing import Optional
from urllib.parse import urlsplit

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from fastmirror.config import USER_AGENT
from fastmirror.errors import TechniqueFailed, TechniqueTimeout, TechniqueUnavailable
from fastmirror.models import Endpoint, Technique, TimingBreakdown
from fastmirror.techniques.base import ProbeTechnique, Reading

logger = logging.getLogger(__name__)

_PROXY_VARS = ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy")

# dnspython answers these without ever consulting /etc/hosts or the OS resolver.
_RESOLVER_GAPS = (
    dns.resolver.NXDOMAIN,
    dns.resolver.NoAnswer,
    dns.resolver.NoNameservers,
    dns.resolver.NoResolverConfiguration,
)


def proxy_configured() -> Optional[str]:
    """Return the name of the first proxy variable set in the environment."""
    for var in _PROXY_VARS:
        if os.environ.get(var):
            return var
    return None


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


class ResourceTimingTechnique(ProbeTechnique):
    """Phase-timed ``HEAD`` request over a raw socket."""

    def __init__(self, dns_server: Optional[str] = None) -> None:
        self._dns_server = dns_server

    @property
    def technique(self) -> Technique:
        return Technique.RESOURCE_TIMING

    async def measure(self, endpoint: Endpoint, timeout: float) -> Reading:
        # Raw sockets would bypass the proxy the HTTP techniques go through.
        proxy_var = proxy_configured()
        if proxy_var:
            raise TechniqueUnavailable(f"{proxy_var} is set")

        parsed = urlsplit(endpoint.url)
        hostname = parsed.hostname or ""
        https = parsed.scheme.lower() == "https"
        port = parsed.port or (443 if https else 80)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"

        writer: Optional[asyncio.StreamWriter] = None
        try:
            ip, dns_ms = await self._resolve(hostname, port, timeout)

            t0 = time.perf_counter()
            reader, writer = await asyncio.wait_for(asyncio.open_connection(ip, port), timeout=timeout)
            tcp_ms = (time.perf_counter() - t0) * 1000.0

            tls_ms = 0.0
            if https:
                reader, writer, tls_ms = await _upgrade_tls(reader, writer, ip, port, hostname, timeout)

            ttfb_ms = await _head_request(reader, writer, _host_header(hostname, port, https), path, timeout)
        except asyncio.TimeoutError as exc:
            raise TechniqueTimeout(f"{hostname} did not answer within {timeout:.1f}s") from exc
        except (OSError, ssl.SSLError, dns.exception.DNSException) as exc:
            logger.debug("Resource timing failed for %s: %s", endpoint.url, exc)
            raise TechniqueFailed(f"{type(exc).__name__}: {exc}") from exc
        finally:
            _safe_close_writer(writer)

        timing = TimingBreakdown(
            dns_ms=round(dns_ms, 3),
            tcp_ms=round(tcp_ms, 3),
            tls_ms=round(tls_ms, 3),
            ttfb_ms=round(ttfb_ms, 3),
        )
        return Reading(latency_ms=round(timing.total_ms), timing=timing)

    async def _resolve(self, hostname: str, port: int, timeout: float) -> tuple[str, float]:
        """Resolve *hostname* and return (ip, elapsed_ms).

        IP literals skip DNS entirely.  Prefers A, falls back to AAAA.
        Names dnspython cannot answer, such as hosts-file entries, go to
        the system resolver.
        """
        if _is_ip_literal(hostname):
            return hostname, 0.0

        try:
            return await self._resolve_dns(hostname, timeout)
        except _RESOLVER_GAPS as exc:
            logger.debug("dnspython could not resolve %s (%s), asking the system resolver", hostname, exc)
        return await _resolve_system(hostname, port, timeout)

    async def _resolve_dns(self, hostname: str, timeout: float) -> tuple[str, float]:
        resolver = dns.asyncresolver.Resolver()
        resolver.lifetime = timeout
        if self._dns_server:
            resolver.nameservers = [self._dns_server]

        last_error: Optional[dns.exception.DNSException] = None
        for rdtype in (dns.rdatatype.A, dns.rdatatype.AAAA):
            try:
                t0 = time.perf_counter()
                answer = await resolver.resolve(hostname, rdtype)
                return str(answer[0]), (time.perf_counter() - t0) * 1000.0
            except dns.exception.Timeout as exc:
                raise asyncio.TimeoutError(str(exc)) from exc
            except dns.exception.DNSException as exc:
                last_error = exc
        raise last_error  # type: ignore[misc]


async def _resolve_system(hostname: str, port: int, timeout: float) -> tuple[str, float]:
    """Resolve through ``getaddrinfo`` and return (ip, elapsed_ms), IPv4 first."""
    loop = asyncio.get_running_loop()
    t0 = time.perf_counter()
    infos = await asyncio.wait_for(
        loop.getaddrinfo(hostname, port, type=socket.SOCK_STREAM),
        timeout=timeout,
    )
    elapsed = (time.perf_counter() - t0) * 1000.0
    if not infos:
        raise socket.gaierror(f"no addresses for {hostname}")
    infos.sort(key=lambda info: info[0] != socket.AF_INET)
    return str(infos[0][4][0]), elapsed


def _host_header(hostname: str, port: int, https: bool) -> str:
    """Value of the ``Host`` header: IPv6 literals bracketed, default ports omitted."""
    host = hostname
    if _is_ip_literal(hostname) and ipaddress.ip_address(hostname).version == 6:
        host = f"[{hostname}]"
    if port != (443 if https else 80):
        host = f"{host}:{port}"
    return host


def _build_ssl_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.set_alpn_protocols(["http/1.1"])
    return ctx


async def _upgrade_tls(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    ip: str,
    port: int,
    hostname: str,
    timeout: float,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter, float]:
    """Upgrade the TCP connection to TLS and return the handshake time.

    ``StreamWriter.start_tls`` only exists from Python 3.11; older
    interpreters open a fresh TLS connection and time that instead.
    """
    ctx = _build_ssl_context()
    t0 = time.perf_counter()
    if hasattr(writer, "start_tls"):
        await asyncio.wait_for(writer.start_tls(ctx, server_hostname=hostname), timeout=timeout)
        return reader, writer, (time.perf_counter() - t0) * 1000.0

    _safe_close_writer(writer)
    reader, writer = await asyncio.wait_for(
        asyncio.open_connection(ip, port, ssl=ctx, server_hostname=hostname),
        timeout=timeout,
    )
    return reader, writer, (time.perf_counter() - t0) * 1000.0


async def _head_request(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    host: str,
    path: str,
    timeout: float,
) -> float:
    """Send ``HEAD`` on the open connection and return time to the status line."""
    request = "\r\n".join([
        f"HEAD {path} HTTP/1.1",
        f"Host: {host}",
        f"User-Agent: {USER_AGENT}",
        "Accept: */*",
        "Cache-Control: no-cache",
        "Connection: close",
        "",
        "",
    ]).encode()

    t_send = time.perf_counter()
    writer.write(request)
    await writer.drain()

    status_line = await asyncio.wait_for(reader.readline(), timeout=timeout)
    t_first_byte = time.perf_counter()
    if not status_line.startswith(b"HTTP/"):
        raise ConnectionError(f"unexpected response from {host}: {status_line[:40]!r}")
    return (t_first_byte - t_send) * 1000.0


def _safe_close_writer(writer: Optional[asyncio.StreamWriter]) -> None:
    """Close a stream writer without raising on already-closed transports."""
    if writer is None:
        return
    try:
        writer.close()
    except (OSError, RuntimeError):
        pass
