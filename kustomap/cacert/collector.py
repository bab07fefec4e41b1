"""CA trust collection for the hosts a graph build touched.

CACertCollector dials each distinct host once, captures the certificate
chain it presents without validating it, and merges every chain into a
single PEM bundle. Chains are cached per host for a TTL so repeated builds
against the same hosts do not re-handshake.

The handshake context used here never verifies anything. It only captures
what the server sends and must not be used to authenticate a connection;
consumers verify with ``build_ssl_context(graph.ca_bundle)`` instead.
"""

from __future__ import annotations

import asyncio
import ssl
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import structlog

from kustomap.cacert.certificates import Certificate, render_bundle
from kustomap.cacert.hosts import unique_hosts
from kustomap.errors import HandshakeError
from kustomap.models.config import CACertConfig
from kustomap.models.graph import Graph
from kustomap.observability.metrics import ca_cache_lookups_total, tls_handshakes_total

_log = structlog.get_logger(component="cacert.collector")

DEFAULT_TTL = timedelta(hours=1)
DEFAULT_PORT = 443


def _capture_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


_CAPTURE_CONTEXT = _capture_context()


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class CacheEntry:
    """A captured chain and when it was captured."""

    host: str
    chain: tuple[Certificate, ...]
    fetched_at: datetime

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return now - self.fetched_at < ttl


class CACertCollector:
    """Builds composite PEM trust bundles from live TLS handshakes.

    Args:
        ttl:         How long a captured chain is reused; zero disables caching.
        port:        TLS port dialled on every host.
        timeout:     Per-host connect + handshake timeout in seconds.
        max_workers: Concurrent handshakes per collection.
        clock:       Returns the current UTC time.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TTL,
        *,
        port: int = DEFAULT_PORT,
        timeout: float = 10.0,
        max_workers: int = 8,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if ttl < timedelta(0):
            raise ValueError("ttl must not be negative")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._ttl = ttl
        self._port = port
        self._timeout = timeout
        self._max_workers = max_workers
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._cache_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: CACertConfig) -> CACertCollector:
        return cls(
            ttl=timedelta(seconds=config.ttl_seconds),
            port=config.port,
            timeout=float(config.handshake_timeout),
            max_workers=config.max_workers,
        )

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def unique_hosts(self, graph: Graph | None) -> list[str]:
        return unique_hosts(graph)

    async def collect_and_attach(self, graph: Graph | None) -> str:
        """Collect chains for every host in ``graph.base_urls`` and set ``graph.ca_bundle``.

        Hosts whose handshake fails are skipped; a graph with no hosts is
        left untouched.

        Returns:
            The bundle assigned to the graph (empty if nothing was collected).
        """
        hosts = self.unique_hosts(graph)
        if graph is None or not hosts:
            _log.debug("ca_collection_skipped", reason="no hosts")
            return ""

        certificates = await self.collect(hosts)
        graph.ca_bundle = render_bundle(certificates)
        _log.info("ca_bundle_attached", hosts=len(hosts), certificates=len(certificates))
        return graph.ca_bundle

    async def collect(self, hosts: Iterable[str]) -> list[Certificate]:
        """Return the de-duplicated certificates presented by *hosts*, sorted by fingerprint."""
        targets = sorted(set(hosts))
        if not targets:
            return []

        semaphore = asyncio.Semaphore(self._max_workers)

        async def _bounded(host: str) -> tuple[Certificate, ...]:
            async with semaphore:
                return await self._chain_for(host)

        chains = await asyncio.gather(*(_bounded(host) for host in targets))

        unique: dict[str, Certificate] = {}
        for chain in chains:
            for cert in chain:
                unique.setdefault(cert.fingerprint, cert)
        return [unique[fp] for fp in sorted(unique)]

    def invalidate(self, host: str | None = None) -> None:
        """Drop the cached chain for *host*, or every cached chain."""
        with self._cache_lock:
            if host is None:
                self._cache.clear()
            else:
                self._cache.pop(host, None)

    async def _chain_for(self, host: str) -> tuple[Certificate, ...]:
        """Return *host*'s chain from cache or a fresh handshake; empty on failure."""
        if self._ttl > timedelta(0):
            with self._cache_lock:
                entry = self._cache.get(host)
            if entry is not None and entry.is_fresh(self._clock(), self._ttl):
                ca_cache_lookups_total.labels(result="hit").inc()
                _log.debug("ca_chain_cache_hit", host=host, fetched_at=entry.fetched_at.isoformat())
                return entry.chain
            ca_cache_lookups_total.labels(result="expired" if entry is not None else "miss").inc()

        try:
            chain = await self._fetch_chain(host)
        except HandshakeError as exc:
            tls_handshakes_total.labels(outcome="failure").inc()
            _log.warning("ca_chain_fetch_failed", host=host, port=self._port, error=exc.reason)
            return ()

        tls_handshakes_total.labels(outcome="success").inc()
        _log.debug("ca_chain_fetched", host=host, certificates=len(chain))
        if self._ttl > timedelta(0):
            with self._cache_lock:
                self._cache[host] = CacheEntry(host=host, chain=chain, fetched_at=self._clock())
        return chain

    async def _fetch_chain(self, host: str) -> tuple[Certificate, ...]:
        """Handshake with *host* and return the presented chain, leaf first.

        Raises:
            HandshakeError: on refusal, unreachable or unencodable host, timeout
                or TLS failure.
        """
        try:
            async with asyncio.timeout(self._timeout):
                _, writer = await asyncio.open_connection(
                    host,
                    self._port,
                    ssl=_CAPTURE_CONTEXT,
                    server_hostname=host,
                )
        except TimeoutError:
            raise HandshakeError(host, f"timed out after {self._timeout}s") from None
        except OSError as exc:
            raise HandshakeError(host, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            # IDNA encoding failures surface as UnicodeError
            raise HandshakeError(host, f"invalid host name: {exc}") from exc

        try:
            ssl_object = writer.get_extra_info("ssl_object")
            raw_chain: list[bytes] = list(ssl_object.get_unverified_chain() or []) if ssl_object else []
            if not raw_chain and ssl_object is not None:
                leaf = ssl_object.getpeercert(binary_form=True)
                raw_chain = [leaf] if leaf else []
        finally:
            writer.close()
            try:
                async with asyncio.timeout(self._timeout):
                    await writer.wait_closed()
            except (OSError, TimeoutError) as exc:
                _log.debug("tls_connection_close_failed", host=host, error=str(exc))

        if not raw_chain:
            raise HandshakeError(host, "server presented no certificates")
        return tuple(Certificate(raw=der) for der in raw_chain)
