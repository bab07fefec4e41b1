"""Mapping of provider base URLs onto the hosts that serve their TLS endpoints."""

from __future__ import annotations

from urllib.parse import urlsplit

import structlog

from kustomap.errors import ResolveError
from kustomap.models.graph import Graph

_log = structlog.get_logger(component="cacert.hosts")

# Archive downloads for github.com are served by the API host.
_HOST_ALIASES = {
    "github.com": "api.github.com",
    "www.github.com": "api.github.com",
}


def resolve_tls_host(base_url: str) -> str:
    """Return the hostname whose certificate chain must be trusted for *base_url*.

    Scheme, port, path and credentials are dropped.

    Raises:
        ResolveError: if *base_url* carries no hostname.
    """
    candidate = base_url.strip()
    if candidate and "://" not in candidate:
        candidate = f"https://{candidate}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError as exc:
        raise ResolveError(base_url, str(exc)) from exc
    if not host:
        raise ResolveError(base_url, "no host in URL")
    return _HOST_ALIASES.get(host, host)


def unique_hosts(graph: Graph | None) -> list[str]:
    """Return the sorted, de-duplicated TLS hosts behind ``graph.base_urls``.

    Base URLs that do not resolve are logged and skipped.
    """
    if graph is None or not graph.base_urls:
        return []

    hosts: set[str] = set()
    for key, base_url in graph.base_urls.items():
        try:
            hosts.add(resolve_tls_host(base_url))
        except ResolveError as exc:
            _log.warning("tls_host_unresolvable", node_id=key, base_url=base_url, error=exc.reason)
    return sorted(hosts)
