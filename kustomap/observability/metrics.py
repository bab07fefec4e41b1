"""Prometheus metrics for graph resolution and trust collection."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

nodes_total = Counter(
    "kustomap_nodes_total",
    "Nodes visited by the graph builder, by final status.",
    ["provider", "status"],
)

snapshot_fetches_total = Counter(
    "kustomap_snapshot_fetches_total",
    "Repository snapshot downloads, by outcome.",
    ["provider", "outcome"],
)

snapshot_extract_seconds = Histogram(
    "kustomap_snapshot_extract_seconds",
    "Wall-clock time spent unpacking a snapshot archive.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

tls_handshakes_total = Counter(
    "kustomap_tls_handshakes_total",
    "Certificate-capturing TLS handshakes, by outcome.",
    ["outcome"],
)

ca_cache_lookups_total = Counter(
    "kustomap_ca_cache_lookups_total",
    "Per-host chain cache lookups, by result.",
    ["result"],
)
