"""CA trust collection for the hosts a graph build touched.

Exposes:
    CACertCollector    -- per-host TLS chain capture with a TTL cache.
    Certificate        -- DER certificate with its SHA-256 fingerprint.
    build_ssl_context  -- verifying client context trusting a PEM bundle.
    load_bundle        -- parse a PEM bundle into certificates.
    render_bundle      -- deterministic PEM rendering.
    resolve_tls_host   -- base URL -> TLS hostname.
"""

from kustomap.cacert.certificates import Certificate, build_ssl_context, load_bundle, render_bundle
from kustomap.cacert.collector import DEFAULT_TTL, CACertCollector
from kustomap.cacert.hosts import resolve_tls_host, unique_hosts

__all__ = [
    "DEFAULT_TTL",
    "CACertCollector",
    "Certificate",
    "build_ssl_context",
    "load_bundle",
    "render_bundle",
    "resolve_tls_host",
    "unique_hosts",
]
