"""DER certificates, fingerprints and PEM trust bundles."""

from __future__ import annotations

import hashlib
import ssl
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property

_PEM_BEGIN = "-----BEGIN CERTIFICATE-----"
_PEM_END = "-----END CERTIFICATE-----"


def certificate_fingerprint(raw: bytes) -> str:
    """Lowercase hex SHA-256 over the DER encoding."""
    return hashlib.sha256(raw).hexdigest()


@dataclass(frozen=True)
class Certificate:
    """A certificate as presented on the wire (DER)."""

    raw: bytes

    @cached_property
    def fingerprint(self) -> str:
        return certificate_fingerprint(self.raw)

    def to_pem(self) -> str:
        return ssl.DER_cert_to_PEM_cert(self.raw)


def render_bundle(certificates: Iterable[Certificate]) -> str:
    """Concatenate *certificates* as PEM, one per fingerprint, sorted by fingerprint.

    The same set of certificates always renders to the same bytes.
    """
    unique: dict[str, Certificate] = {}
    for cert in certificates:
        unique.setdefault(cert.fingerprint, cert)
    return "".join(unique[fp].to_pem() for fp in sorted(unique))


def load_bundle(pem: str) -> list[Certificate]:
    """Parse every ``CERTIFICATE`` block in *pem*; other block types are ignored.

    Raises:
        ValueError: if a certificate block is unterminated or not valid base64.
    """
    certificates: list[Certificate] = []
    remainder = pem
    while True:
        start = remainder.find(_PEM_BEGIN)
        if start < 0:
            return certificates
        end = remainder.find(_PEM_END, start)
        if end < 0:
            raise ValueError("unterminated certificate block in PEM bundle")
        block = remainder[start : end + len(_PEM_END)]
        certificates.append(Certificate(raw=ssl.PEM_cert_to_DER_cert(block + "\n")))
        remainder = remainder[end + len(_PEM_END) :]


def build_ssl_context(bundle: str, include_system_roots: bool = False) -> ssl.SSLContext:
    """Return a verifying client context that trusts the certificates in *bundle*.

    With ``include_system_roots=False`` the bundle is the sole trust store.
    Any certificate in the bundle may anchor a chain, so a bundle holding
    only the intermediates a server presents is still sufficient.

    Raises:
        ValueError: if *bundle* holds no certificates.
    """
    if not load_bundle(bundle):
        raise ValueError("CA bundle contains no certificates")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    if include_system_roots:
        context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    context.load_verify_locations(cadata=bundle)
    context.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
    return context
