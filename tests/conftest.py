"""Shared fixtures for kustomap tests.

Provides provider-style snapshot tarballs, throwaway certificate authorities
minted with ``cryptography`` and a threaded local TLS server presenting a
leaf + CA chain, so builds and trust collection can be exercised without
touching the internet.
"""

from __future__ import annotations

import datetime
import io
import ipaddress
import socket
import ssl
import tarfile
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

# ---------------------------------------------------------------------------
# Archive builders
# ---------------------------------------------------------------------------


def tar_members(
    members: list[tuple[str, bytes | None]],
    *,
    global_header: bool = False,
) -> bytes:
    """Return a gzip tarball holding *members* in order.

    A member with ``None`` content is written as a directory. With
    ``global_header`` a pax global header (as GitHub and GitLab emit) is
    written first.
    """
    buf = io.BytesIO()
    pax_headers = {"comment": "0123456789abcdef0123456789abcdef01234567"} if global_header else None
    with tarfile.open(fileobj=buf, mode="w:gz", format=tarfile.PAX_FORMAT, pax_headers=pax_headers) as tar:
        for name, content in members:
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(content)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def repo_tarball(files: dict[str, str], top: str = "org-repo-0123abc") -> bytes:
    """Return a provider-style snapshot of *files* under a single top directory."""
    members: list[tuple[str, bytes | None]] = [(f"{top}/", None)]
    members.extend((f"{top}/{path}", content.encode()) for path, content in sorted(files.items()))
    return tar_members(members, global_header=True)


def kustomization(*resources: str, field: str = "resources") -> str:
    return yaml.safe_dump(
        {
            "apiVersion": "kustomize.config.k8s.io/v1beta1",
            "kind": "Kustomization",
            field: list(resources),
        }
    )


# ---------------------------------------------------------------------------
# Certificate helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Authority:
    """A self-signed CA and its private key."""

    key: ec.EllipticCurvePrivateKey
    cert: x509.Certificate

    @property
    def der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def pem(self) -> str:
        return self.cert.public_bytes(serialization.Encoding.PEM).decode()


@dataclass(frozen=True)
class ServerIdentity:
    """Files and encodings for a leaf certificate issued by an Authority."""

    authority: Authority
    leaf_der: bytes
    chain_file: Path  # leaf followed by the CA
    key_file: Path


def make_authority(common_name: str) -> Authority:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return Authority(key=key, cert=cert)


def issue_server_identity(authority: Authority, directory: Path) -> ServerIdentity:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")]))
        .issuer_name(authority.cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .add_extension(
            x509.SubjectAlternativeName(
                [x509.DNSName("localhost"), x509.IPAddress(ipaddress.IPv4Address("127.0.0.1"))]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(authority.key.public_key()),
            critical=False,
        )
        .sign(authority.key, hashes.SHA256())
    )

    directory.mkdir(parents=True, exist_ok=True)
    chain_file = directory / "chain.pem"
    key_file = directory / "key.pem"
    chain_file.write_bytes(cert.public_bytes(serialization.Encoding.PEM) + authority.pem.encode())
    key_file.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return ServerIdentity(
        authority=authority,
        leaf_der=cert.public_bytes(serialization.Encoding.DER),
        chain_file=chain_file,
        key_file=key_file,
    )


# ---------------------------------------------------------------------------
# Local TLS server
# ---------------------------------------------------------------------------


class LocalTLSServer:
    """Accepts TLS connections on 127.0.0.1 in a background thread.

    Each connection completes a handshake, waits for the client to hang up
    and is closed. Handshake failures on the server side are ignored.
    """

    def __init__(self, identity: ServerIdentity) -> None:
        self.identity = identity
        self._context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        self._context.load_cert_chain(identity.chain_file, identity.key_file)
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(16)
        self._sock.settimeout(0.2)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, name="local-tls-server", daemon=True)
        self.accepted = 0

    @property
    def port(self) -> int:
        return int(self._sock.getsockname()[1])

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=5)
        self._sock.close()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            self.accepted += 1
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        conn.settimeout(5)
        try:
            with self._context.wrap_socket(conn, server_side=True) as tls:
                tls.recv(1)
        except OSError:
            pass
        finally:
            conn.close()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def local_authority() -> Authority:
    return make_authority("kustomap test root")


@pytest.fixture(scope="session")
def other_authority() -> Authority:
    return make_authority("unrelated test root")


@pytest.fixture(scope="session")
def server_identity(local_authority: Authority, tmp_path_factory: pytest.TempPathFactory) -> ServerIdentity:
    return issue_server_identity(local_authority, tmp_path_factory.mktemp("tls"))


@pytest.fixture
def tls_server(server_identity: ServerIdentity) -> Iterator[LocalTLSServer]:
    server = LocalTLSServer(server_identity)
    server.start()
    try:
        yield server
    finally:
        server.stop()


@pytest.fixture
def unused_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])
