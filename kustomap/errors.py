"""Error hierarchy for kustomap.

Every error carries the identifier, path or host it concerns, both as an
attribute and in its message, so failures aggregated on a Graph remain
diagnosable on their own.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kustomap.models.graph import Graph, NodeFailure


class KustomapError(Exception):
    """Base class for all kustomap errors."""


class ParseError(KustomapError):
    """Raised when a node identifier or manifest reference cannot be parsed."""

    def __init__(self, node_id: str, reason: str) -> None:
        super().__init__(f"failed to parse node ID {node_id!r}: {reason}")
        self.node_id = node_id
        self.reason = reason


class FetchError(KustomapError):
    """Raised when a repository snapshot cannot be downloaded."""

    def __init__(self, node_id: str, reason: str, status_code: int | None = None) -> None:
        super().__init__(f"failed to fetch {node_id}: {reason}")
        self.node_id = node_id
        self.reason = reason
        self.status_code = status_code


class ExtractError(KustomapError):
    """Raised when an archive is corrupt, malformed or attempts path traversal."""

    def __init__(self, archive: str, reason: str) -> None:
        super().__init__(f"failed to extract {archive}: {reason}")
        self.archive = archive
        self.reason = reason


class ScanError(KustomapError):
    """Raised when a node directory or its kustomization cannot be read."""

    def __init__(self, directory: str, reason: str) -> None:
        super().__init__(f"failed to scan {directory}: {reason}")
        self.directory = directory
        self.reason = reason


class ResolveError(KustomapError):
    """Raised when a base URL does not yield a TLS hostname."""

    def __init__(self, base_url: str, reason: str) -> None:
        super().__init__(f"failed to resolve TLS host for {base_url!r}: {reason}")
        self.base_url = base_url
        self.reason = reason


class HandshakeError(KustomapError):
    """Raised when a TLS handshake against a host fails during trust collection."""

    def __init__(self, host: str, reason: str) -> None:
        super().__init__(f"TLS handshake with {host} failed: {reason}")
        self.host = host
        self.reason = reason


class BuildError(KustomapError):
    """Raised when a build exceeds its deadline or fails in strict mode.

    The partial graph and the aggregated per-node failures are attached so
    callers can still inspect what was resolved.
    """

    def __init__(
        self,
        node_id: str,
        reason: str,
        graph: Graph | None = None,
        failures: list[NodeFailure] | None = None,
    ) -> None:
        super().__init__(f"build of {node_id} failed: {reason}")
        self.node_id = node_id
        self.reason = reason
        self.graph = graph
        self.failures = failures or []
