"""Canonical node identifiers.

A node is addressed as ``<type>:<owner>/<repo>[/<path>]@<ref>``, for example
``github:foo/bar/deploy/overlay@main``. The ref is split on the *last* ``@``
so branch names containing ``/`` survive intact.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from kustomap.errors import ParseError


class ProviderType(StrEnum):
    """Git hosting providers a node can live on."""

    GITHUB = "github"
    GITLAB = "gitlab"

    @property
    def default_base_url(self) -> str:
        """Public web endpoint used when no base URL is supplied."""
        return _DEFAULT_BASE_URLS[self]


_DEFAULT_BASE_URLS: dict[ProviderType, str] = {
    ProviderType.GITHUB: "https://github.com",
    ProviderType.GITLAB: "https://gitlab.com",
}


@dataclass(frozen=True)
class NodeIdentifier:
    """Structured form of a node ID."""

    provider: ProviderType
    owner: str
    repo: str
    path: str
    ref: str

    @property
    def key(self) -> str:
        """Return the canonical string used as the graph key."""
        return str(self)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        location = self.repository
        if self.path:
            location = f"{location}/{self.path}"
        return f"{self.provider.value}:{location}@{self.ref}"


def parse_node_id(node_id: str) -> NodeIdentifier:
    """Parse *node_id* into a NodeIdentifier.

    Raises:
        ParseError: on a missing/unknown type prefix, a missing ``@``, an
            empty ref, or fewer than two owner/repo segments.
    """
    prefix, colon, rest = node_id.partition(":")
    if not colon or not prefix or not rest:
        raise ParseError(node_id, "missing or invalid type prefix (expected type:owner/repo[/path]@ref)")

    try:
        provider = ProviderType(prefix)
    except ValueError:
        raise ParseError(node_id, f"unsupported repository type {prefix!r}") from None

    before_ref, at, ref = rest.rpartition("@")
    if not at:
        raise ParseError(node_id, "missing @ref")
    if not ref:
        raise ParseError(node_id, "empty ref")

    parts = before_ref.split("/", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ParseError(node_id, "expected owner/repo[/path]")

    path = parts[2] if len(parts) == 3 else ""
    return NodeIdentifier(
        provider=provider,
        owner=parts[0],
        repo=parts[1],
        path=path.strip("/"),
        ref=ref,
    )
