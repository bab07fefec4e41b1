"""Repository fetch capability consumed by the graph builder."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from kustomap.nodeid import NodeIdentifier


class RepositoryFetcher(Protocol):
    """Downloads a source snapshot for a node.

    Implementations may serve from a local cache, call a provider API
    directly, or go through a proxy. Failures must surface as
    ``kustomap.errors.FetchError``.
    """

    async def fetch(self, node: NodeIdentifier, base_url: str, dest_dir: Path) -> Path:
        """Write a gzip-compressed tarball of *node*'s repository at its ref.

        Args:
            node:     Identifier carrying provider, owner, repo, path and ref.
            base_url: Provider instance root, e.g. ``https://gitlab.example.com``.
            dest_dir: Existing directory the archive should be written into.

        Returns:
            Path of the archive file.
        """
        ...
