"""Helpers for unit tests: a fake repository fetcher serving in-memory snapshots."""

from __future__ import annotations

import asyncio
from pathlib import Path

from kustomap.errors import FetchError
from kustomap.nodeid import NodeIdentifier

from ..conftest import kustomization, repo_tarball, tar_members

__all__ = ["FakeFetcher", "kustomization", "repo_tarball", "tar_members"]


# ---------------------------------------------------------------------------
# Fake fetcher
# ---------------------------------------------------------------------------


class FakeFetcher:
    """Serves repository snapshots from memory.

    ``repos`` maps ``provider:owner/repo@ref`` to a ``{path: content}`` dict.
    Unknown repositories fail with a 404 FetchError.
    """

    def __init__(
        self,
        repos: dict[str, dict[str, str]],
        *,
        failures: dict[str, Exception] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.repos = repos
        self.failures = failures or {}
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, node: NodeIdentifier, base_url: str, dest_dir: Path) -> Path:
        key = f"{node.provider.value}:{node.repository}@{node.ref}"
        self.calls.append((key, base_url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if key in self.failures:
            raise self.failures[key]
        if key not in self.repos:
            raise FetchError(node.key, "repository or ref not found", status_code=404)
        archive = dest_dir / "snapshot.tar.gz"
        archive.write_bytes(repo_tarball(self.repos[key], top=f"{node.owner}-{node.repo}-deadbee"))
        return archive
