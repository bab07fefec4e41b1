"""Repository fetch capability.

Exposes:
    RepositoryFetcher  -- protocol the graph builder depends on.
    HTTPArchiveFetcher -- GitHub/GitLab tarball downloader over httpx.
"""

from kustomap.fetch.base import RepositoryFetcher
from kustomap.fetch.http import HTTPArchiveFetcher

__all__ = ["HTTPArchiveFetcher", "RepositoryFetcher"]
