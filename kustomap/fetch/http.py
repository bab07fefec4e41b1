"""GitHub and GitLab archive downloads over httpx.

GitHub serves ``/repos/{owner}/{repo}/tarball/{ref}`` from ``api.github.com``
(or ``{base}/api/v3`` on Enterprise) and redirects to a short-lived download
URL. GitLab serves ``/api/v4/projects/{id}/repository/archive.tar.gz`` from the
instance host itself. Transport errors and 5xx responses are retried with
exponential back-off. Client errors, redirect loops, undecodable bodies and
local write failures are reported as FetchError without retrying.
"""

from __future__ import annotations

import asyncio
import contextlib
import ssl
from collections.abc import AsyncIterator
from pathlib import Path
from urllib.parse import quote, urlsplit

import httpx
import structlog

from kustomap.errors import FetchError
from kustomap.models.config import FetchConfig
from kustomap.nodeid import NodeIdentifier, ProviderType
from kustomap.observability.metrics import snapshot_fetches_total

_log = structlog.get_logger(component="fetch.http")

GITHUB_API_URL = "https://api.github.com"
ARCHIVE_FILENAME = "snapshot.tar.gz"


class _RetryableFetch(Exception):
    """A failure worth another attempt (transport error or 5xx)."""


class HTTPArchiveFetcher:
    """Downloads repository tarballs from GitHub and GitLab.

    Args:
        github_token: Optional token sent as ``Authorization: Bearer``.
        gitlab_token: Optional token sent as ``PRIVATE-TOKEN``.
        timeout:      Per-request timeout in seconds.
        max_attempts: Total attempts for retryable failures.
        backoff:      Base delay in seconds; attempt *n* waits ``backoff * 2**n``.
        verify:       Passed to httpx: True, a CA bundle path, or an SSLContext.
        client:       Pre-built client (tests, connection reuse); not closed here.
    """

    def __init__(
        self,
        github_token: str = "",
        gitlab_token: str = "",
        timeout: float = 60.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        verify: ssl.SSLContext | str | bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._github_token = github_token
        self._gitlab_token = gitlab_token
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._verify = verify
        self._client = client

    @classmethod
    def from_config(cls, config: FetchConfig) -> HTTPArchiveFetcher:
        return cls(
            github_token=config.github_token,
            gitlab_token=config.gitlab_token,
            timeout=float(config.timeout_seconds),
            max_attempts=config.max_attempts,
            verify=config.ca_bundle or True,
        )

    def archive_url(self, node: NodeIdentifier, base_url: str) -> str:
        """Return the API URL serving *node*'s repository tarball."""
        base = base_url.rstrip("/")
        if node.provider is ProviderType.GITHUB:
            host = (urlsplit(base).hostname or "").lower()
            api = GITHUB_API_URL if host in ("github.com", "www.github.com") else f"{base}/api/v3"
            return f"{api}/repos/{node.owner}/{node.repo}/tarball/{quote(node.ref, safe='')}"
        project = quote(node.repository, safe="")
        return f"{base}/api/v4/projects/{project}/repository/archive.tar.gz?sha={quote(node.ref, safe='')}"

    def _headers(self, node: NodeIdentifier) -> dict[str, str]:
        if node.provider is ProviderType.GITHUB:
            headers = {"Accept": "application/vnd.github+json"}
            if self._github_token:
                headers["Authorization"] = f"Bearer {self._github_token}"
            return headers
        return {"PRIVATE-TOKEN": self._gitlab_token} if self._gitlab_token else {}

    async def fetch(self, node: NodeIdentifier, base_url: str, dest_dir: Path) -> Path:
        url = self.archive_url(node, base_url)
        target = dest_dir / ARCHIVE_FILENAME
        headers = self._headers(node)

        last_error = ""
        for attempt in range(self._max_attempts):
            try:
                await self._download(node, url, headers, target)
            except _RetryableFetch as exc:
                last_error = str(exc)
                if attempt + 1 < self._max_attempts:
                    delay = self._backoff * 2**attempt
                    _log.info(
                        "snapshot_fetch_retry",
                        node_id=node.key,
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error=last_error,
                    )
                    await asyncio.sleep(delay)
                continue
            except FetchError:
                snapshot_fetches_total.labels(provider=node.provider.value, outcome="error").inc()
                raise
            snapshot_fetches_total.labels(provider=node.provider.value, outcome="success").inc()
            _log.debug("snapshot_fetched", node_id=node.key, url=url, bytes=target.stat().st_size)
            return target

        snapshot_fetches_total.labels(provider=node.provider.value, outcome="error").inc()
        raise FetchError(node.key, f"giving up after {self._max_attempts} attempts: {last_error}")

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
            verify=self._verify,
        ) as client:
            yield client

    async def _download(self, node: NodeIdentifier, url: str, headers: dict[str, str], target: Path) -> None:
        try:
            async with self._session() as client, client.stream("GET", url, headers=headers) as response:
                _raise_for_status(node, response)
                with target.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
        except httpx.TimeoutException as exc:
            raise _RetryableFetch(f"request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise _RetryableFetch(f"transport error: {exc}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(node.key, f"{type(exc).__name__}: {exc}") from exc
        except OSError as exc:
            raise FetchError(node.key, f"cannot write {target.name}: {exc}") from exc


def _raise_for_status(node: NodeIdentifier, response: httpx.Response) -> None:
    status = response.status_code
    if response.is_success:
        return
    if status >= 500:
        raise _RetryableFetch(f"server error HTTP {status}")
    if status in (403, 429) and response.headers.get("X-RateLimit-Remaining") == "0":
        reset = response.headers.get("X-RateLimit-Reset", "unknown")
        raise FetchError(node.key, f"rate limit exhausted (resets at {reset})", status_code=status)
    if status == 404:
        raise FetchError(node.key, "repository or ref not found", status_code=status)
    if status in (401, 403):
        raise FetchError(node.key, f"authentication failed (HTTP {status})", status_code=status)
    raise FetchError(node.key, f"unexpected HTTP {status}", status_code=status)
