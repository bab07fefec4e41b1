"""Pipeline wiring for kustomap.

Assembles the components in dependency order:
    config → logging → fetcher → scanner → collector → builder

``resolve()`` is the async entry point for embedding; ``run()`` is a
synchronous convenience that loads configuration from the environment.
"""

from __future__ import annotations

import asyncio

from kustomap.build.builder import GraphBuilder
from kustomap.build.scanner import KustomizationScanner, ReferenceScanner
from kustomap.cacert.collector import CACertCollector
from kustomap.config import load_config
from kustomap.fetch.base import RepositoryFetcher
from kustomap.fetch.http import HTTPArchiveFetcher
from kustomap.models.config import KustomapConfig
from kustomap.models.graph import Graph
from kustomap.observability.logging import get_logger, setup_logging

_log = get_logger("app")


def build_pipeline(
    config: KustomapConfig,
    fetcher: RepositoryFetcher | None = None,
    scanner: ReferenceScanner | None = None,
) -> GraphBuilder:
    """Return a GraphBuilder wired according to *config*.

    *fetcher* and *scanner* replace the HTTP fetcher and kustomization
    scanner when given. The CA collector is attached only when
    ``config.cacert.enabled`` is set.
    """
    collector = CACertCollector.from_config(config.cacert) if config.cacert.enabled else None
    builder_cfg = config.builder
    _log.debug(
        "pipeline_assembled",
        max_workers=builder_cfg.max_workers,
        max_depth=builder_cfg.max_depth,
        cacert_enabled=collector is not None,
    )
    return GraphBuilder(
        fetcher or HTTPArchiveFetcher.from_config(config.fetch),
        scanner or KustomizationScanner(),
        collector,
        max_workers=builder_cfg.max_workers,
        timeout=float(builder_cfg.timeout_seconds) or None,
        max_depth=builder_cfg.max_depth,
        workdir=builder_cfg.workdir or None,
        keep_workdir=builder_cfg.keep_workdir,
    )


async def resolve(
    node_id: str,
    base_url: str = "",
    *,
    config: KustomapConfig | None = None,
    fetcher: RepositoryFetcher | None = None,
    scanner: ReferenceScanner | None = None,
) -> Graph:
    """Resolve the graph rooted at *node_id* with a freshly wired pipeline."""
    builder = build_pipeline(config or KustomapConfig(), fetcher=fetcher, scanner=scanner)
    return await builder.build(node_id, base_url)


def run(node_id: str, base_url: str = "") -> Graph:
    """Load configuration from the environment, set up logging and resolve *node_id*."""
    config = load_config()
    setup_logging(config.log.level, config.log.format)
    return asyncio.run(resolve(node_id, base_url, config=config))
