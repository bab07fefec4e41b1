"""kustomap: cross-repository kustomize dependency graph resolution.

Exposes:
    GraphBuilder     -- recursive fetch/extract/scan resolver.
    CACertCollector  -- per-host TLS chain capture and PEM trust bundle assembly.
    Graph            -- resolved nodes, edges, base URLs and CA bundle.
    parse_node_id    -- canonical ``type:owner/repo[/path]@ref`` parser.
"""

from kustomap.build.builder import GraphBuilder
from kustomap.cacert.collector import CACertCollector
from kustomap.models.graph import Graph
from kustomap.nodeid import NodeIdentifier, ProviderType, parse_node_id

__version__ = "0.1.0"

__all__ = [
    "CACertCollector",
    "Graph",
    "GraphBuilder",
    "NodeIdentifier",
    "ProviderType",
    "__version__",
    "parse_node_id",
]
