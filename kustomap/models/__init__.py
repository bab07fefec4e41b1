"""Core data structures for kustomap."""

from kustomap.models.config import (
    BuilderConfig,
    CACertConfig,
    FetchConfig,
    KustomapConfig,
    LogConfig,
)
from kustomap.models.graph import Graph, NodeFailure, NodeKind, NodeMetadata, NodeStatus

__all__ = [
    "BuilderConfig",
    "CACertConfig",
    "FetchConfig",
    "Graph",
    "KustomapConfig",
    "LogConfig",
    "NodeFailure",
    "NodeKind",
    "NodeMetadata",
    "NodeStatus",
]
