"""Data structures for the resolved overlay dependency graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from kustomap.nodeid import NodeIdentifier


class NodeStatus(StrEnum):
    """Resolution state of a node."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class NodeKind(StrEnum):
    """Role a kustomization plays, inferred from its path."""

    BASE = "base"
    OVERLAY = "overlay"
    COMPONENT = "component"

    @classmethod
    def from_path(cls, path: str) -> NodeKind:
        lowered = f"/{path.lower()}"
        if "/component" in lowered:
            return cls.COMPONENT
        if "/base" in lowered:
            return cls.BASE
        if any(marker in lowered for marker in ("/overlay", "/env", "prod", "dev", "staging")):
            return cls.OVERLAY
        return cls.BASE


class EdgeKind(StrEnum):
    """Kustomization field a dependency was declared under."""

    RESOURCE = "resource"
    BASE = "base"
    COMPONENT = "component"

    @classmethod
    def from_field(cls, name: str) -> EdgeKind:
        return {"resources": cls.RESOURCE, "bases": cls.BASE, "components": cls.COMPONENT}[name]


@dataclass
class NodeMetadata:
    """A visited node and what the builder learned about it."""

    node: NodeIdentifier
    base_url: str
    kind: NodeKind
    depth: int
    status: NodeStatus = NodeStatus.PENDING
    error: str = ""
    references: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class NodeFailure:
    """A per-node failure recorded without aborting sibling branches."""

    node_id: str
    stage: str  # fetch | extract | scan | reference
    error: str


@dataclass
class Graph:
    """Registry of nodes keyed by canonical node ID.

    Edges are directed ``(parent, child)`` pairs over keys of ``nodes``.
    ``edge_kinds`` records the field each edge was declared under; an edge
    declared twice keeps the first kind seen.
    ``base_urls`` maps every visited node to the base URL it was fetched
    from and is the input to CA trust collection. ``ca_bundle`` stays empty
    until a collector attaches one.
    """

    root: str = ""
    nodes: dict[str, NodeMetadata] = field(default_factory=dict)
    edges: set[tuple[str, str]] = field(default_factory=set)
    edge_kinds: dict[tuple[str, str], EdgeKind] = field(default_factory=dict)
    base_urls: dict[str, str] = field(default_factory=dict)
    ca_bundle: str = ""
    errors: list[NodeFailure] = field(default_factory=list)
    truncated: bool = False  # True if max_depth stopped the crawl early

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def edges_of_kind(self, kind: EdgeKind) -> set[tuple[str, str]]:
        return {edge for edge, edge_kind in self.edge_kinds.items() if edge_kind is kind}

    def children(self, key: str) -> list[str]:
        """Return the sorted child keys of *key*."""
        return sorted(target for source, target in self.edges if source == key)

    def find_cycles(self) -> list[list[str]]:
        """Return every cycle reachable by depth-first search.

        Each cycle is reported as the key path from its first node back to
        that node, e.g. ``[a, b, a]``.
        """
        cycles: list[list[str]] = []
        visited: set[str] = set()
        on_stack: set[str] = set()

        def _dfs(key: str, path: list[str]) -> None:
            visited.add(key)
            on_stack.add(key)
            path.append(key)
            for child in self.children(key):
                if child not in visited:
                    _dfs(child, path)
                elif child in on_stack:
                    start = path.index(child)
                    cycles.append([*path[start:], child])
            path.pop()
            on_stack.discard(key)

        for key in sorted(self.nodes):
            if key not in visited:
                _dfs(key, [])
        return cycles
