"""Cross-reference resolution and cycle detection.

Relationships between chunks form a directed graph that may contain
cycles. Chunks are kept in an arena keyed by identifier and edges are
plain identifier lists, so resolution is a separate pass over that graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from knowpack.models import Chunk

logger = logging.getLogger(__name__)


class ReferenceStatus(str, Enum):
    RESOLVED = "resolved"
    DANGLING = "dangling"


@dataclass(frozen=True)
class Reference:
    """One relationship entry, tagged with its resolution status."""

    source: str
    target: str
    kind: str  # "related" or "see_also"
    status: ReferenceStatus

    @property
    def resolved(self) -> bool:
        return self.status is ReferenceStatus.RESOLVED


@dataclass
class ResolutionReport:
    """Annotated references plus corpus-health findings."""

    references: dict[str, list[Reference]] = field(default_factory=dict)
    dangling: list[Reference] = field(default_factory=list)
    cycles: list[list[str]] = field(default_factory=list)

    def references_for(self, chunk_id: str) -> list[Reference]:
        return self.references.get(chunk_id, [])

    def resolved_targets(self, chunk_id: str) -> list[str]:
        """Resolved targets of a chunk, deduplicated, in declared order."""
        seen: list[str] = []
        for ref in self.references_for(chunk_id):
            if ref.resolved and ref.target not in seen:
                seen.append(ref.target)
        return seen

    @property
    def warning_count(self) -> int:
        return len(self.dangling) + len(self.cycles)


class ReferenceResolver:
    """Tag references as resolved or dangling and report cycles."""

    def resolve(self, chunks: Iterable[Chunk]) -> ResolutionReport:
        """Resolve every relationship of every chunk.

        Args:
            chunks: Validated chunks with unique identifiers

        Returns:
            ResolutionReport with per-chunk references, dangling
            references and one cycle per connected component (at most)
        """
        arena = {chunk.id: chunk for chunk in chunks}
        report = ResolutionReport()

        for chunk_id in sorted(arena):
            refs = []
            for kind, target in arena[chunk_id].references():
                status = ReferenceStatus.RESOLVED if target in arena else ReferenceStatus.DANGLING
                ref = Reference(source=chunk_id, target=target, kind=kind, status=status)
                refs.append(ref)
                if status is ReferenceStatus.DANGLING:
                    report.dangling.append(ref)
                    logger.warning(f"Dangling reference: {chunk_id} -> {target} ({kind})")
            report.references[chunk_id] = refs

        report.cycles = find_cycles(
            {chunk_id: report.resolved_targets(chunk_id) for chunk_id in arena}
        )
        for cycle in report.cycles:
            logger.warning(f"Reference cycle: {' -> '.join(cycle)}")

        return report


def find_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Find the first cycle in each weakly connected component.

    Depth-first search visits nodes in ascending identifier order and
    edges in declared order, so the result is deterministic.

    Args:
        graph: Node -> ordered successor list. Every successor must be a node.

    Returns:
        Cycles as node lists, closed (first node repeated at the end),
        ordered by each component's smallest identifier
    """
    components = _weak_components(graph)
    cycles = []
    for component in components:
        cycle = _first_cycle(graph, component)
        if cycle is not None:
            cycles.append(cycle)
    return cycles


def _weak_components(graph: dict[str, list[str]]) -> list[list[str]]:
    parent = {node: node for node in graph}

    def find(node: str) -> str:
        while parent[node] != node:
            parent[node] = parent[parent[node]]
            node = parent[node]
        return node

    for node, successors in graph.items():
        for succ in successors:
            a, b = find(node), find(succ)
            if a != b:
                parent[max(a, b)] = min(a, b)

    groups: dict[str, list[str]] = {}
    for node in sorted(graph):
        groups.setdefault(find(node), []).append(node)
    return [groups[root] for root in sorted(groups)]


def _first_cycle(graph: dict[str, list[str]], nodes: list[str]) -> list[str] | None:
    white, grey, black = 0, 1, 2
    color = {node: white for node in nodes}

    for start in nodes:
        if color[start] != white:
            continue
        # Iterative DFS; each frame is (node, index of next successor)
        path = [start]
        stack = [(start, 0)]
        color[start] = grey
        while stack:
            node, index = stack[-1]
            successors = graph[node]
            if index < len(successors):
                stack[-1] = (node, index + 1)
                succ = successors[index]
                if color[succ] == grey:
                    return path[path.index(succ):] + [succ]
                if color[succ] == white:
                    color[succ] = grey
                    path.append(succ)
                    stack.append((succ, 0))
            else:
                color[node] = black
                path.pop()
                stack.pop()
    return None
