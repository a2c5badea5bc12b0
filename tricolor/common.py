"""Shared data structures for tricolor."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from tricolor.errors import UsageError

# Candidates with more removed edges than this are never published.
MAX_SOLUTION_EDGES = 12

# Number of solution slots in the shared circular buffer.
BUFFER_CAPACITY = 128

# Vertex ids are stored as int32 in the shared record.
MAX_VERTEX_ID = 2**31 - 1

_EDGE_PATTERN = re.compile(r"^(\d+)-(\d+)$")


@dataclass(frozen=True)
class Edge:
    """An undirected graph edge between two vertex ids.

    Attributes:
        source: First vertex id (non-negative)
        destination: Second vertex id (non-negative)
    """

    source: int
    destination: int

    def __post_init__(self) -> None:
        if self.source < 0 or self.destination < 0:
            raise ValueError(f"vertex ids must be non-negative, got {self.source}-{self.destination}")

    def __str__(self) -> str:
        return f"{self.source}-{self.destination}"


@dataclass(frozen=True)
class CandidateSolution:
    """A set of edges whose removal leaves the graph properly 3-colored.

    The coloring that produced the candidate is not kept; only the edges
    that would have to go.  An empty candidate proves the graph is
    3-colorable as given.

    A candidate may hold more than :data:`MAX_SOLUTION_EDGES` edges (the
    heuristic has no such bound), but only publishable candidates fit in a
    buffer slot.
    """

    edges: tuple[Edge, ...] = ()

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    @property
    def is_publishable(self) -> bool:
        return self.edge_count <= MAX_SOLUTION_EDGES

    @property
    def proves_colorable(self) -> bool:
        return self.edge_count == 0

    def describe(self) -> str:
        """Space-separated edge list, e.g. ``"0-1 2-3"``."""
        return " ".join(str(e) for e in self.edges)

    def __repr__(self) -> str:
        return f"CandidateSolution({self.edge_count} edges: {self.describe()!r})"


def parse_edge(text: str) -> Edge:
    """Parse an edge descriptor of the form ``"source-destination"``.

    Raises:
        UsageError: If *text* is not two non-negative integers joined by ``-``,
            or a vertex id exceeds :data:`MAX_VERTEX_ID`.
    """
    match = _EDGE_PATTERN.match(text.strip())
    if match is None:
        raise UsageError(f"Couldn't parse edge {text!r} (expected SOURCE-DESTINATION)", operation="parse edges")
    source, destination = int(match.group(1)), int(match.group(2))
    if max(source, destination) > MAX_VERTEX_ID:
        raise UsageError(f"Vertex id in edge {text!r} exceeds {MAX_VERTEX_ID}", operation="parse edges")
    return Edge(source, destination)


def parse_edges(args: Iterable[str]) -> list[Edge]:
    """Parse every edge descriptor in *args*; an empty graph is rejected."""
    edges = [parse_edge(arg) for arg in args]
    if not edges:
        raise UsageError("No edges given", operation="parse edges")
    return edges


def vertex_count(edges: Sequence[Edge]) -> int:
    """Number of vertices implied by *edges* (highest id + 1)."""
    if not edges:
        return 0
    return max(max(e.source, e.destination) for e in edges) + 1
