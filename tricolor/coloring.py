"""Default candidate generator: random 3-coloring, collect conflicting edges.

Each proposal colors every vertex uniformly at random with one of three
colors and returns the edges whose endpoints received the same color.
Removing those edges leaves a properly 3-colored graph.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Sequence

from tricolor.common import CandidateSolution, Edge

NUM_COLORS = 3

# (num_vertices, edges, rng) -> candidate
Proposer = Callable[[int, Sequence[Edge], random.Random], CandidateSolution]


def random_coloring(num_vertices: int, rng: random.Random) -> list[int]:
    return [rng.randrange(NUM_COLORS) for _ in range(num_vertices)]


def conflicting_edges(coloring: Sequence[int], edges: Sequence[Edge]) -> tuple[Edge, ...]:
    """Edges whose endpoints share a color under *coloring*."""
    return tuple(e for e in edges if coloring[e.source] == coloring[e.destination])


def propose_candidate(num_vertices: int, edges: Sequence[Edge], rng: random.Random) -> CandidateSolution:
    coloring = random_coloring(num_vertices, rng)
    return CandidateSolution(conflicting_edges(coloring, edges))
