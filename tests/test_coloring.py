"""Tests for the default random-coloring proposer."""

import random

from hypothesis import given
from hypothesis import strategies as st

from tricolor.coloring import NUM_COLORS, conflicting_edges, propose_candidate, random_coloring
from tricolor.common import Edge, vertex_count

TRIANGLE = [Edge(0, 1), Edge(1, 2), Edge(2, 0)]


def test_conflicting_edges():
    coloring = [0, 0, 1]
    assert conflicting_edges(coloring, TRIANGLE) == (Edge(0, 1),)
    assert conflicting_edges([0, 1, 2], TRIANGLE) == ()


def test_self_loop_always_conflicts():
    assert conflicting_edges([2], [Edge(0, 0)]) == (Edge(0, 0),)


def test_random_coloring_uses_three_colors():
    coloring = random_coloring(500, random.Random(1))
    assert len(coloring) == 500
    assert set(coloring) == set(range(NUM_COLORS))


def test_same_seed_same_candidate():
    a = propose_candidate(3, TRIANGLE, random.Random(7))
    b = propose_candidate(3, TRIANGLE, random.Random(7))
    assert a == b


@given(
    edges=st.lists(
        st.builds(Edge, st.integers(min_value=0, max_value=9), st.integers(min_value=0, max_value=9)),
        min_size=1,
        max_size=30,
    ),
    seed=st.integers(),
)
def test_candidate_is_an_ordered_subset_of_the_input(edges, seed):
    candidate = propose_candidate(vertex_count(edges), edges, random.Random(seed))
    chosen = set(candidate.edges)
    assert chosen <= set(edges)
    # Duplicated input edges share a coloring, so all copies are kept or none.
    assert candidate.edges == tuple(e for e in edges if e in chosen)
