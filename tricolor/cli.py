"""tricolor command-line programs.

Usage::

    tricolor-supervisor                     # start first, no arguments
    tricolor-generator 0-1 0-2 0-3 1-2 1-3 2-3
    tricolor-generator 0-1 0-2 0-3 1-2 1-3 2-3   # as many as you like
    tricolor-cleanup                        # remove leftovers of a crashed run

The supervisor prints every improved solution and, on Ctrl-C/SIGTERM or
once a zero-edge solution arrives, tells the generators to stop.

Environment variables:

1. ``TRICOLOR_NAMESPACE`` sets the prefix of the shared resource names
   (default ``/tricolor``), so several independent runs can share a host.
2. ``TRICOLOR_SEED`` seeds a generator's random number generator.
"""

from __future__ import annotations

import os
import random
import sys

from tricolor._ipc import ResourceNames, unlink_stale
from tricolor.common import CandidateSolution, parse_edges
from tricolor.coordinator import Coordinator
from tricolor.errors import TricolorError, UsageError, format_fatal
from tricolor.worker import Worker

# Environment variable seeding generators
TRICOLOR_SEED_ENV = "TRICOLOR_SEED"

SUPERVISOR = "supervisor"
GENERATOR = "generator"


def _seed_from_env() -> int | None:
    raw = os.environ.get(TRICOLOR_SEED_ENV)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise UsageError(f"{TRICOLOR_SEED_ENV} must be an integer, got {raw!r}", operation="configure seed") from None


def format_solution(candidate: CandidateSolution) -> str:
    return f"[{SUPERVISOR}] Solution with {candidate.edge_count} edges: {candidate.describe()}"


def _print_improvement(candidate: CandidateSolution) -> None:
    print(format_solution(candidate), flush=True)


def supervisor_main(argv: list[str] | None = None) -> int:
    """Entry point for the ``tricolor-supervisor`` command."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        if argv:
            raise UsageError("Invalid arguments: the supervisor takes none", operation="parse arguments")
        names = ResourceNames.from_env()
        coordinator = Coordinator.create(names, on_improvement=_print_improvement, handle_signals=True)
        result = coordinator.run()
    except TricolorError as e:
        print(format_fatal(SUPERVISOR, e), file=sys.stderr)
        return 1

    if result.best is None:
        print(f"[{SUPERVISOR}] Best found solution: no solution received")
    else:
        print(f"[{SUPERVISOR}] Best found solution: {result.best.edge_count} edges")
    if result.colorable:
        print(f"[{SUPERVISOR}] The graph is 3-colorable!")
    print(f"[{SUPERVISOR}] Terminating ({result.workers_woken} generators woken)...", file=sys.stderr)
    return 0


def generator_main(argv: list[str] | None = None) -> int:
    """Entry point for the ``tricolor-generator`` command."""
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        print("Usage: tricolor-generator EDGE1 EDGE2 ...", file=sys.stderr)
        print(file=sys.stderr)
        print("Each EDGE is SOURCE-DESTINATION with non-negative vertex ids, e.g. 0-1 1-2 2-0", file=sys.stderr)
        return 1

    try:
        edges = parse_edges(argv)
        seed = _seed_from_env()
        names = ResourceNames.from_env()
        print(f"[{GENERATOR}] Starting generator...", file=sys.stderr)
        worker = Worker.attach(edges, names, rng=random.Random(seed))
        stats = worker.run()
    except TricolorError as e:
        print(format_fatal(GENERATOR, e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130

    print(
        f"[{GENERATOR}] Terminating ({stats.published} published, {stats.discarded} discarded)...",
        file=sys.stderr,
    )
    return 0


def cleanup_main(argv: list[str] | None = None) -> int:
    """Entry point for the ``tricolor-cleanup`` command."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        if argv:
            raise UsageError("Invalid arguments: tricolor-cleanup takes none", operation="parse arguments")
        names = ResourceNames.from_env()
        removed = unlink_stale(names)
    except TricolorError as e:
        print(format_fatal("cleanup", e), file=sys.stderr)
        return 1

    for name in removed:
        print(f"[cleanup] removed {name}")
    return 0


if __name__ == "__main__":
    sys.exit(supervisor_main())
