"""
Worker (producer) lifecycle.

A worker attaches to the coordinator's shared resources, registers
itself, then repeatedly proposes a candidate and publishes it until the
coordinator requests termination::

    ATTACHING -> REGISTERED -> PRODUCING -> SHUTTING_DOWN -> TERMINATED

The termination flag is checked under the mutex at the top of every
iteration, and once more after a free slot has been claimed: a worker
woken by the coordinator's shutdown fan-out exits without writing.

Candidates with more than ``MAX_SOLUTION_EDGES`` edges are discarded
before publishing.
"""

from __future__ import annotations

import enum
import random
from collections.abc import Sequence
from dataclasses import dataclass

from tricolor._ipc import ResourceNames, SharedResources
from tricolor.buffer import SolutionBuffer
from tricolor.coloring import Proposer, propose_candidate
from tricolor.common import BUFFER_CAPACITY, Edge, vertex_count


class WorkerState(enum.Enum):
    ATTACHING = "attaching"
    REGISTERED = "registered"
    PRODUCING = "producing"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


@dataclass
class WorkerStats:
    """Per-worker counters.

    Attributes:
        proposed: Candidates obtained from the proposer.
        published: Candidates written to the buffer.
        discarded: Candidates dropped for exceeding MAX_SOLUTION_EDGES.
    """

    proposed: int = 0
    published: int = 0
    discarded: int = 0


class Worker:
    """One producer of candidate solutions.

    Use :meth:`attach` in a worker process.  Constructing a ``Worker``
    directly over :class:`~tricolor._ipc.SharedResources` (for example
    ``SharedResources.local()``) lets it run as a thread.
    """

    def __init__(
        self,
        edges: Sequence[Edge],
        resources: SharedResources,
        *,
        propose: Proposer = propose_candidate,
        rng: random.Random | None = None,
    ) -> None:
        self.state = WorkerState.ATTACHING
        self.edges = list(edges)
        self.num_vertices = vertex_count(self.edges)
        self.stats = WorkerStats()
        self._resources = resources
        self._buffer = SolutionBuffer(resources.state, resources.sync)
        self._propose = propose
        self._rng = rng if rng is not None else random.Random()

    @classmethod
    def attach(
        cls,
        edges: Sequence[Edge],
        names: ResourceNames,
        *,
        capacity: int = BUFFER_CAPACITY,
        propose: Proposer = propose_candidate,
        rng: random.Random | None = None,
    ) -> Worker:
        """Open the named resources created by a running coordinator."""
        resources = SharedResources.attach(names, capacity)
        return cls(edges, resources, propose=propose, rng=rng)

    def register(self) -> int:
        count = self._buffer.register_worker()
        self.state = WorkerState.REGISTERED
        return count

    def produce(self) -> None:
        """Propose and publish until termination is requested."""
        self.state = WorkerState.PRODUCING
        writer = self._buffer.writer()
        while not self._buffer.termination_requested():
            candidate = self._propose(self.num_vertices, self.edges, self._rng)
            self.stats.proposed += 1
            if not candidate.is_publishable:
                self.stats.discarded += 1
                continue
            if writer.write(candidate):
                self.stats.published += 1

    def shutdown(self) -> None:
        """Close (never unlink) the semaphores and unmap the record."""
        self.state = WorkerState.SHUTTING_DOWN
        self._resources.close()
        self.state = WorkerState.TERMINATED

    def run(self) -> WorkerStats:
        """Register, produce until told to stop, then shut down."""
        try:
            self.register()
            self.produce()
        finally:
            self.shutdown()
        return self.stats
