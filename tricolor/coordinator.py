"""
Coordinator (consumer) lifecycle.

The coordinator owns the shared resources for their whole lifetime::

    INITIALIZING -> DRAINING -> SHUTTING_DOWN -> CLEANED_UP

It drains the buffer, keeps the candidate with the fewest edges, and
stops when a zero-edge candidate arrives (the graph is 3-colorable) or
when :meth:`Coordinator.request_stop` is called, typically from a SIGINT
or SIGTERM handler.  The handler only sets a flag; the drain loop polls
it between reads.

Shutdown sets the termination flag under the mutex and releases one
``free_slots`` unit per registered worker so that every worker blocked
on a full buffer wakes up and sees the flag.  Only then are the named
resources closed and unlinked.
"""

from __future__ import annotations

import enum
import signal
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from tricolor._ipc import ResourceNames, SharedResources
from tricolor.buffer import SolutionBuffer
from tricolor.common import BUFFER_CAPACITY, CandidateSolution

_STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CoordinatorState(enum.Enum):
    INITIALIZING = "initializing"
    DRAINING = "draining"
    SHUTTING_DOWN = "shutting_down"
    CLEANED_UP = "cleaned_up"


@dataclass
class CoordinatorResult:
    """Outcome of a coordinator run.

    Attributes:
        best: Candidate with the fewest edges read so far (None if nothing
            was read).
        candidates_read: Number of slots drained from the buffer.
        improvements: Every candidate that improved on the best, in order.
            A zero-edge candidate ends the run without being listed here.
        interrupted: True if the run ended because a stop was requested.
        workers_woken: Wake-up permits issued at shutdown (equal to the
            number of registered workers).
    """

    best: CandidateSolution | None = None
    candidates_read: int = 0
    improvements: list[CandidateSolution] = field(default_factory=list)
    interrupted: bool = False
    workers_woken: int = 0

    @property
    def best_edge_count(self) -> int | None:
        return None if self.best is None else self.best.edge_count

    @property
    def colorable(self) -> bool:
        return self.best is not None and self.best.proves_colorable


class Coordinator:
    """The single consumer of candidate solutions.

    Args:
        resources: Resources this coordinator owns.  :meth:`create` builds
            named ones; tests pass ``SharedResources.local()``.
        on_improvement: Called with each candidate that beats the best so
            far (not called for the final zero-edge candidate).
    """

    def __init__(
        self,
        resources: SharedResources,
        *,
        on_improvement: Callable[[CandidateSolution], None] | None = None,
    ) -> None:
        self.state = CoordinatorState.INITIALIZING
        self.result = CoordinatorResult()
        self._resources = resources
        self._buffer = SolutionBuffer(resources.state, resources.sync)
        self._on_improvement = on_improvement
        self._stop_requested = False
        self._previous_handlers: dict[int, Any] = {}

    @classmethod
    def create(
        cls,
        names: ResourceNames,
        *,
        capacity: int = BUFFER_CAPACITY,
        on_improvement: Callable[[CandidateSolution], None] | None = None,
        handle_signals: bool = False,
    ) -> Coordinator:
        """Create the zeroed shared record and the three named semaphores.

        With *handle_signals*, SIGINT and SIGTERM are caught from before the
        first resource is created, so an early Ctrl-C still ends in
        :meth:`cleanup` instead of leaving named semaphores behind.  A
        signal that arrives during creation stops the coordinator before
        its first read.
        """
        if not handle_signals:
            return cls(SharedResources.create(names, capacity), on_improvement=on_improvement)

        pending: list[int] = []
        previous = {signum: signal.signal(signum, lambda s, f: pending.append(s)) for signum in _STOP_SIGNALS}
        try:
            resources = SharedResources.create(names, capacity)
        except BaseException:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
            raise
        coordinator = cls(resources, on_improvement=on_improvement)
        coordinator._previous_handlers = previous
        for signum in _STOP_SIGNALS:
            signal.signal(signum, coordinator._handle_signal)
        if pending:
            coordinator.request_stop()
        return coordinator

    @property
    def buffer(self) -> SolutionBuffer:
        return self._buffer

    # -- stop flag ---------------------------------------------------------

    def request_stop(self) -> None:
        """Ask the drain loop to finish.  Safe to call from a signal handler."""
        self._stop_requested = True

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to :meth:`request_stop`.

        Must be called from the main thread.  The previous handlers are
        restored by :meth:`cleanup`.
        """
        for signum in _STOP_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self._stop_requested = True

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    # -- lifecycle ---------------------------------------------------------

    def drain(self) -> CoordinatorResult:
        """Read candidates until a stop is requested or one has zero edges."""
        self.state = CoordinatorState.DRAINING
        reader = self._buffer.reader()
        result = self.result
        while not self._stop_requested:
            candidate = reader.read()
            if candidate is None:
                continue  # interrupted; re-check the stop flag
            result.candidates_read += 1
            if candidate.proves_colorable:
                result.best = candidate
                return result
            if result.best is None or candidate.edge_count < result.best.edge_count:
                result.best = candidate
                result.improvements.append(candidate)
                if self._on_improvement is not None:
                    self._on_improvement(candidate)
        result.interrupted = True
        return result

    def shutdown(self) -> int:
        """Set the termination flag and wake every registered worker."""
        self.state = CoordinatorState.SHUTTING_DOWN
        self.result.workers_woken = self._buffer.broadcast_shutdown()
        return self.result.workers_woken

    def cleanup(self) -> None:
        """Close the semaphores, unmap the record and unlink everything."""
        self._restore_signal_handlers()
        self._resources.close()
        self._resources.destroy()
        self.state = CoordinatorState.CLEANED_UP

    def run(self) -> CoordinatorResult:
        """Drain, then always shut down and clean up."""
        try:
            self.drain()
        finally:
            self.shutdown()
            self.cleanup()
        return self.result
