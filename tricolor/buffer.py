"""
Circular buffer protocol over the shared record.

:class:`SolutionBuffer` is the entire public surface through which
workers and the coordinator touch shared state:

- :meth:`~SolutionBuffer.register_worker` and
  :meth:`~SolutionBuffer.termination_requested` read/write the
  mutex-guarded header fields;
- :meth:`~SolutionBuffer.broadcast_shutdown` sets the termination flag
  and wakes every registered worker;
- :meth:`~SolutionBuffer.writer` / :meth:`~SolutionBuffer.reader` hand
  out cursors implementing the permit-transfer write/read protocol.

Write: acquire ``free_slots``, then under the mutex: check termination,
fill ``slot[write_pos]``, advance the shared ``write_pos``, release
``used_slots``.  Read: acquire ``used_slots`` -> read ``slot[read_pos]``
-> release ``free_slots`` -> advance.  Both cursors wrap on the buffer
capacity.

The write cursor lives in the shared record because every producer
advances it.  Filling the slot while still holding the mutex means
``used_slots`` units are released in slot order, so the reader never
reaches a slot that has been claimed but not yet filled.  The single
reader keeps its cursor private and needs no lock for the payload.

With several writers there is no FIFO order across them; only the best
value matters to the reader.
"""

from __future__ import annotations

from tricolor._layout import SharedState
from tricolor._sync import SyncTriplet
from tricolor.common import CandidateSolution
from tricolor.errors import SharedStateError


class SolutionBuffer:
    """Bounded multi-producer/single-consumer buffer of candidates."""

    def __init__(self, state: SharedState, sync: SyncTriplet) -> None:
        self._state = state
        self._sync = sync

    @property
    def capacity(self) -> int:
        return self._state.capacity

    def register_worker(self) -> int:
        """Count one more worker; returns the new registration count."""
        with self._sync.locked():
            count = self._state.registered_workers + 1
            self._state.registered_workers = count
        return count

    def registered_workers(self) -> int:
        with self._sync.locked():
            return self._state.registered_workers

    def termination_requested(self) -> bool:
        with self._sync.locked():
            return self._state.termination_requested

    def broadcast_shutdown(self) -> int:
        """Request termination and wake every registered worker.

        The registration count is read under the same lock hold that sets
        the flag; no worker can register after that point and still start
        producing, so one ``free_slots`` unit per registered worker is
        enough to unblock all of them.

        Returns:
            The number of wake-up permits issued.
        """
        with self._sync.locked():
            self._state.termination_requested = True
            registered = self._state.registered_workers
        for _ in range(registered):
            self._sync.free_slots.release()
        return registered

    def writer(self) -> BufferWriter:
        return BufferWriter(self._state, self._sync)

    def reader(self) -> BufferReader:
        return BufferReader(self._state, self._sync)


class BufferWriter:
    """Producer-side handle.  Each worker owns one; the cursor is shared."""

    def __init__(self, state: SharedState, sync: SyncTriplet) -> None:
        self._state = state
        self._sync = sync

    @property
    def write_pos(self) -> int:
        return self._state.write_pos

    def write(self, candidate: CandidateSolution, *, blocking: bool = True) -> bool:
        """Publish *candidate* into the next slot.

        The write is abandoned, leaving the slot untouched and releasing no
        ``used_slots`` unit, if termination has been requested by the time
        a free slot is claimed.

        Args:
            candidate: Must be publishable (at most MAX_SOLUTION_EDGES edges).
            blocking: Wait for a free slot.  With ``False``, give up at once
                if the buffer is full.

        Returns:
            True if the candidate was published.
        """
        if not candidate.is_publishable:
            raise ValueError(f"refusing to publish a candidate with {candidate.edge_count} edges")
        if not self._sync.free_slots.acquire(blocking):
            return False
        with self._sync.locked():
            if self._state.termination_requested:
                return False
            pos = self._state.write_pos
            try:
                self._state.write_slot(pos, candidate)
            except IndexError as e:
                raise SharedStateError(f"shared write cursor is corrupt: {e}", operation="write slot") from e
            self._state.write_pos = (pos + 1) % self._state.capacity
            self._sync.used_slots.release()
        return True


class BufferReader:
    """Consumer-side cursor.  Only the coordinator owns one."""

    def __init__(self, state: SharedState, sync: SyncTriplet) -> None:
        self._state = state
        self._sync = sync
        self.read_pos = 0

    def read(self, *, blocking: bool = True) -> CandidateSolution | None:
        """Take the next published candidate.

        Returns ``None`` without consuming anything if no permit was
        obtained: the buffer was empty (``blocking=False``) or the wait was
        interrupted by a signal.
        """
        if not self._sync.used_slots.acquire(blocking):
            return None
        try:
            candidate = self._state.read_slot(self.read_pos)
        except ValueError as e:
            raise SharedStateError(str(e), operation="read slot") from e
        self._sync.free_slots.release()
        self.read_pos = (self.read_pos + 1) % self._state.capacity
        return candidate
