"""Binary layout of the shared-memory record.

The record is a fixed-size, little-endian struct::

    int32 termination_requested      guarded by the mutex
    int32 registered_workers         guarded by the mutex
    int32 write_pos                  guarded by the mutex
    slot[capacity]                   guarded by permit transfer
        int32 edge_count
        int32 edges[MAX_SOLUTION_EDGES][2]

:class:`SharedState` is pure data plus bounds checks.  It does no locking
of its own; :class:`tricolor.buffer.SolutionBuffer` is the only caller and
owns the locking discipline.
"""

from __future__ import annotations

import struct
from typing import Any

from tricolor.common import BUFFER_CAPACITY, MAX_SOLUTION_EDGES, CandidateSolution, Edge

_HEADER = struct.Struct("<iii")
_SLOT = struct.Struct("<i" + "ii" * MAX_SOLUTION_EDGES)

_TERMINATION_OFFSET = 0
_REGISTERED_OFFSET = 4
_WRITE_POS_OFFSET = 8


def state_size(capacity: int = BUFFER_CAPACITY) -> int:
    """Bytes needed for a record with *capacity* slots."""
    return _HEADER.size + capacity * _SLOT.size


class SharedState:
    """View of the shared record over a writable buffer.

    *buf* is anything ``struct.pack_into`` accepts: an ``mmap`` of the
    POSIX shared memory segment, or a ``bytearray`` for in-process use.
    """

    def __init__(self, buf: Any, capacity: int = BUFFER_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("buffer capacity must be at least 1")
        if len(buf) < state_size(capacity):
            raise ValueError(f"buffer of {len(buf)} bytes is too small for {capacity} slots")
        self._buf = buf
        self.capacity = capacity

    def initialize(self) -> None:
        """Zero the header: no registrations, termination not requested, writes start at slot 0."""
        _HEADER.pack_into(self._buf, 0, 0, 0, 0)

    # -- mutex-guarded fields ----------------------------------------------

    @property
    def termination_requested(self) -> bool:
        return struct.unpack_from("<i", self._buf, _TERMINATION_OFFSET)[0] != 0

    @termination_requested.setter
    def termination_requested(self, value: bool) -> None:
        struct.pack_into("<i", self._buf, _TERMINATION_OFFSET, 1 if value else 0)

    @property
    def registered_workers(self) -> int:
        return struct.unpack_from("<i", self._buf, _REGISTERED_OFFSET)[0]

    @registered_workers.setter
    def registered_workers(self, value: int) -> None:
        struct.pack_into("<i", self._buf, _REGISTERED_OFFSET, value)

    @property
    def write_pos(self) -> int:
        """Slot the next writer fills; shared by every producer."""
        return struct.unpack_from("<i", self._buf, _WRITE_POS_OFFSET)[0]

    @write_pos.setter
    def write_pos(self, value: int) -> None:
        struct.pack_into("<i", self._buf, _WRITE_POS_OFFSET, value)

    # -- permit-guarded slots ----------------------------------------------

    def write_slot(self, index: int, candidate: CandidateSolution) -> None:
        """Store *candidate* in slot *index*, zero-filling unused edges.

        Raises:
            ValueError: If the candidate holds more than MAX_SOLUTION_EDGES edges.
        """
        if not candidate.is_publishable:
            raise ValueError(
                f"candidate with {candidate.edge_count} edges exceeds the slot bound of {MAX_SOLUTION_EDGES}"
            )
        flat: list[int] = []
        for edge in candidate.edges:
            flat.append(edge.source)
            flat.append(edge.destination)
        flat.extend([0] * (2 * MAX_SOLUTION_EDGES - len(flat)))
        _SLOT.pack_into(self._buf, self._slot_offset(index), candidate.edge_count, *flat)

    def read_slot(self, index: int) -> CandidateSolution:
        values = _SLOT.unpack_from(self._buf, self._slot_offset(index))
        count = values[0]
        if not 0 <= count <= MAX_SOLUTION_EDGES:
            raise ValueError(f"slot {index} holds corrupt edge count {count}")
        edges = tuple(Edge(values[1 + 2 * i], values[2 + 2 * i]) for i in range(count))
        return CandidateSolution(edges)

    def _slot_offset(self, index: int) -> int:
        if not 0 <= index < self.capacity:
            raise IndexError(f"slot {index} out of range for capacity {self.capacity}")
        return _HEADER.size + index * _SLOT.size
