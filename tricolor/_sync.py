"""
The synchronization triplet: two counting permits and a mutex.

- ``free_slots`` starts at the buffer capacity.  Writers take a unit
  before filling a slot; the reader gives one back after draining it.
- ``used_slots`` starts at zero.  The reader takes a unit before reading;
  writers give one after filling a slot.
- ``mutex`` is a binary semaphore guarding the registration count and the
  termination flag.  It does *not* guard slot payloads.

Two interchangeable primitive implementations share one small interface
(``acquire``/``release``/``close``/``unlink``):

- :class:`NamedSemaphore` wraps a POSIX named semaphore (``posix_ipc``)
  so that separate processes can share it by name.
- :class:`LocalSemaphore` is an in-process counting semaphore, used when
  workers run as threads (mostly in tests).

A blocking ``acquire()`` has no timeout.  If a signal interrupts it, it
returns ``False`` rather than raising, so that the coordinator's drain
loop gets a chance to look at its stop flag.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Protocol

import posix_ipc

from tricolor.common import BUFFER_CAPACITY
from tricolor.errors import ResourceReleaseError, ResourceSetupError


class Primitive(Protocol):
    def acquire(self, blocking: bool = True) -> bool: ...

    def release(self) -> None: ...

    def close(self) -> None: ...

    def unlink(self) -> None: ...


# ---------------------------------------------------------------------------
# In-process semaphore
# ---------------------------------------------------------------------------


class LocalSemaphore:
    """A counting semaphore for threads within one process.

    Implemented with a condition variable and an explicit counter rather
    than ``threading.Semaphore`` so the current value can be inspected.
    ``close()`` and ``unlink()`` are no-ops: there is no named resource.
    """

    def __init__(self, value: int = 1) -> None:
        if value < 0:
            raise ValueError("semaphore initial value must be >= 0")
        self._value = value
        self._cond = threading.Condition(threading.Lock())

    @property
    def value(self) -> int:
        with self._cond:
            return self._value

    def acquire(self, blocking: bool = True) -> bool:
        with self._cond:
            if not blocking and self._value == 0:
                return False
            while self._value == 0:
                self._cond.wait()
            self._value -= 1
            return True

    def release(self) -> None:
        with self._cond:
            self._value += 1
            self._cond.notify()

    def close(self) -> None:
        pass

    def unlink(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"<LocalSemaphore value={self._value}>"


# ---------------------------------------------------------------------------
# POSIX named semaphore
# ---------------------------------------------------------------------------


class NamedSemaphore:
    """A POSIX named semaphore shared between processes.

    Use :meth:`create` (coordinator) or :meth:`open` (workers) rather than
    the constructor.  Every ``posix_ipc`` failure is re-raised as a
    :class:`~tricolor.errors.TricolorError` naming the operation.
    """

    def __init__(self, sem: Any, name: str) -> None:
        self._sem = sem
        self.name = name

    @classmethod
    def create(cls, name: str, initial_value: int) -> NamedSemaphore:
        """Create *name* exclusively with *initial_value* units."""
        try:
            sem = posix_ipc.Semaphore(name, flags=posix_ipc.O_CREX, mode=0o600, initial_value=initial_value)
        except (posix_ipc.Error, OSError, ValueError) as e:
            raise ResourceSetupError(f"{name} failed creation: {e}", operation=f"create semaphore {name}") from e
        return cls(sem, name)

    @classmethod
    def open(cls, name: str) -> NamedSemaphore:
        """Attach to an existing semaphore created by the coordinator."""
        try:
            sem = posix_ipc.Semaphore(name)
        except (posix_ipc.Error, OSError, ValueError) as e:
            raise ResourceSetupError(f"Couldn't open {name}: {e}", operation=f"open semaphore {name}") from e
        return cls(sem, name)

    @property
    def value(self) -> int:
        return self._sem.value

    def acquire(self, blocking: bool = True) -> bool:
        try:
            if blocking:
                self._sem.acquire()
            else:
                self._sem.acquire(0)
        except posix_ipc.BusyError:
            return False
        except posix_ipc.SignalError:
            return False
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Waiting on {self.name} failed: {e}", operation=f"acquire {self.name}") from e
        return True

    def release(self) -> None:
        try:
            self._sem.release()
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Posting {self.name} failed: {e}", operation=f"release {self.name}") from e

    def close(self) -> None:
        try:
            self._sem.close()
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Closing {self.name} failed: {e}", operation=f"close {self.name}") from e

    def unlink(self) -> None:
        try:
            posix_ipc.unlink_semaphore(self.name)
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Unlinking {self.name} failed: {e}", operation=f"unlink {self.name}") from e

    def __repr__(self) -> str:
        return f"<NamedSemaphore {self.name!r}>"


# ---------------------------------------------------------------------------
# Triplet
# ---------------------------------------------------------------------------


@dataclass
class SyncTriplet:
    """The three primitives that together implement the bounded buffer."""

    free_slots: Primitive
    used_slots: Primitive
    mutex: Primitive

    @classmethod
    def local(cls, capacity: int = BUFFER_CAPACITY) -> SyncTriplet:
        return cls(LocalSemaphore(capacity), LocalSemaphore(0), LocalSemaphore(1))

    @classmethod
    def create(cls, free_name: str, used_name: str, mutex_name: str, capacity: int = BUFFER_CAPACITY) -> SyncTriplet:
        """Create all three named semaphores with their initial values.

        If a later creation fails, the semaphores already created by this
        call are unlinked before the error propagates, so that a rerun is
        not blocked by leftovers.
        """
        created: list[NamedSemaphore] = []
        try:
            for name, initial in ((used_name, 0), (free_name, capacity), (mutex_name, 1)):
                created.append(NamedSemaphore.create(name, initial))
        except ResourceSetupError:
            for sem in created:
                try:
                    sem.close()
                    sem.unlink()
                except ResourceReleaseError:
                    pass  # the setup error is the one worth reporting
            raise
        used, free, mutex = created
        return cls(free_slots=free, used_slots=used, mutex=mutex)

    @classmethod
    def open(cls, free_name: str, used_name: str, mutex_name: str) -> SyncTriplet:
        used = NamedSemaphore.open(used_name)
        free = NamedSemaphore.open(free_name)
        mutex = NamedSemaphore.open(mutex_name)
        return cls(free_slots=free, used_slots=used, mutex=mutex)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the mutex for the duration of the ``with`` block."""
        while not self.mutex.acquire():
            pass  # interrupted by a signal; the mutex is never held for long
        try:
            yield
        finally:
            self.mutex.release()

    def close(self) -> None:
        self.used_slots.close()
        self.free_slots.close()
        self.mutex.close()

    def unlink(self) -> None:
        self.used_slots.unlink()
        self.free_slots.unlink()
        self.mutex.unlink()
