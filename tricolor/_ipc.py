"""
Named shared resources: the shared-memory segment and the semaphores.

The coordinator and every worker address the same four POSIX objects by
well-known names derived from a namespace::

    <namespace>_shm      shared memory holding the SharedState record
    <namespace>_used     used-slot permit
    <namespace>_free     free-slot permit
    <namespace>_mutex    mutex

These names are the whole "wire protocol" between the processes.  The
namespace defaults to ``/tricolor`` and can be overridden with the
``TRICOLOR_NAMESPACE`` environment variable (read by the CLI only).

:class:`SharedResources` bundles the mapped record and the triplet for
one participant.  The coordinator *creates* and later *destroys* them;
workers *attach* and only ever *close* their handles.
"""

from __future__ import annotations

import mmap
import os
from dataclasses import dataclass
from typing import Any

import posix_ipc

from tricolor._layout import SharedState, state_size
from tricolor._sync import SyncTriplet
from tricolor.common import BUFFER_CAPACITY
from tricolor.errors import ResourceReleaseError, ResourceSetupError, UsageError

# Environment variable overriding the resource namespace
TRICOLOR_NAMESPACE_ENV = "TRICOLOR_NAMESPACE"

DEFAULT_NAMESPACE = "/tricolor"


@dataclass(frozen=True)
class ResourceNames:
    """The four well-known names shared by coordinator and workers."""

    shm: str
    used: str
    free: str
    mutex: str

    @classmethod
    def for_namespace(cls, namespace: str = DEFAULT_NAMESPACE) -> ResourceNames:
        if not namespace.startswith("/") or "/" in namespace[1:] or len(namespace) < 2:
            raise UsageError(
                f"Invalid namespace {namespace!r}: must start with '/' and contain no other '/'",
                operation="configure namespace",
            )
        return cls(
            shm=f"{namespace}_shm",
            used=f"{namespace}_used",
            free=f"{namespace}_free",
            mutex=f"{namespace}_mutex",
        )

    @classmethod
    def from_env(cls) -> ResourceNames:
        return cls.for_namespace(os.environ.get(TRICOLOR_NAMESPACE_ENV) or DEFAULT_NAMESPACE)

    def all(self) -> tuple[str, ...]:
        return (self.shm, self.used, self.free, self.mutex)


class SharedSegment:
    """A POSIX shared memory object mapped into this process."""

    def __init__(self, name: str, mapping: mmap.mmap) -> None:
        self.name = name
        self.mapping = mapping

    @classmethod
    def create(cls, name: str, size: int) -> SharedSegment:
        try:
            shm = posix_ipc.SharedMemory(name, flags=posix_ipc.O_CREAT, mode=0o600, size=size)
        except (posix_ipc.Error, OSError, ValueError) as e:
            raise ResourceSetupError(f"{name} failed creation: {e}", operation=f"create shared memory {name}") from e
        return cls(name, _map(shm, size))

    @classmethod
    def attach(cls, name: str, size: int) -> SharedSegment:
        """Map an existing segment, which must hold at least *size* bytes."""
        try:
            shm = posix_ipc.SharedMemory(name)
        except (posix_ipc.Error, OSError, ValueError) as e:
            raise ResourceSetupError(f"Couldn't open {name}: {e}", operation=f"open shared memory {name}") from e
        size_found = shm.size
        if size_found < size:
            shm.close_fd()
            raise ResourceSetupError(
                f"{name} holds {size_found} bytes, expected at least {size}",
                operation=f"open shared memory {name}",
            )
        return cls(name, _map(shm, size))

    def close(self) -> None:
        """Unmap the segment from this process."""
        try:
            self.mapping.close()
        except (OSError, BufferError) as e:
            raise ResourceReleaseError(f"Unmapping {self.name} failed: {e}", operation=f"unmap {self.name}") from e

    def unlink(self) -> None:
        try:
            posix_ipc.unlink_shared_memory(self.name)
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Unlinking {self.name} failed: {e}", operation=f"unlink {self.name}") from e


def _map(shm: Any, size: int) -> mmap.mmap:
    try:
        mapping = mmap.mmap(shm.fd, size)
    except (OSError, ValueError) as e:
        raise ResourceSetupError(f"Mapping {shm.name} failed: {e}", operation=f"map {shm.name}") from e
    finally:
        shm.close_fd()
    return mapping


class SharedResources:
    """The shared record and the triplet as seen by one participant.

    Attributes:
        state: The mapped :class:`~tricolor._layout.SharedState`
        sync: The :class:`~tricolor._sync.SyncTriplet`
        owner: True for the coordinator, which alone may :meth:`destroy`
    """

    def __init__(
        self,
        state: SharedState,
        sync: SyncTriplet,
        *,
        segment: SharedSegment | None = None,
        owner: bool = False,
    ) -> None:
        self.state = state
        self.sync = sync
        self.owner = owner
        self._segment = segment
        self._closed = False

    @classmethod
    def local(cls, capacity: int = BUFFER_CAPACITY) -> SharedResources:
        """In-process resources for threads; nothing is named."""
        state = SharedState(bytearray(state_size(capacity)), capacity)
        state.initialize()
        return cls(state, SyncTriplet.local(capacity), owner=True)

    @classmethod
    def create(cls, names: ResourceNames, capacity: int = BUFFER_CAPACITY) -> SharedResources:
        """Create the named semaphores and the zeroed shared record.

        On failure, whatever this call already created is unlinked before
        the :class:`~tricolor.errors.ResourceSetupError` propagates.
        """
        sync = SyncTriplet.create(names.free, names.used, names.mutex, capacity)
        try:
            segment = SharedSegment.create(names.shm, state_size(capacity))
        except ResourceSetupError:
            sync.close()
            sync.unlink()
            raise
        state = SharedState(segment.mapping, capacity)
        state.initialize()
        return cls(state, sync, segment=segment, owner=True)

    @classmethod
    def attach(cls, names: ResourceNames, capacity: int = BUFFER_CAPACITY) -> SharedResources:
        segment = SharedSegment.attach(names.shm, state_size(capacity))
        try:
            sync = SyncTriplet.open(names.free, names.used, names.mutex)
        except ResourceSetupError:
            segment.close()
            raise
        return cls(SharedState(segment.mapping, capacity), sync, segment=segment, owner=False)

    def close(self) -> None:
        """Close the semaphores and unmap the record (never unlinks)."""
        if self._closed:
            return
        self._closed = True
        self.sync.close()
        if self._segment is not None:
            self._segment.close()

    def destroy(self) -> None:
        """Unlink every named resource.  Coordinator only."""
        if not self.owner:
            raise ResourceReleaseError("only the coordinator may unlink shared resources", operation="unlink")
        self.sync.unlink()
        if self._segment is not None:
            self._segment.unlink()


def unlink_stale(names: ResourceNames) -> list[str]:
    """Remove leftovers of a crashed run; returns the names removed."""
    removed = []
    unlinkers = (
        (names.used, posix_ipc.unlink_semaphore),
        (names.free, posix_ipc.unlink_semaphore),
        (names.mutex, posix_ipc.unlink_semaphore),
        (names.shm, posix_ipc.unlink_shared_memory),
    )
    for name, unlink in unlinkers:
        try:
            unlink(name)
        except posix_ipc.ExistentialError:
            continue
        except posix_ipc.Error as e:
            raise ResourceReleaseError(f"Unlinking {name} failed: {e}", operation=f"unlink {name}") from e
        removed.append(name)
    return removed
