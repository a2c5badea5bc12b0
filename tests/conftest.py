"""
Shared pytest fixtures for tricolor.

- Every test must join the threads it starts (checked automatically).
- ``local_resources`` gives in-process resources so workers can run as
  threads against a coordinator in the same process.
- ``posix_names`` gives a unique namespace of real named resources and
  unlinks whatever is left of it after the test.
"""

import os
import sys
import threading
import uuid

import pytest

from tricolor._ipc import ResourceNames, SharedResources, unlink_stale


def pytest_configure(config):
    """Register the markers used by the tricolor test suite."""
    config.addinivalue_line("markers", "posix: test creates real POSIX named semaphores and shared memory")


@pytest.fixture(autouse=True)
def _check_thread_cleanup(request):
    """Fail any test that leaves threads running.

    A worker thread stuck on a semaphore would otherwise hang pytest at
    exit with no indication of which test leaked it.
    """
    initial_threads = set(threading.enumerate())

    yield

    main_thread = threading.main_thread()
    alive_threads = [t for t in set(threading.enumerate()) - initial_threads if t != main_thread and t.is_alive()]

    if alive_threads:
        thread_info = ", ".join(
            f"{t.name} ({'daemon' if t.daemon else 'NON-DAEMON'}, ident={t.ident})" for t in alive_threads
        )
        pytest.fail(
            f"Test {request.node.nodeid} left {len(alive_threads)} thread(s) running: {thread_info}. "
            f"All threads must be joined before test completion."
        )


@pytest.fixture
def local_resources():
    return SharedResources.local()


@pytest.fixture
def start_thread():
    """Start daemon threads that are joined (with a timeout) at teardown.

    Returns a function ``start_thread(target, *args) -> threading.Thread``.
    """
    threads = []

    def start(target, *args):
        t = threading.Thread(target=target, args=args, daemon=True)
        t.start()
        threads.append(t)
        return t

    yield start

    for t in threads:
        t.join(timeout=10.0)


@pytest.fixture
def posix_names():
    """A fresh namespace of named resources, removed after the test."""
    if not sys.platform.startswith("linux"):
        pytest.skip("POSIX shared memory tests run on Linux only")
    names = ResourceNames.for_namespace(f"/tricolor_test_{os.getpid()}_{uuid.uuid4().hex[:8]}")
    yield names
    unlink_stale(names)
