"""
Tricolor: distributed randomized search for 3-colorings.

Generators (producers) propose candidate edge removals and publish them
through a bounded circular buffer in POSIX shared memory; a single
supervisor (consumer) drains the buffer and keeps the best candidate.

Coordinator side::

    from tricolor.coordinator import Coordinator

Worker side::

    from tricolor.worker import Worker

In-process (threads) for experiments and tests::

    from tricolor._ipc import SharedResources
    from tricolor.buffer import SolutionBuffer
"""

__version__ = "0.1.0"
