"""Tests for the coordinator (consumer) lifecycle over in-process resources."""

import random
import signal

import pytest

from tricolor._ipc import ResourceNames, SharedResources
from tricolor.common import CandidateSolution, Edge
from tricolor.coordinator import Coordinator, CoordinatorState
from tricolor.errors import ResourceSetupError
from tricolor.worker import Worker, WorkerState


def candidate_with(n):
    return CandidateSolution(tuple(Edge(i, i + 1) for i in range(n)))


def publish(coordinator, *sizes):
    writer = coordinator.buffer.writer()
    for n in sizes:
        assert writer.write(candidate_with(n), blocking=False)


def test_reports_improvements_until_zero_edge_candidate():
    reported = []
    coordinator = Coordinator(SharedResources.local(), on_improvement=reported.append)
    for _ in range(3):
        coordinator.buffer.register_worker()
    publish(coordinator, 2, 1, 0)

    result = coordinator.run()

    assert [c.edge_count for c in reported] == [2, 1]
    assert [c.edge_count for c in result.improvements] == [2, 1]
    assert result.best_edge_count == 0
    assert result.colorable
    assert not result.interrupted
    assert result.candidates_read == 3
    assert result.workers_woken == 3
    assert coordinator.state is CoordinatorState.CLEANED_UP


def test_equal_or_worse_candidates_are_not_reported():
    reported = []
    coordinator = Coordinator(SharedResources.local(), on_improvement=reported.append)
    publish(coordinator, 5, 7, 5, 3, 4, 3, 0)

    result = coordinator.run()

    assert [c.edge_count for c in reported] == [5, 3]
    assert result.candidates_read == 7


def test_zero_edge_candidate_stops_before_later_ones():
    coordinator = Coordinator(SharedResources.local())
    publish(coordinator, 0, 4)

    result = coordinator.run()

    assert result.candidates_read == 1
    assert result.improvements == []
    assert result.colorable


def test_stop_requested_before_draining():
    coordinator = Coordinator(SharedResources.local())
    publish(coordinator, 3)
    coordinator.request_stop()

    result = coordinator.run()

    assert result.interrupted
    assert result.best is None
    assert result.best_edge_count is None
    assert not result.colorable
    assert result.candidates_read == 0


def test_shutdown_sets_termination_under_registration_count():
    resources = SharedResources.local(capacity=4)
    coordinator = Coordinator(resources)
    for _ in range(3):
        coordinator.buffer.register_worker()
    publish(coordinator, 1, 1, 1, 1)
    assert resources.sync.free_slots.value == 0

    coordinator.request_stop()
    coordinator.drain()
    assert coordinator.shutdown() == 3

    assert resources.state.termination_requested
    assert resources.sync.free_slots.value == 3


def test_interrupt_while_worker_blocks_on_full_buffer(start_thread):
    resources = SharedResources.local(capacity=2)
    coordinator = Coordinator(resources)
    worker = Worker([Edge(0, 1)], resources, propose=lambda *args: candidate_with(1))

    t = start_thread(worker.run)
    t.join(timeout=0.5)  # long enough to fill both slots and block
    assert t.is_alive()
    assert resources.sync.used_slots.value == 2

    coordinator.request_stop()
    result = coordinator.run()
    t.join(timeout=5.0)

    assert not t.is_alive()
    assert result.interrupted
    assert result.workers_woken == 1
    assert worker.state is WorkerState.TERMINATED
    assert worker.stats.published == 2
    assert resources.sync.used_slots.value == 2


def test_threads_find_coloring_of_triangle(start_thread):
    resources = SharedResources.local(capacity=8)
    reported = []
    coordinator = Coordinator(resources, on_improvement=reported.append)
    triangle = [Edge(0, 1), Edge(1, 2), Edge(2, 0)]
    workers = [Worker(triangle, resources, rng=random.Random(seed)) for seed in range(3)]
    threads = [start_thread(w.run) for w in workers]

    result = coordinator.run()
    for t in threads:
        t.join(timeout=5.0)

    assert result.colorable
    assert all(not t.is_alive() for t in threads)
    assert all(w.state is WorkerState.TERMINATED for w in workers)
    assert all(c.edge_count in (1, 2, 3) for c in reported)
    # Improvements are strictly decreasing.
    counts = [c.edge_count for c in reported]
    assert counts == sorted(set(counts), reverse=True)


def test_signal_handler_only_sets_stop_flag():
    before = signal.getsignal(signal.SIGTERM)
    coordinator = Coordinator(SharedResources.local())
    coordinator.install_signal_handlers()
    try:
        signal.raise_signal(signal.SIGTERM)
        result = coordinator.drain()
    finally:
        coordinator.shutdown()
        coordinator.cleanup()

    assert result.interrupted
    assert signal.getsignal(signal.SIGTERM) is before


def test_candidates_from_two_writers_are_both_read():
    reported = []

    def on_improvement(candidate):
        reported.append(candidate)
        if len(reported) == 2:
            coordinator.request_stop()

    coordinator = Coordinator(SharedResources.local(), on_improvement=on_improvement)
    first, second = coordinator.buffer.writer(), coordinator.buffer.writer()
    assert first.write(candidate_with(2), blocking=False)
    assert second.write(candidate_with(1), blocking=False)

    result = coordinator.run()

    assert [c.edge_count for c in reported] == [2, 1]
    assert result.candidates_read == 2
    assert result.best_edge_count == 1
    assert not result.colorable


def _names():
    return ResourceNames.for_namespace("/tricolor_unused")


def test_signal_during_creation_stops_before_first_read(monkeypatch):
    def create_then_interrupt(names, capacity):
        resources = SharedResources.local(capacity)
        signal.raise_signal(signal.SIGINT)
        return resources

    monkeypatch.setattr(SharedResources, "create", staticmethod(create_then_interrupt))
    before = signal.getsignal(signal.SIGINT)
    coordinator = Coordinator.create(_names(), handle_signals=True)
    publish(coordinator, 3)

    result = coordinator.run()

    assert result.interrupted
    assert result.candidates_read == 0
    assert coordinator.state is CoordinatorState.CLEANED_UP
    assert signal.getsignal(signal.SIGINT) is before


def test_failed_creation_restores_signal_handlers(monkeypatch):
    def failing_create(names, capacity):
        raise ResourceSetupError("/tricolor_unused_used failed creation: exists")

    monkeypatch.setattr(SharedResources, "create", staticmethod(failing_create))
    before = signal.getsignal(signal.SIGTERM)

    with pytest.raises(ResourceSetupError):
        Coordinator.create(_names(), handle_signals=True)

    assert signal.getsignal(signal.SIGTERM) is before
