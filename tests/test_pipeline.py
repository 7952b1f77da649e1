"""
End-to-end tests: a coordinator and several workers exchanging real
messages over the in-process fabric.
"""

import threading
import time

import numpy as np
import pytest

from arena import ArrayArena
from coordinator import Coordinator
from errors import ProtocolViolation
from example_data_generator import fill_descending
from local_transport import LocalFabric
from pipeline import run_local, run_rank
from report import verify_permutation, verify_sorted
from sort_config import SortConfig
from sort_engine import ParallelSortEngine
from worker import SortWorker


class SlowEngine(ParallelSortEngine):
    """Sort engine that sleeps before every batch."""

    def __init__(self, delay, threads=1):
        super().__init__(threads)
        self.delay = delay

    def sort_batch(self, batch):
        time.sleep(self.delay)
        return super().sort_batch(batch)


@pytest.fixture
def config():
    return SortConfig(total_arrays=40, array_length=64, payload_size=4, sort_threads=2)


class TestRunLocal:
    """Test full runs over the local fabric."""

    def test_every_array_sorted_and_unchanged(self, config, make_arena):
        arena = make_arena(config, seed=11)
        original = arena.copy()

        report, jobs = run_local(config, arena, num_workers=3, timeout=10)

        assert verify_sorted(arena)
        assert verify_permutation(original, arena)
        assert np.array_equal(arena.matrix, np.sort(original.matrix, axis=1))
        assert len(report.records) == config.num_jobs

    def test_partition_completeness(self, config, make_arena):
        """Each job index is sorted by exactly one worker exactly once."""
        report, jobs = run_local(config, make_arena(config), num_workers=4, timeout=10)

        done = sorted(j for worker_jobs in jobs.values() for j in worker_jobs)
        assert done == list(config.job_indices())
        assert sorted(r.job_index for r in report.records) == list(config.job_indices())
        for record in report.records:
            assert record.job_index in jobs[record.worker]

    def test_rerun_is_deterministic(self, config, make_arena):
        first = make_arena(config, seed=5)
        second = make_arena(config, seed=5)

        run_local(config, first, num_workers=3, timeout=10)
        run_local(config, second, num_workers=2, timeout=10)

        assert np.array_equal(first.matrix, second.matrix)

    def test_descending_dataset(self):
        config = SortConfig(total_arrays=16, array_length=10, payload_size=2, sort_threads=2)
        arena = fill_descending(ArrayArena(16, 10))
        run_local(config, arena, num_workers=2, timeout=10)

        assert arena.row(0).tolist() == list(range(151, 161))
        assert arena.row(15).tolist() == list(range(1, 11))

    def test_fast_worker_takes_more_jobs(self, make_arena):
        """A slow worker is not held to an equal share of the work."""
        config = SortConfig(total_arrays=20, array_length=50, payload_size=2, sort_threads=1)

        def engines(rank):
            return SlowEngine(0.3 if rank == 2 else 0.0)

        report, jobs = run_local(config, make_arena(config), num_workers=2,
                                 engine_factory=engines, timeout=10)

        assert len(jobs[1]) > len(jobs[2])
        assert len(jobs[1]) + len(jobs[2]) == config.num_jobs

    def test_more_workers_than_jobs(self, make_arena):
        config = SortConfig(total_arrays=4, array_length=8, payload_size=2, sort_threads=1)
        arena = make_arena(config)
        report, jobs = run_local(config, arena, num_workers=5, timeout=10)

        assert verify_sorted(arena)
        assert sorted(jobs) == [1, 2, 3, 4, 5]
        assert sum(len(j) for j in jobs.values()) == 2

    def test_single_worker(self, config, make_arena):
        arena = make_arena(config)
        report, jobs = run_local(config, arena, num_workers=1, timeout=10)
        assert jobs[1] == list(config.job_indices())
        assert verify_sorted(arena)

    def test_needs_a_worker(self, config, make_arena):
        with pytest.raises(ValueError):
            run_local(config, make_arena(config), num_workers=0)


def run_threads(fabric, config, arena, engine=None):
    """Run workers as threads on an existing fabric; the coordinator runs on the calling thread."""
    results = {}

    def serve(rank):
        results[rank] = run_rank(fabric.endpoint(rank), config, engine=engine)

    threads = [threading.Thread(target=serve, args=(r,), daemon=True) for r in range(1, fabric.size)]
    for t in threads:
        t.start()
    report = run_rank(fabric.endpoint(0), config, arena)
    for t in threads:
        t.join(10)
    return report, results


class TestMessageFlow:
    """Test properties of the message sequence itself."""

    def test_termination_after_last_result(self, config, make_arena):
        """Every worker gets one die message, sent only after its last result arrived."""
        fabric = LocalFabric(4, timeout=10)
        run_threads(fabric, config, make_arena(config))

        for worker in (1, 2, 3):
            positions = [i for i, r in enumerate(fabric.sent) if r.dest == worker and r.tag == config.die_tag]
            assert len(positions) == 1
            last_result = max(i for i, r in enumerate(fabric.sent) if r.source == worker)
            assert positions[0] > last_result

    def test_assignments_and_results_alternate(self, config, make_arena):
        """Per worker: send job, get it back, send the next; never two in flight."""
        fabric = LocalFabric(3, timeout=10)
        run_threads(fabric, config, make_arena(config))

        for worker in (1, 2):
            flow = [
                ("out" if r.source == 0 else "in", r.tag)
                for r in fabric.sent
                if (r.dest == worker or r.source == worker) and r.tag != config.die_tag
            ]
            for i in range(0, len(flow), 2):
                assert flow[i][0] == "out"
                assert flow[i + 1] == ("in", flow[i][1])

    def test_all_messages_consumed(self, config, make_arena):
        fabric = LocalFabric(3, timeout=10)
        run_threads(fabric, config, make_arena(config))
        assert all(fabric.pending(rank) == 0 for rank in range(3))

    def test_coordinator_rank_needs_arena(self, config):
        fabric = LocalFabric(2)
        with pytest.raises(ValueError):
            run_rank(fabric.endpoint(0), config)

    def test_stray_message_to_coordinator_rejected(self, config, make_arena):
        """A result for a job nobody was given is a protocol violation, not a silent write."""
        fabric = LocalFabric(3, timeout=10)
        # rank 2 claims job 8 before anything was assigned
        fabric.endpoint(2).send(np.zeros(config.chunk_shape, dtype=config.np_dtype), tag=8, dest=0)
        coordinator = Coordinator(fabric.endpoint(0), config, make_arena(config))
        with pytest.raises(ProtocolViolation):
            coordinator.run()
