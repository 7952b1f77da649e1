"""
Tests for the sorting worker loop.
"""

import threading

import numpy as np
import pytest

from errors import ProtocolViolation
from local_transport import LocalFabric
from sort_engine import ParallelSortEngine
from worker import SortWorker, WorkerState


@pytest.fixture
def fabric():
    return LocalFabric(2, timeout=5)


def make_chunk(config, seed):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 100, size=config.chunk_shape).astype(config.np_dtype)


class TestSortWorker:
    """Test one worker against a hand-driven coordinator endpoint."""

    def test_step_sorts_and_returns_with_same_tag(self, fabric, small_config):
        master = fabric.endpoint(0)
        worker = SortWorker(fabric.endpoint(1), small_config)
        chunk = make_chunk(small_config, seed=1)

        master.send(chunk, tag=4, dest=1)
        assert worker.step() is True
        assert worker.state == WorkerState.IDLE

        out = np.empty_like(chunk)
        master.recv_exact(out, tag=4, source=1)
        assert np.array_equal(out, np.sort(chunk, axis=1))
        assert worker.jobs_done == [4]
        worker.engine.close()

    def test_scratch_buffer_reused(self, fabric, small_config):
        master = fabric.endpoint(0)
        worker = SortWorker(fabric.endpoint(1), small_config)
        scratch = worker.scratch.flat

        for job in (0, 2):
            master.send(make_chunk(small_config, seed=job), tag=job, dest=1)
            worker.step()
            master.recv_exact(np.empty(small_config.chunk_shape, small_config.np_dtype), tag=job, source=1)

        assert worker.scratch.flat is scratch
        assert worker.scratch.matrix.shape == small_config.chunk_shape
        worker.engine.close()

    def test_terminate_consumes_die_message(self, fabric, small_config):
        master = fabric.endpoint(0)
        worker = SortWorker(fabric.endpoint(1), small_config)

        master.send(np.array([1], dtype=small_config.np_dtype), tag=small_config.die_tag, dest=1)
        assert worker.run() == []
        assert worker.state == WorkerState.TERMINATED
        assert fabric.pending(1) == 0

    def test_run_loop_until_terminated(self, fabric, small_config):
        master = fabric.endpoint(0)
        worker = SortWorker(fabric.endpoint(1), small_config)
        result = []
        t = threading.Thread(target=lambda: result.append(worker.run()))
        t.start()

        for job in small_config.job_indices():
            chunk = make_chunk(small_config, seed=job)
            master.send(chunk, tag=job, dest=1)
            out = np.empty_like(chunk)
            master.recv_exact(out, tag=job, source=1)
            assert np.array_equal(out, np.sort(chunk, axis=1))

        master.send(np.array([1], dtype=small_config.np_dtype), tag=small_config.die_tag, dest=1)
        t.join(5)
        assert result == [[0, 2, 4, 6]]

    def test_bad_tag_is_protocol_violation(self, fabric, small_config):
        master = fabric.endpoint(0)
        worker = SortWorker(fabric.endpoint(1), small_config)

        master.send(make_chunk(small_config, seed=0), tag=3, dest=1)
        with pytest.raises(ProtocolViolation):
            worker.step()
        worker.engine.close()

    def test_injected_engine_is_not_closed(self, fabric, small_config):
        master = fabric.endpoint(0)
        engine = ParallelSortEngine(threads=1)
        worker = SortWorker(fabric.endpoint(1), small_config, engine)

        master.send(np.array([1], dtype=small_config.np_dtype), tag=small_config.die_tag, dest=1)
        worker.run()
        # still usable by its owner
        engine.sort_batch(np.array([[2, 1]]))
        engine.close()
