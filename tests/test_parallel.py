"""
Tests for job execution strategies.

Tests cover:
- SequentialStrategy (inline, already-resolved futures)
- ThreadPoolStrategy (independent jobs overlap)
"""

import os
import threading
import time

import pytest

from chunkwise.parallel import ExecutorStrategy, SequentialStrategy, ThreadPoolStrategy


class TestSequentialStrategy:
    """Test SequentialStrategy for deterministic execution."""

    def test_submit_returns_completed_future(self):
        """Submit returns a Future that is already complete."""
        strategy = SequentialStrategy()
        future = strategy.submit(lambda x: x + 10, 5)
        assert future.done()
        assert future.result() == 15

    def test_submit_captures_exceptions(self):
        strategy = SequentialStrategy()

        def raise_error(x):
            raise ValueError("Test error")

        future = strategy.submit(raise_error, 1)
        assert future.done()
        with pytest.raises(ValueError, match="Test error"):
            future.result()

    def test_runs_on_calling_thread(self):
        strategy = SequentialStrategy()
        future = strategy.submit(lambda _: threading.current_thread(), None)
        assert future.result() is threading.current_thread()

    def test_max_workers_is_one(self):
        assert SequentialStrategy().max_workers == 1

    def test_shutdown_is_noop(self):
        strategy = SequentialStrategy()
        strategy.shutdown()
        strategy.shutdown(wait=False, cancel_futures=True)

    def test_context_manager(self):
        with SequentialStrategy() as strategy:
            result = strategy.submit(str.upper, "abc").result()
        assert result == "ABC"


class TestThreadPoolStrategy:
    """Test ThreadPoolStrategy for concurrent jobs."""

    def test_default_max_workers(self):
        """Default max_workers is min(cpu_count, 4)."""
        strategy = ThreadPoolStrategy()
        assert strategy.max_workers == min(os.cpu_count() or 4, 4)
        strategy.shutdown()

    def test_custom_max_workers(self):
        strategy = ThreadPoolStrategy(max_workers=2)
        assert strategy.max_workers == 2
        strategy.shutdown()

    def test_runs_off_the_calling_thread(self):
        with ThreadPoolStrategy(max_workers=1) as strategy:
            worker = strategy.submit(lambda _: threading.current_thread(), None).result(timeout=5)
        assert worker is not threading.current_thread()
        assert worker.name.startswith("chunkwise-job")

    def test_independent_jobs_overlap(self):
        """Two jobs that wait on each other only finish if they run concurrently."""
        barrier = threading.Barrier(2, timeout=5)

        def job(x):
            barrier.wait()
            return x

        with ThreadPoolStrategy(max_workers=2) as strategy:
            futures = [strategy.submit(job, i) for i in range(2)]
            assert sorted(f.result(timeout=5) for f in futures) == [0, 1]

    def test_exceptions_stay_in_future(self):
        def fail(_):
            raise RuntimeError("job failed")

        with ThreadPoolStrategy(max_workers=1) as strategy:
            future = strategy.submit(fail, None)
            with pytest.raises(RuntimeError, match="job failed"):
                future.result(timeout=5)

    def test_shutdown_waits_for_running_jobs(self):
        finished = []

        def slow(x):
            time.sleep(0.05)
            finished.append(x)

        strategy = ThreadPoolStrategy(max_workers=2)
        for i in range(3):
            strategy.submit(slow, i)
        strategy.shutdown(wait=True)

        assert sorted(finished) == [0, 1, 2]


def test_strategies_share_the_interface():
    assert issubclass(SequentialStrategy, ExecutorStrategy)
    assert issubclass(ThreadPoolStrategy, ExecutorStrategy)


class TestFromConfig:
    def test_pool_size_from_jobs_section(self):
        strategy = ThreadPoolStrategy.from_config({"jobs": {"max_workers": 3}})
        assert strategy.max_workers == 3
        strategy.shutdown()

    def test_missing_section_uses_default(self):
        strategy = ThreadPoolStrategy.from_config({})
        assert strategy.max_workers == min(os.cpu_count() or 4, 4)
        strategy.shutdown()

    def test_zero_workers_rejected(self):
        with pytest.raises(ValueError):
            ThreadPoolStrategy(max_workers=0)
