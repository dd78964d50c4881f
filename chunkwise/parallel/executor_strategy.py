"""
Execution strategies for summarization jobs.

A job is driven by one call to its driver function; the strategy decides
where that call runs. Chunks inside a job are always processed in order by
the driver itself, so the only concurrency here is between independent jobs.

- ThreadPoolStrategy: drivers run on a thread pool (production).
- SequentialStrategy: drivers run inline at submit time (tests, CLI).

Usage:
    strategy = ThreadPoolStrategy.from_config(load_summarizer_config())
    future = strategy.submit(manager.run_job, job_id)
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from chunkwise.config import JOB_MAX_WORKERS
from chunkwise.logging_config import debug_log

Driver = Callable[[str], Any]


class ExecutorStrategy(ABC):
    """
    Where job drivers run.

    Attributes:
        max_workers: Number of jobs that may run at once (1 for sequential).
    """

    max_workers: int

    @abstractmethod
    def submit(self, driver: Driver, job_id: str) -> Future:
        """
        Schedule driver(job_id).

        Returns:
            Future holding the driver's return value or exception.
        """

    @abstractmethod
    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """
        Release resources.

        Args:
            wait: Block until running drivers finish.
            cancel_futures: Drop drivers that have not started yet.
        """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False


class ThreadPoolStrategy(ExecutorStrategy):
    """
    Runs each job driver on a worker thread.

    Model calls are network-bound, so threads overlap independent jobs well
    despite the GIL.

    Args:
        max_workers: Maximum concurrent jobs. Defaults to JOB_MAX_WORKERS.
    """

    def __init__(self, max_workers: int = None):
        if max_workers is None:
            max_workers = JOB_MAX_WORKERS
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="chunkwise-job")
        self.max_workers = max_workers
        debug_log(f"[JOBS] Thread pool ready ({max_workers} workers)")

    @classmethod
    def from_config(cls, config: dict):
        """Pool sized by the 'jobs.max_workers' setting of the summarizer config."""
        return cls(max_workers=config.get('jobs', {}).get('max_workers'))

    def submit(self, driver: Driver, job_id: str) -> Future:
        return self._executor.submit(driver, job_id)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)


class SequentialStrategy(ExecutorStrategy):
    """
    Runs the driver synchronously inside submit().

    The returned Future is already resolved, so once submit() returns the
    job is in a terminal state (or was deleted).
    """

    max_workers = 1

    def submit(self, driver: Driver, job_id: str) -> Future:
        future: Future = Future()
        try:
            future.set_result(driver(job_id))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        pass
