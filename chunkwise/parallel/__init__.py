"""
Job execution strategies for Chunkwise.

Separates "how a job is scheduled" from "what a job does", so the same
manager code runs jobs on a thread pool in production and inline in tests.

Components:
    ExecutorStrategy - Abstract base class defining the execution interface
    ThreadPoolStrategy - Thread-based execution of independent jobs
    SequentialStrategy - Inline execution (testing/CLI)
"""

from .executor_strategy import (
    ExecutorStrategy,
    SequentialStrategy,
    ThreadPoolStrategy,
)

__all__ = [
    'ExecutorStrategy',
    'ThreadPoolStrategy',
    'SequentialStrategy',
]
