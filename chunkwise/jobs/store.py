"""
Job storage.

JobStore is the seam where a deployment chooses retention: the bundled
InMemoryJobStore keeps jobs until they are deleted explicitly.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from .models import Job


class JobStore(ABC):
    """Keyed storage for Job records."""

    @abstractmethod
    def get(self, job_id: str) -> Job | None:
        """Return the job, or None if unknown or deleted."""

    @abstractmethod
    def put(self, job: Job) -> None:
        """Insert or replace a job under its id."""

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove a job. Returns True if it existed."""

    @abstractmethod
    def list_ids(self) -> list[str]:
        """Ids of all stored jobs."""

    def __contains__(self, job_id: str) -> bool:
        return self.get(job_id) is not None


class InMemoryJobStore(JobStore):
    """Process-local dictionary of jobs, safe to share between job threads."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            return self._jobs.get(job_id)

    def put(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def list_ids(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
