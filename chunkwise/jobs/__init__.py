"""
Summarization job records and storage.

SummarizationJobManager lives in chunkwise.jobs.manager; it is not imported
here because the summarization strategies themselves depend on these types.
"""

from .models import Job, JobStatus, JsonSum, MergeMode, SummarizeMethod, SummarizeRequest
from .store import InMemoryJobStore, JobStore

__all__ = [
    'InMemoryJobStore',
    'Job',
    'JobStatus',
    'JobStore',
    'JsonSum',
    'MergeMode',
    'SummarizeMethod',
    'SummarizeRequest',
]
