"""
Summarization Job Manager

Creates summarization jobs, schedules their drivers on an ExecutorStrategy
and answers polling queries. One driver runs one job: it moves the job to
processing, lets the engine run the strategy, and records the outcome.

Cancellation is coarse. Deleting a job removes its record from the store;
the driver notices at the next step boundary, stops, and discards its work.

Usage:
    manager = SummarizationJobManager(OllamaChatInvoker())
    job = manager.submit({"document": doc_json, "method": "map", "chunk_group": "pages"})
    manager.get_status(job.id)
"""

from __future__ import annotations

from concurrent.futures import Future

from chunkwise.ai.invoker import ModelInvoker
from chunkwise.document import Document, DocumentModel
from chunkwise.errors import ChunkwiseError, InvalidArgument, JobCancelled, JobNotFound, JobStateError
from chunkwise.logging_config import critical, debug_log, error, info
from chunkwise.parallel import ExecutorStrategy, ThreadPoolStrategy
from chunkwise.summarization.engine import SummarizationEngine, strategy_for
from chunkwise.summarization.repair import Validator

from .models import Job, JobStatus, SummarizeRequest
from .store import InMemoryJobStore, JobStore


class SummarizationJobManager:
    """
    Owns the job table and the executor that runs job drivers.

    Attributes:
        store: JobStore holding every live job.
        strategy: ExecutorStrategy the drivers run on.
        engine: SummarizationEngine shared by all jobs.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        store: JobStore | None = None,
        strategy: ExecutorStrategy | None = None,
        document_model: DocumentModel | None = None,
        validator: Validator | None = None,
    ):
        """
        Args:
            invoker: Model invocation capability used by every job.
            store: Job storage. Defaults to an InMemoryJobStore.
            strategy: Where drivers run. Defaults to ThreadPoolStrategy.
            document_model: Resolution/tokenizer access for the engine.
            validator: Custom validator for the structured-output repair loop.
        """
        self.store = store or InMemoryJobStore()
        self.strategy = strategy or ThreadPoolStrategy()
        self.engine = SummarizationEngine(invoker, document_model, validator)

    # ------------------------------------------------------------------
    # Creation and scheduling
    # ------------------------------------------------------------------
    def create_job(self, payload: dict) -> Job:
        """
        Validate a request and store a pending job for it.

        Args:
            payload: Wire request, including the "document" tree.

        Raises:
            InvalidArgument: Missing document or malformed options.
            StructureError: The document tree is malformed.
        """
        if not isinstance(payload, dict):
            raise InvalidArgument("Request must be a JSON object")
        if payload.get('document') is None:
            raise InvalidArgument("document is required")

        request = SummarizeRequest.from_dict(payload)
        strategy_for(request.method)
        document = Document.from_dict(payload['document'])

        job = Job(request=request, document=document)
        self.store.put(job)
        info(f"[JOBS] Created job {job.id} (method={request.method.value}, document='{document.id}')")
        return job

    def start(self, job_id: str) -> Future:
        """Schedule the driver for a pending job."""
        job = self._require(job_id)
        if job.status is not JobStatus.PENDING:
            raise JobStateError(f"Job {job_id} has already been started ({job.status.value})")
        debug_log(f"[JOBS] Scheduling job {job_id} on {type(self.strategy).__name__}")
        return self.strategy.submit(self.run_job, job_id)

    def submit(self, payload: dict) -> Job:
        """create_job + start. Returns the job (possibly already finished)."""
        job = self.create_job(payload)
        self.start(job.id)
        return job

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------
    def get(self, job_id: str) -> Job | None:
        return self.store.get(job_id)

    def get_status(self, job_id: str) -> dict:
        """Polling view of a job (status, progress, error)."""
        return self._require(job_id).to_status_dict()

    def get_result(self, job_id: str) -> dict:
        """
        Annotated document of a completed job.

        Raises:
            JobNotFound: Unknown or deleted job.
            JobStateError: The job has not completed.
        """
        job = self._require(job_id)
        if job.status is not JobStatus.COMPLETE:
            raise JobStateError(f"Job {job_id} is not complete (status: {job.status.value})")
        return job.result

    def delete(self, job_id: str) -> bool:
        """Remove a job; a running driver stops at its next step."""
        removed = self.store.delete(job_id)
        if removed:
            info(f"[JOBS] Deleted job {job_id}")
        return removed

    def shutdown(self, wait: bool = True):
        self.strategy.shutdown(wait=wait)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------
    def run_job(self, job_id: str) -> JobStatus | None:
        """
        Drive one job to a terminal state.

        Returns:
            The final status, or None when the job was deleted before or
            during the run.
        """
        job = self.store.get(job_id)
        if job is None:
            debug_log(f"[JOBS] Job {job_id} was deleted before it started")
            return None

        def should_stop() -> bool:
            return self.store.get(job_id) is not job

        job.start()
        try:
            result = self.engine.run(job, is_cancelled=should_stop)
        except JobCancelled:
            info(f"[JOBS] Job {job_id} cancelled; discarding partial work")
            return None
        except ChunkwiseError as e:
            if should_stop():
                return None
            error(f"[JOBS] Job {job_id} failed ({e.kind}): {e}")
            job.fail(e)
            return job.status
        except Exception as e:
            if should_stop():
                return None
            critical(f"[JOBS] Job {job_id} failed with an unexpected error: {e}")
            job.fail(e)
            return job.status

        if should_stop():
            info(f"[JOBS] Job {job_id} was deleted while running; result discarded")
            return None

        job.complete(result)
        info(f"[JOBS] Job {job_id} complete ({job.chunks_completed}/{job.chunks_total} steps)")
        return job.status

    def _require(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFound(f"No job with id '{job_id}'")
        return job
