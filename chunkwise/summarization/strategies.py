"""
Summarization strategies.

Every strategy walks a job's document and calls the model invoker once per
step, strictly in order:

    full        one call over the whole resolved document
    map         one independent call per chunk
    fold        chunk i + running summary -> replacement summary
    delta-fold  chunk i + delta array so far -> a delta to add
    merge       pairwise combination of existing chunk summaries
    map-merge   map, then merge the fresh summaries

Strategies raise domain errors and never swallow them; the job driver is the
only place that turns an exception into a failed job.
"""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from chunkwise.ai.invoker import InvocationOptions, Message, ModelInvoker
from chunkwise.document import Document, DocumentModel
from chunkwise.errors import ChunkwiseError, GenerationFailure, JobCancelled, StructureError
from chunkwise.jobs.models import Job, JsonSum, SummarizeMethod, SummarizeRequest
from chunkwise.logging_config import debug_log, debug_timing, info

from .budget import BudgetAllocator
from .context import build_chunk_window
from .merging import merge_summaries
from .prompts import build_system_prompt, chunk_message, full_document_message, merge_message
from .repair import Validator, generate_with_repair, require_valid
from .structured_output import parse_model_reply

CancelCheck = Callable[[], bool]


class StepRunner:
    """
    Performs one model step for a running job.

    Builds the system prompt and options from the job's request, invokes the
    model (through the repair loop when requested), parses the reply, and
    counts the step towards the job's progress.

    Args:
        job: Job being driven (must be processing).
        invoker: Model invocation capability.
        is_cancelled: Polled before each step; True stops the run.
        validator: Replaces schema validation inside the repair loop.
    """

    def __init__(self, job: Job, invoker: ModelInvoker,
                 is_cancelled: CancelCheck | None = None,
                 validator: Validator | None = None):
        self.job = job
        self.request = job.request
        self.invoker = invoker
        self.is_cancelled = is_cancelled
        self.validator = validator
        self.options = InvocationOptions(
            json_schema=self.request.json_schema,
            temperature=self.request.temperature,
        )

    @property
    def structured(self) -> bool:
        return self.request.json_schema is not None

    def check_cancelled(self):
        if self.is_cancelled is not None and self.is_cancelled():
            raise JobCancelled(f"Job {self.job.id} was deleted")

    def generate(self, mode: str, user_content: str) -> Any:
        """
        Run one step and return the value to store.

        Raises:
            JobCancelled: The job was deleted before this step.
            GenerationFailure: The invoker raised.
            Unprocessable: The repair loop ran out of attempts.
        """
        self.check_cancelled()

        system_prompt = build_system_prompt(mode, self.request.guidance, self.request.json_schema)
        transcript = [Message(role='user', content=user_content)]

        start_time = time.time()
        try:
            if self.structured and self.request.repair_attempts:
                outcome = generate_with_repair(
                    self.invoker.invoke, system_prompt, transcript,
                    self.request.json_schema, self.request.repair_attempts,
                    options=self.options, validator=self.validator,
                )
                value = require_valid(outcome)
            else:
                raw = self.invoker.invoke(system_prompt, transcript, self.options)
                value = parse_model_reply(raw, self.structured)
        except ChunkwiseError:
            raise
        except Exception as e:
            raise GenerationFailure(f"Model invocation failed during '{mode}' step: {e}") from e

        self.job.advance()
        debug_timing(
            f"[SUMMARIZE] {mode} step {self.job.chunks_completed}/{self.job.chunks_total}",
            time.time() - start_time,
        )
        return value


class SummarizationStrategy(ABC):
    """
    One way of turning a chunk tree into summaries.

    Subclasses report how many model steps they will take (used as the
    job's chunks_total) and then run those steps.
    """

    method: SummarizeMethod

    @abstractmethod
    def count_steps(self, request: SummarizeRequest, document: Document) -> int:
        """Number of model steps run() will make for this document."""

    @abstractmethod
    def run(self, job: Job, document_model: DocumentModel, invoker: ModelInvoker,
            is_cancelled: CancelCheck | None = None, validator: Validator | None = None) -> None:
        """Annotate job.document in place."""

    @staticmethod
    def chunks_of(request: SummarizeRequest, document: Document) -> list[Document]:
        return document.require_chunks(request.chunk_group)

    @staticmethod
    def make_allocator(request: SummarizeRequest, document_model: DocumentModel,
                       total_chunks: int) -> BudgetAllocator | None:
        if request.budget is None:
            return None
        encoder = document_model.tokenizers.get_encoding(request.encoding)
        return BudgetAllocator(request.budget, total_chunks, encoder, request.tokens_per_word)


class FullSummarization(SummarizationStrategy):
    """Single call over the whole resolved document."""

    method = SummarizeMethod.FULL

    def count_steps(self, request, document):
        return 1

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        runner = StepRunner(job, invoker, is_cancelled, validator)
        document = job.document
        content = document_model.resolve(document)
        debug_log(f"[SUMMARIZE] Full summary of '{document.id}' ({len(content)} chars)")

        value = runner.generate('full', full_document_message(document.id, document.metadata, content))
        document.annotations[job.request.annotation_field] = value


class MapSummarization(SummarizationStrategy):
    """Independent summary per chunk, stored on the chunk."""

    method = SummarizeMethod.MAP

    def count_steps(self, request, document):
        return len(self.chunks_of(request, document))

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        self.summarize_chunks(StepRunner(job, invoker, is_cancelled, validator), document_model)

    def summarize_chunks(self, runner: StepRunner, document_model: DocumentModel) -> list[Any]:
        """Map step shared with map-merge. Returns the summaries in chunk order."""
        request = runner.request
        document = runner.job.document
        chunks = self.chunks_of(request, document)
        allocator = self.make_allocator(request, document_model, len(chunks))

        summaries = []
        for index, chunk in enumerate(chunks):
            window = build_chunk_window(document_model, document, chunks, index,
                                        request.context_chunks_before, request.context_chunks_after)
            word_limit = allocator.next_word_limit() if allocator else None

            value = runner.generate('map', chunk_message(
                document.id, window.current, chunk.metadata,
                window.preceding, window.succeeding, word_limit=word_limit,
            ))
            chunk.annotations[request.annotation_field] = value
            summaries.append(value)
            if allocator:
                allocator.record(value)

        return summaries


class FoldSummarization(SummarizationStrategy):
    """Running summary rewritten at every chunk; final value goes on the root."""

    method = SummarizeMethod.FOLD

    def count_steps(self, request, document):
        return len(self.chunks_of(request, document))

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        runner = StepRunner(job, invoker, is_cancelled, validator)
        request = job.request
        document = job.document
        chunks = self.chunks_of(request, document)

        accumulated = copy.deepcopy(request.initial_summary)
        if accumulated is None:
            accumulated = ""

        for index, chunk in enumerate(chunks):
            window = build_chunk_window(document_model, document, chunks, index,
                                        request.context_chunks_before, request.context_chunks_after)
            accumulated = runner.generate('fold', chunk_message(
                document.id, window.current, chunk.metadata,
                window.preceding, window.succeeding,
                accumulated_heading="Current accumulated summary" if accumulated else None,
                accumulated=accumulated,
            ))

        document.annotations[request.annotation_field] = accumulated


class DeltaFoldSummarization(SummarizationStrategy):
    """
    Per-chunk deltas of new information, accumulated into an array.

    With json_sum "append" a list delta is spliced into the array (a
    non-list delta is appended); with "nested" every delta is pushed as one
    element. Each delta is also stored on its chunk.
    """

    method = SummarizeMethod.DELTA_FOLD

    def count_steps(self, request, document):
        return len(self.chunks_of(request, document))

    @staticmethod
    def initial_deltas(request: SummarizeRequest, document: Document) -> list:
        seed = request.initial_summary
        if isinstance(seed, list):
            return copy.deepcopy(seed)
        if seed is not None:
            return [copy.deepcopy(seed)]
        existing = document.annotations.get(request.annotation_field)
        if request.json_sum is JsonSum.APPEND and isinstance(existing, list):
            return copy.deepcopy(existing)
        return []

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        runner = StepRunner(job, invoker, is_cancelled, validator)
        request = job.request
        document = job.document
        chunks = self.chunks_of(request, document)
        allocator = self.make_allocator(request, document_model, len(chunks))

        deltas = self.initial_deltas(request, document)

        for index, chunk in enumerate(chunks):
            window = build_chunk_window(document_model, document, chunks, index,
                                        request.context_chunks_before, request.context_chunks_after)
            word_limit = allocator.next_word_limit() if allocator else None

            delta = runner.generate('delta-fold', chunk_message(
                document.id, window.current, chunk.metadata,
                window.preceding, window.succeeding,
                accumulated_heading="Accumulating summary array (so far)",
                accumulated=deltas,
                word_limit=word_limit,
            ))
            chunk.annotations[request.annotation_field_delta] = delta

            if request.json_sum is JsonSum.APPEND and isinstance(delta, list):
                deltas.extend(delta)
            else:
                deltas.append(delta)
            if allocator:
                allocator.record(delta)

        document.annotations[request.annotation_field] = deltas


class MergeSummarization(SummarizationStrategy):
    """Combine summaries already stored on the chunks (missing ones count as "")."""

    method = SummarizeMethod.MERGE

    def count_steps(self, request, document):
        return max(0, len(self.chunks_of(request, document)) - 1)

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        runner = StepRunner(job, invoker, is_cancelled, validator)
        request = job.request
        chunks = self.chunks_of(request, job.document)
        if not chunks:
            raise StructureError(f"Chunk group '{request.chunk_group}' is empty; nothing to merge")

        summaries = [chunk.annotations.get(request.annotation_field, "") for chunk in chunks]
        job.document.annotations[request.annotation_field] = self.merge(runner, summaries)

    @staticmethod
    def merge(runner: StepRunner, summaries: list[Any]) -> Any:
        request = runner.request
        info(f"[SUMMARIZE] Merging {len(summaries)} summaries ({request.merge_mode.value})")

        def combine(summary_a, summary_b):
            return runner.generate('merge', merge_message(
                summary_a, summary_b, request.merge_summaries_guidance))

        return merge_summaries(summaries, combine, request.merge_mode)


class MapMergeSummarization(SummarizationStrategy):
    """Map every chunk, then merge the fresh summaries into the root."""

    method = SummarizeMethod.MAP_MERGE

    def count_steps(self, request, document):
        return max(0, 2 * len(self.chunks_of(request, document)) - 1)

    def run(self, job, document_model, invoker, is_cancelled=None, validator=None):
        request = job.request
        if not self.chunks_of(request, job.document):
            raise StructureError(f"Chunk group '{request.chunk_group}' is empty; nothing to merge")

        runner = StepRunner(job, invoker, is_cancelled, validator)
        summaries = MapSummarization().summarize_chunks(runner, document_model)
        job.document.annotations[request.annotation_field] = MergeSummarization.merge(runner, summaries)
