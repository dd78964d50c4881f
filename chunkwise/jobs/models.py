"""
Job and request types for summarization jobs.

Key Types:
    SummarizeMethod - Closed set of summarization strategies
    MergeMode - Topology used to combine partial summaries
    JsonSum - How delta-fold accumulates deltas
    SummarizeRequest - Immutable snapshot of the caller's options
    JobStatus - pending -> processing -> complete | error
    Job - Mutable record of one in-flight summarization

Usage:
    request = SummarizeRequest.from_dict({"method": "map", "chunk_group": "pages"})
    job = Job(request=request, document=Document.from_dict(doc_json))
"""

from __future__ import annotations

import copy
import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from chunkwise.config import (
    DEFAULT_ANNOTATION_FIELD,
    DEFAULT_ANNOTATION_FIELD_DELTA,
    DEFAULT_ENCODING,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOKENS_PER_WORD,
)
from chunkwise.document import Document
from chunkwise.errors import ChunkwiseError, InvalidArgument, JobStateError


class SummarizeMethod(str, Enum):
    FULL = "full"
    MAP = "map"
    FOLD = "fold"
    DELTA_FOLD = "delta-fold"
    MERGE = "merge"
    MAP_MERGE = "map-merge"


class MergeMode(str, Enum):
    LEFT_TO_RIGHT = "left-to-right"
    HIERARCHICAL = "hierarchical"


class JsonSum(str, Enum):
    APPEND = "append"
    NESTED = "nested"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.ERROR)


def _coerce_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidArgument(f"Unsupported {field_name} '{value}' (expected one of: {allowed})") from None


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class SummarizeRequest:
    """
    Caller's strategy choice and options, captured once at job creation.

    Attributes:
        method: Which summarization strategy to run.
        chunk_group: Chunk group to walk (required unless method is full).
        context_chunks_before: Preceding neighbours shown as read-only context.
        context_chunks_after: Succeeding neighbours shown as read-only context.
        model: Model name handed to the invoker's owner (informational here).
        guidance: Free text injected into the system prompt.
        temperature: Sampling temperature for every invocation.
        json_schema: Optional schema for structured output.
        json_sum: delta-fold accumulation ("append" splices, "nested" pushes).
        initial_summary: Seed for fold / delta-fold.
        annotation_field: Annotation key for summaries.
        annotation_field_delta: Annotation key for per-chunk deltas.
        merge_summaries_guidance: Extra instructions for combining summaries.
        merge_mode: left-to-right or hierarchical.
        budget: Advisory token budget for the whole run (map, delta-fold).
        tokens_per_word: Ratio used to turn the budget into word limits.
        encoding: Tokenizer encoding used for budget accounting.
        repair_attempts: When set with json_schema, use the repair loop.
    """
    method: SummarizeMethod
    chunk_group: str | None = None
    context_chunks_before: int = 0
    context_chunks_after: int = 0
    model: str | None = None
    guidance: str = ""
    temperature: float = DEFAULT_TEMPERATURE
    json_schema: dict[str, Any] | None = None
    json_sum: JsonSum = JsonSum.APPEND
    initial_summary: Any = None
    annotation_field: str = DEFAULT_ANNOTATION_FIELD
    annotation_field_delta: str = DEFAULT_ANNOTATION_FIELD_DELTA
    merge_summaries_guidance: str = ""
    merge_mode: MergeMode = MergeMode.LEFT_TO_RIGHT
    budget: int | None = None
    tokens_per_word: float = DEFAULT_TOKENS_PER_WORD
    encoding: str = DEFAULT_ENCODING
    repair_attempts: int | None = None

    def __post_init__(self):
        object.__setattr__(self, 'method', _coerce_enum(SummarizeMethod, self.method, 'method'))
        object.__setattr__(self, 'json_sum', _coerce_enum(JsonSum, self.json_sum, 'json_sum'))
        object.__setattr__(self, 'merge_mode', _coerce_enum(MergeMode, self.merge_mode, 'merge_mode'))
        self._validate()

    def _validate(self):
        if self.method is not SummarizeMethod.FULL and not self.chunk_group:
            raise InvalidArgument(f"chunk_group is required for method '{self.method.value}'")

        for name in ('context_chunks_before', 'context_chunks_after'):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidArgument(f"{name} must be an integer >= 0, got {value!r}")

        if not _is_number(self.temperature):
            raise InvalidArgument(f"temperature must be a number, got {self.temperature!r}")

        if self.json_schema is not None and not isinstance(self.json_schema, (dict, bool)):
            raise InvalidArgument("json_schema must be a JSON Schema object")

        if self.budget is not None and (not _is_number(self.budget) or self.budget <= 0):
            raise InvalidArgument(f"budget must be a positive number of tokens, got {self.budget!r}")

        if not _is_number(self.tokens_per_word) or self.tokens_per_word <= 0:
            raise InvalidArgument(f"tokens_per_word must be positive, got {self.tokens_per_word!r}")

        if not self.annotation_field or not self.annotation_field_delta:
            raise InvalidArgument("annotation_field and annotation_field_delta must be non-empty")

        if self.repair_attempts is not None:
            if not isinstance(self.repair_attempts, int) or isinstance(self.repair_attempts, bool) \
                    or self.repair_attempts < 1:
                raise InvalidArgument(f"repair_attempts must be an integer >= 1, got {self.repair_attempts!r}")

    @classmethod
    def from_dict(cls, payload: dict) -> SummarizeRequest:
        """
        Build a request from wire fields (snake_case, as accepted by the API).

        Unset or null fields take their defaults; mutable values are deep
        copied so later changes by the caller cannot leak into the job.
        """
        if not isinstance(payload, dict):
            raise InvalidArgument("Request must be a JSON object")
        if not payload.get('method'):
            raise InvalidArgument("method is required")

        def pick(key, default):
            value = payload.get(key)
            return default if value is None else value

        return cls(
            method=payload['method'],
            chunk_group=payload.get('chunk_group'),
            context_chunks_before=_as_int(pick('context_chunks_before', 0), 'context_chunks_before'),
            context_chunks_after=_as_int(pick('context_chunks_after', 0), 'context_chunks_after'),
            model=payload.get('model'),
            guidance=pick('guidance', ""),
            temperature=pick('temperature', DEFAULT_TEMPERATURE),
            json_schema=copy.deepcopy(payload.get('json_schema')),
            json_sum=pick('json_sum', JsonSum.APPEND),
            initial_summary=copy.deepcopy(payload.get('initial_summary')),
            annotation_field=pick('annotation_field', DEFAULT_ANNOTATION_FIELD),
            annotation_field_delta=pick('annotation_field_delta', DEFAULT_ANNOTATION_FIELD_DELTA),
            merge_summaries_guidance=pick('merge_summaries_guidance', ""),
            merge_mode=pick('merge_mode', MergeMode.LEFT_TO_RIGHT),
            budget=payload.get('budget'),
            tokens_per_word=pick('tokens_per_word', DEFAULT_TOKENS_PER_WORD),
            encoding=pick('encoding', DEFAULT_ENCODING),
            repair_attempts=payload.get('repair_attempts'),
        )


def _as_int(value, name: str) -> int:
    # Query-string style callers send counts as strings
    if isinstance(value, str) and value.strip().lstrip('-').isdigit():
        return int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidArgument(f"{name} must be an integer, got {value!r}")
    return value


@dataclass
class Job:
    """
    Record of one summarization job.

    Mutated only by the driver that runs it; read by pollers. Status moves
    pending -> processing -> complete | error and never leaves a terminal
    state. Progress counters only grow and never pass the total.

    Attributes:
        request: Immutable options snapshot.
        document: The tree this job owns and annotates in place.
        id: Unique job id.
        status: Current JobStatus.
        chunks_total: Number of model invocations the run will make.
        chunks_completed: Invocations finished so far.
        result: Serialized annotated document, set on completion.
        error: {"kind", "message", ...} set on failure.
    """
    request: SummarizeRequest
    document: Document
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.PENDING
    chunks_total: int = 0
    chunks_completed: int = 0
    result: dict | None = None
    error: dict | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _transition(self, expected: JobStatus, new: JobStatus):
        if self.status is not expected:
            raise JobStateError(
                f"Job {self.id}: cannot move from '{self.status.value}' to '{new.value}'"
            )
        self.status = new
        self.updated_at = time.time()

    def start(self):
        """pending -> processing."""
        with self._lock:
            self._transition(JobStatus.PENDING, JobStatus.PROCESSING)

    def set_total(self, total: int):
        """Record how many steps the run will take (processing only)."""
        with self._lock:
            if self.status is not JobStatus.PROCESSING:
                raise JobStateError(f"Job {self.id}: total can only be set while processing")
            if total < self.chunks_completed:
                raise JobStateError(
                    f"Job {self.id}: total {total} is below completed count {self.chunks_completed}"
                )
            self.chunks_total = total
            self.updated_at = time.time()

    def advance(self, count: int = 1):
        """Count finished steps; never decreases and never exceeds the total."""
        with self._lock:
            if self.status is not JobStatus.PROCESSING:
                raise JobStateError(f"Job {self.id}: progress can only change while processing")
            if count < 0 or self.chunks_completed + count > self.chunks_total:
                raise JobStateError(
                    f"Job {self.id}: cannot advance {count} from "
                    f"{self.chunks_completed}/{self.chunks_total}"
                )
            self.chunks_completed += count
            self.updated_at = time.time()

    def complete(self, result: dict):
        """processing -> complete, storing the result."""
        with self._lock:
            self._transition(JobStatus.PROCESSING, JobStatus.COMPLETE)
            self.result = result

    def fail(self, exc: BaseException):
        """processing -> error, storing a serializable description of exc."""
        with self._lock:
            self._transition(JobStatus.PROCESSING, JobStatus.ERROR)
            if isinstance(exc, ChunkwiseError):
                self.error = exc.to_dict()
            else:
                self.error = {"kind": "internal", "message": f"{type(exc).__name__}: {exc}"}

    def to_status_dict(self) -> dict:
        """Polling view of the job."""
        data = {
            "job_id": self.id,
            "status": self.status.value,
            "chunks_total": self.chunks_total,
            "chunks_completed": self.chunks_completed,
        }
        if self.status is JobStatus.ERROR:
            data["error"] = copy.deepcopy(self.error)
        return data
