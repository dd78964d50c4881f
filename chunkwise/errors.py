"""
Error kinds raised by the document model and summarization engine.

Every error carries a short ``kind`` string so that a failed job can report a
serializable description (see ``ChunkwiseError.to_dict``).
"""

from __future__ import annotations

from typing import Any


class ChunkwiseError(Exception):
    """Base class for all Chunkwise errors."""

    kind = "error"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


class InvalidArgument(ChunkwiseError, ValueError):
    """Malformed request parameters or budgets (missing field, max_tokens < 1, ...)."""

    kind = "invalid_argument"


class StructureError(ChunkwiseError):
    """The document tree violates an invariant (missing group, bad substring reference)."""

    kind = "structure_error"


class GenerationFailure(ChunkwiseError):
    """The model invoker raised while producing a step's output."""

    kind = "generation_failure"


class Unprocessable(ChunkwiseError):
    """
    The structured-output repair loop ran out of attempts.

    Distinct from a hard failure: a best-effort value and the final raw model
    response are available to the caller.

    Attributes:
        best_effort: Most recent parsed value (may violate the schema, may be None).
        raw_response: Final raw response text from the model.
        errors: Validation messages from the last attempt.
    """

    kind = "unprocessable"

    def __init__(self, message: str, best_effort: Any = None,
                 raw_response: str | None = None, errors: list[str] | None = None):
        super().__init__(message)
        self.best_effort = best_effort
        self.raw_response = raw_response
        self.errors = list(errors or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "best_effort": self.best_effort,
            "raw_response": self.raw_response,
            "errors": self.errors,
        })
        return data


class JobStateError(ChunkwiseError):
    """An illegal job status transition or progress update was attempted."""

    kind = "job_state_error"


class JobNotFound(ChunkwiseError, KeyError):
    """No job is stored under the given id."""

    kind = "not_found"

    def __str__(self):
        return Exception.__str__(self)


class JobCancelled(ChunkwiseError):
    """The job was deleted while running; its driver stops at the next step."""

    kind = "cancelled"
