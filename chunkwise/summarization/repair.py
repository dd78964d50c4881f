"""
Schema validation and repair loop for structured output.

A reply that fails to parse, or parses but violates the schema, is sent back
to the model verbatim together with the list of problems, and the model is
asked again. The loop stops at the first valid value or after ``attempts``
invocations; either way the caller gets a RepairOutcome and decides with
require_valid() whether an invalid outcome is fatal.

Schema checks use jsonschema, with the validator class picked from the
schema's ``$schema`` keyword (latest draft otherwise).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

from chunkwise.ai.invoker import InvocationOptions, Message
from chunkwise.errors import InvalidArgument, Unprocessable
from chunkwise.logging_config import debug_log, warning

from .prompts import repair_message
from .structured_output import parse_json_reply

Validator = Callable[[Any], list[str]]
InvokeFn = Callable[[str, list[Message], InvocationOptions | None], str]


@dataclass
class RepairOutcome:
    """
    Result of generate_with_repair.

    Attributes:
        value: The valid value, or the most recent parsed value when invalid
               (None if nothing ever parsed).
        raw_response: Raw text of the last response.
        attempts: Number of invocations made.
        valid: Whether value satisfied the validator.
        errors: Problems found in the last response (empty when valid).
    """
    value: Any
    raw_response: str | None
    attempts: int
    valid: bool
    errors: list[str] = field(default_factory=list)


def schema_validator(schema: dict) -> Validator:
    """
    Build a validator callable for a JSON Schema.

    Raises:
        InvalidArgument: The schema itself is malformed.
    """
    validator_cls = validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as e:
        raise InvalidArgument(f"Invalid json_schema: {e.message}") from e
    checker = validator_cls(schema)

    def validate(value: Any) -> list[str]:
        return [
            f"{error.json_path}: {error.message}"
            for error in sorted(checker.iter_errors(value), key=lambda e: e.json_path)
        ]

    return validate


def generate_with_repair(
    invoke: InvokeFn,
    system_prompt: str,
    transcript: list[Message],
    schema: dict | None,
    attempts: int,
    options: InvocationOptions | None = None,
    validator: Validator | None = None,
) -> RepairOutcome:
    """
    Invoke the model until its reply validates or attempts run out.

    Args:
        invoke: Callable with the ModelInvoker.invoke signature.
        system_prompt: System prompt for every attempt.
        transcript: Initial messages; not modified.
        schema: JSON Schema the reply must satisfy.
        attempts: Maximum number of invocations (>= 1).
        options: Passed to every invocation.
        validator: Replaces schema validation when given.

    Raises:
        InvalidArgument: attempts < 1, or neither schema nor validator given.
    """
    if not isinstance(attempts, int) or attempts < 1:
        raise InvalidArgument(f"attempts must be an integer >= 1, got {attempts!r}")
    if validator is None:
        if schema is None:
            raise InvalidArgument("A schema or a validator is required for the repair loop")
        validator = schema_validator(schema)

    messages = list(transcript)
    best_effort = None
    raw = None
    problems: list[str] = []

    for attempt in range(1, attempts + 1):
        raw = invoke(system_prompt, messages, options)

        value, parse_message = parse_json_reply(raw)
        if parse_message is not None:
            problems = [f"Response is not valid JSON: {parse_message}"]
        else:
            best_effort = value
            problems = validator(value)
            if not problems:
                if attempt > 1:
                    debug_log(f"[REPAIR] Valid response after {attempt} attempts")
                return RepairOutcome(value=value, raw_response=raw, attempts=attempt, valid=True)

        debug_log(f"[REPAIR] Attempt {attempt}/{attempts} rejected: {'; '.join(problems)}")
        messages = messages + [
            Message(role='assistant', content=raw),
            Message(role='user', content=repair_message(problems)),
        ]

    warning(f"[REPAIR] No valid response after {attempts} attempts")
    return RepairOutcome(value=best_effort, raw_response=raw, attempts=attempts,
                         valid=False, errors=problems)


def require_valid(outcome: RepairOutcome) -> Any:
    """
    Return the outcome's value, or raise if it never validated.

    Raises:
        Unprocessable: carrying the best-effort value and last raw response.
    """
    if outcome.valid:
        return outcome.value
    raise Unprocessable(
        f"Model output failed validation after {outcome.attempts} attempts",
        best_effort=outcome.value,
        raw_response=outcome.raw_response,
        errors=outcome.errors,
    )
