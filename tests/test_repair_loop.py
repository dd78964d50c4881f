"""
Tests for the structured-output validation and repair loop.
"""

import pytest

from conftest import FakeInvoker

from chunkwise.ai.invoker import InvocationOptions, Message
from chunkwise.errors import InvalidArgument, Unprocessable
from chunkwise.summarization.repair import (
    RepairOutcome,
    generate_with_repair,
    require_valid,
    schema_validator,
)

SCHEMA = {
    "type": "object",
    "properties": {"title": {"type": "string"}, "points": {"type": "array", "items": {"type": "string"}}},
    "required": ["title", "points"],
}


def _transcript():
    return [Message(role='user', content="Summarize this.")]


class TestSchemaValidator:
    """Test jsonschema-backed validation."""

    def test_valid_value_has_no_problems(self):
        assert schema_validator(SCHEMA)({"title": "t", "points": []}) == []

    def test_problems_name_the_location(self):
        problems = schema_validator(SCHEMA)({"title": 3, "points": []})

        assert len(problems) == 1
        assert problems[0].startswith("$.title")

    def test_malformed_schema_is_invalid_argument(self):
        with pytest.raises(InvalidArgument, match="Invalid json_schema"):
            schema_validator({"type": "not-a-type"})


class TestGenerateWithRepair:
    """Test the retry loop."""

    def test_first_valid_response_returns_immediately(self):
        invoker = FakeInvoker(['{"title": "t", "points": ["a"]}'])

        outcome = generate_with_repair(invoker.invoke, "system", _transcript(), SCHEMA, 3)

        assert outcome.valid
        assert outcome.attempts == 1
        assert outcome.value == {"title": "t", "points": ["a"]}
        assert len(invoker.calls) == 1

    def test_invalid_response_is_fed_back_with_directive(self):
        """The rejected reply goes back verbatim, followed by the problems."""
        invoker = FakeInvoker([
            '{"title": "t"}',
            '```json\n{"title": "t", "points": []}\n```',
        ])

        outcome = generate_with_repair(invoker.invoke, "system", _transcript(), SCHEMA, 3)

        assert outcome.valid
        assert outcome.attempts == 2
        second = invoker.calls[1]['transcript']
        assert [m.role for m in second] == ['user', 'assistant', 'user']
        assert second[1].content == '{"title": "t"}'
        assert "'points' is a required property" in second[2].content

    def test_unparseable_response_counts_as_failure(self):
        invoker = FakeInvoker(["not json", '{"title": "t", "points": []}'])

        outcome = generate_with_repair(invoker.invoke, "system", _transcript(), SCHEMA, 2)

        assert outcome.valid
        assert "not valid JSON" in invoker.calls[1]['transcript'][-1].content

    def test_always_rejecting_validator_exhausts_attempts(self):
        """3 attempts -> 3 invocations, then Unprocessable with the raw response."""
        invoker = FakeInvoker(['{"n": 1}', '{"n": 2}', '{"n": 3}'])

        outcome = generate_with_repair(
            invoker.invoke, "system", _transcript(), None, 3,
            validator=lambda value: ["always wrong"],
        )

        assert len(invoker.calls) == 3
        assert not outcome.valid
        assert outcome.value == {"n": 3}
        assert outcome.raw_response == '{"n": 3}'
        assert outcome.errors == ["always wrong"]

        with pytest.raises(Unprocessable) as exc_info:
            require_valid(outcome)
        assert exc_info.value.raw_response is not None
        assert exc_info.value.best_effort == {"n": 3}
        assert exc_info.value.to_dict()["kind"] == "unprocessable"

    def test_best_effort_keeps_last_parsed_value(self):
        """A final unparseable reply does not erase the earlier parsed value."""
        invoker = FakeInvoker(['{"title": 1}', "garbage"])

        outcome = generate_with_repair(invoker.invoke, "system", _transcript(), SCHEMA, 2)

        assert outcome.value == {"title": 1}
        assert outcome.raw_response == "garbage"

    def test_options_are_passed_to_every_attempt(self):
        invoker = FakeInvoker(["bad", "bad"])
        options = InvocationOptions(json_schema=SCHEMA, temperature=0.1)

        generate_with_repair(invoker.invoke, "system", _transcript(), SCHEMA, 2, options=options)

        assert all(call['options'] is options for call in invoker.calls)

    def test_input_transcript_is_not_modified(self):
        transcript = _transcript()
        invoker = FakeInvoker(["bad", "bad"])

        generate_with_repair(invoker.invoke, "system", transcript, SCHEMA, 2)

        assert len(transcript) == 1

    def test_attempts_below_one_is_invalid(self):
        with pytest.raises(InvalidArgument):
            generate_with_repair(FakeInvoker().invoke, "system", _transcript(), SCHEMA, 0)

    def test_schema_or_validator_required(self):
        with pytest.raises(InvalidArgument):
            generate_with_repair(FakeInvoker().invoke, "system", _transcript(), None, 1)


class TestRequireValid:
    def test_valid_outcome_returns_value(self):
        outcome = RepairOutcome(value={"a": 1}, raw_response='{"a": 1}', attempts=1, valid=True)
        assert require_valid(outcome) == {"a": 1}
