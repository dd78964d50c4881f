"""
Tests for the advisory budget allocator.
"""

import pytest

from conftest import CharEncoder

from chunkwise.errors import InvalidArgument
from chunkwise.summarization.budget import BudgetAllocator, measure_text


class TestBudgetAllocator:
    """Test word-limit computation and recomputation."""

    def test_initial_limit(self):
        """floor(1000 / 4 / 1.33) = 187 words."""
        allocator = BudgetAllocator(1000, 4, CharEncoder())
        assert allocator.next_word_limit() == 187

    def test_custom_ratio(self):
        allocator = BudgetAllocator(400, 2, CharEncoder(), tokens_per_word=2.0)
        assert allocator.next_word_limit() == 100

    def test_recomputes_from_actual_output(self):
        """A verbose step leaves less for the remaining chunks."""
        allocator = BudgetAllocator(400, 4, CharEncoder(), tokens_per_word=1.0)
        assert allocator.next_word_limit() == 100

        used = allocator.record("x" * 250)

        assert used == 250
        assert allocator.remaining_budget == 150
        assert allocator.remaining_chunks == 3
        assert allocator.next_word_limit() == 50

    def test_terse_step_leaves_more(self):
        allocator = BudgetAllocator(400, 4, CharEncoder(), tokens_per_word=1.0)
        allocator.record("x" * 10)

        assert allocator.next_word_limit() == 130

    def test_limit_never_below_one_word(self):
        """An overspent budget still asks for at least one word."""
        allocator = BudgetAllocator(10, 2, CharEncoder())
        allocator.record("x" * 50)

        assert allocator.remaining_budget < 0
        assert allocator.next_word_limit() == 1

    def test_structured_values_are_measured_as_compact_json(self):
        allocator = BudgetAllocator(100, 2, CharEncoder())

        used = allocator.record({"a": [1, 2]})

        assert used == len('{"a":[1,2]}')

    def test_invalid_construction(self):
        with pytest.raises(InvalidArgument):
            BudgetAllocator(0, 2, CharEncoder())
        with pytest.raises(InvalidArgument):
            BudgetAllocator(100, 2, CharEncoder(), tokens_per_word=0)


class TestMeasureText:
    def test_strings_are_unchanged(self):
        assert measure_text("plain") == "plain"

    def test_non_ascii_kept(self):
        assert measure_text(["é"]) == '["é"]'
