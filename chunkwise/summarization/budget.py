"""
Advisory token-budget allocation.

Spreads a total token budget over the remaining chunks of a run. The limit is
only rendered into the prompt as a word count; model output is never
truncated. After each step the budget is charged with what the model actually
produced, so a verbose step leaves less for the rest and a terse one more.
"""

import json
import math
from typing import Any

from chunkwise.config import DEFAULT_TOKENS_PER_WORD
from chunkwise.errors import InvalidArgument
from chunkwise.logging_config import debug_log
from chunkwise.tokenization import TokenEncoder


def measure_text(value: Any) -> str:
    """Text whose token count stands for a produced value (compact JSON for structures)."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


class BudgetAllocator:
    """
    Tracks remaining budget and chunk count for one run.

    Args:
        budget: Total tokens for the whole run.
        total_chunks: Number of steps the budget must cover.
        encoder: Tokenizer used to measure produced output.
        tokens_per_word: Ratio used to convert tokens into a word limit.

    Example:
        allocator = BudgetAllocator(1000, 4, encoder)
        words = allocator.next_word_limit()   # floor(1000 / 4 / 1.33) = 187
        allocator.record(summary_text)
    """

    def __init__(self, budget: int, total_chunks: int, encoder: TokenEncoder,
                 tokens_per_word: float = DEFAULT_TOKENS_PER_WORD):
        if budget is None or budget <= 0:
            raise InvalidArgument(f"budget must be positive, got {budget!r}")
        if tokens_per_word <= 0:
            raise InvalidArgument(f"tokens_per_word must be positive, got {tokens_per_word!r}")
        if total_chunks < 0:
            raise InvalidArgument(f"total_chunks must be >= 0, got {total_chunks!r}")

        self.budget = budget
        self.remaining_budget = budget
        self.remaining_chunks = total_chunks
        self.encoder = encoder
        self.tokens_per_word = tokens_per_word
        self.spent: list[int] = []

    def next_word_limit(self) -> int:
        """Word limit for the next step; at least 1."""
        chunks = max(1, self.remaining_chunks)
        remaining = max(0, self.remaining_budget)
        return max(1, math.floor(remaining / chunks / self.tokens_per_word))

    def record(self, produced: Any) -> int:
        """
        Charge the budget with a step's output.

        Returns:
            Tokens counted for the output.
        """
        used = self.encoder.count(measure_text(produced))
        self.remaining_budget -= used
        self.remaining_chunks = max(0, self.remaining_chunks - 1)
        self.spent.append(used)
        debug_log(
            f"[BUDGET] Step used {used} tokens; {self.remaining_budget} left "
            f"for {self.remaining_chunks} chunks"
        )
        return used
