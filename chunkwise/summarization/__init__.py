"""
Summarization Package

Multi-strategy summarization over chunked documents.

Components:
- SummarizationEngine: Picks a strategy for a job and runs it
- SummarizationStrategy: full, map, fold, delta-fold, merge, map-merge
- BudgetAllocator: Advisory per-step word limits from a token budget
- generate_with_repair / require_valid: Schema validation and repair loop
- parse_model_reply: Fence stripping and JSON parsing with a parse-error sentinel
"""

from .budget import BudgetAllocator
from .engine import STRATEGIES, SummarizationEngine, strategy_for
from .merging import merge_hierarchical, merge_left_to_right, merge_summaries
from .repair import RepairOutcome, generate_with_repair, require_valid, schema_validator
from .strategies import (
    DeltaFoldSummarization,
    FoldSummarization,
    FullSummarization,
    MapMergeSummarization,
    MapSummarization,
    MergeSummarization,
    StepRunner,
    SummarizationStrategy,
)
from .structured_output import is_parse_error, parse_model_reply, strip_code_fences

__all__ = [
    'BudgetAllocator',
    'DeltaFoldSummarization',
    'FoldSummarization',
    'FullSummarization',
    'MapMergeSummarization',
    'MapSummarization',
    'MergeSummarization',
    'RepairOutcome',
    'STRATEGIES',
    'StepRunner',
    'SummarizationEngine',
    'SummarizationStrategy',
    'generate_with_repair',
    'is_parse_error',
    'merge_hierarchical',
    'merge_left_to_right',
    'merge_summaries',
    'parse_model_reply',
    'require_valid',
    'schema_validator',
    'strategy_for',
    'strip_code_fences',
]
