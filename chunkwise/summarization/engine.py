"""
Summarization engine: strategy dispatch for one job.

The strategy is chosen from a closed table keyed by SummarizeMethod. The
engine records the job's step total before the first model call so pollers
see a stable denominator, runs the strategy, and returns the annotated tree.
"""

from __future__ import annotations

import time

from chunkwise.ai.invoker import ModelInvoker
from chunkwise.document import DocumentModel
from chunkwise.errors import InvalidArgument
from chunkwise.jobs.models import Job, SummarizeMethod
from chunkwise.logging_config import debug_timing, info

from .repair import Validator
from .strategies import (
    CancelCheck,
    DeltaFoldSummarization,
    FoldSummarization,
    FullSummarization,
    MapMergeSummarization,
    MapSummarization,
    MergeSummarization,
    SummarizationStrategy,
)

STRATEGIES: dict[SummarizeMethod, type[SummarizationStrategy]] = {
    SummarizeMethod.FULL: FullSummarization,
    SummarizeMethod.MAP: MapSummarization,
    SummarizeMethod.FOLD: FoldSummarization,
    SummarizeMethod.DELTA_FOLD: DeltaFoldSummarization,
    SummarizeMethod.MERGE: MergeSummarization,
    SummarizeMethod.MAP_MERGE: MapMergeSummarization,
}


def strategy_for(method: SummarizeMethod | str) -> SummarizationStrategy:
    """Instantiate the strategy for a method."""
    try:
        return STRATEGIES[SummarizeMethod(method)]()
    except ValueError:
        raise InvalidArgument(f"Unsupported summarization method '{method}'") from None


class SummarizationEngine:
    """
    Runs summarization jobs against a model invoker.

    Args:
        invoker: Model invocation capability.
        document_model: Resolution and tokenizer access (default registry if None).
        validator: Custom structured-output validator for the repair loop.
    """

    def __init__(self, invoker: ModelInvoker, document_model: DocumentModel | None = None,
                 validator: Validator | None = None):
        self.invoker = invoker
        self.document_model = document_model or DocumentModel()
        self.validator = validator

    def run(self, job: Job, is_cancelled: CancelCheck | None = None) -> dict:
        """
        Drive a processing job to the end of its strategy.

        Returns:
            The serialized annotated document.
        """
        strategy = strategy_for(job.request.method)
        job.set_total(strategy.count_steps(job.request, job.document))
        info(
            f"[SUMMARIZE] Job {job.id}: method={job.request.method.value} "
            f"steps={job.chunks_total} document='{job.document.id}'"
        )

        start_time = time.time()
        strategy.run(job, self.document_model, self.invoker, is_cancelled, self.validator)
        debug_timing(f"[SUMMARIZE] Job {job.id} ({job.request.method.value})", time.time() - start_time)

        return job.document.to_dict()
