"""
Merge policies for combining partial summaries.

Both policies make exactly N-1 calls to ``combine`` for N summaries and
return the lone summary untouched when N == 1.

- left-to-right: combine(combine(s1, s2), s3) ...
- hierarchical: split at len // 2, merge each half recursively, combine
  the two results (merge-sort shape, shallower dependency chain).
"""

from typing import Any, Callable, Sequence

from chunkwise.errors import InvalidArgument, StructureError

Combine = Callable[[Any, Any], Any]


def merge_left_to_right(summaries: Sequence[Any], combine: Combine) -> Any:
    if not summaries:
        raise StructureError("Nothing to merge: no partial summaries")
    merged = summaries[0]
    for summary in summaries[1:]:
        merged = combine(merged, summary)
    return merged


def merge_hierarchical(summaries: Sequence[Any], combine: Combine) -> Any:
    if not summaries:
        raise StructureError("Nothing to merge: no partial summaries")
    if len(summaries) == 1:
        return summaries[0]
    mid = len(summaries) // 2
    left = merge_hierarchical(summaries[:mid], combine)
    right = merge_hierarchical(summaries[mid:], combine)
    return combine(left, right)


MERGE_POLICIES: dict[str, Callable[[Sequence[Any], Combine], Any]] = {
    'left-to-right': merge_left_to_right,
    'hierarchical': merge_hierarchical,
}


def merge_summaries(summaries: Sequence[Any], combine: Combine, mode: str = 'left-to-right') -> Any:
    """Combine summaries with the named policy."""
    try:
        policy = MERGE_POLICIES[str(getattr(mode, 'value', mode))]
    except KeyError:
        raise InvalidArgument(f"Unknown merge mode '{mode}'") from None
    return policy(summaries, combine)
