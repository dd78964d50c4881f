"""
Context-window assembly for chunk-level steps.

For chunk i of a group, up to ``before`` preceding and ``after`` succeeding
neighbours (by array position) are resolved and rendered read-only. They are
shown to the model but never summarized or mutated.
"""

from dataclasses import dataclass, field

from chunkwise.document import Document, DocumentModel

from .prompts import render_chunk


@dataclass
class ChunkWindow:
    """The rendered current chunk plus its read-only neighbours."""
    current: str
    preceding: list[str] = field(default_factory=list)
    succeeding: list[str] = field(default_factory=list)


def build_chunk_window(
    model: DocumentModel,
    parent: Document,
    chunks: list[Document],
    index: int,
    before: int = 0,
    after: int = 0,
) -> ChunkWindow:
    """
    Render chunk ``index`` and its neighbours.

    Args:
        model: Resolves each chunk's text (with ``parent`` as structural parent).
        parent: Node that owns the chunk group.
        chunks: The group's children.
        index: Position of the current chunk.
        before: Number of preceding neighbours to include.
        after: Number of succeeding neighbours to include.
    """
    def render(chunk: Document) -> str:
        return render_chunk(chunk.id, model.resolve(chunk, parent))

    preceding = [render(c) for c in chunks[max(0, index - before):index]] if before > 0 else []
    succeeding = [render(c) for c in chunks[index + 1:index + 1 + after]] if after > 0 else []

    return ChunkWindow(current=render(chunks[index]), preceding=preceding, succeeding=succeeding)
