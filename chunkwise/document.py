"""
Chunked Document Model

A document is a tree: every node may carry direct text, point at a substring
of its parent's text, or stand for the concatenation of one of its own chunk
groups. This module implements:
1. The Document node and its JSON wire format
2. Content resolution (lazy, recursive, never cached)
3. Token-budgeted re-chunking: merge small chunks, split oversized ones
4. Master documents built from several top-level documents

Wire format keys: id, content, parent, start, length, content_chunk_group,
chunks, annotations, metadata. Unknown keys survive a round trip.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from chunkwise.config import DEFAULT_ENCODING, DEFAULT_SOURCES_GROUP_NAME
from chunkwise.errors import InvalidArgument, StructureError
from chunkwise.logging_config import debug_log, debug_timing, info
from chunkwise.tokenization import TokenEncoder, TokenizerRegistry, get_default_registry

_KNOWN_KEYS = {
    'id', 'content', 'parent', 'start', 'length',
    'content_chunk_group', 'chunks', 'annotations', 'metadata',
}


def _is_int(value) -> bool:
    # bool is an int subclass but never a valid offset
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass
class Document:
    """
    A unit of text: a whole document or one chunk of one.

    Attributes:
        id: Opaque identifier, stable for the node's lifetime.
        content: Direct text, if any.
        parent_id: Id of the node this one references by substring.
        start: Substring offset into the parent's resolved content.
        length: Substring length.
        content_chunk_group: Name of one of this node's own chunk groups whose
            concatenated children make up its content.
        chunks: Ordered chunk groups, keyed by group name.
        annotations: Write target for generated outputs.
        metadata: Descriptive fields; never used to derive content.
        extra: Unknown wire keys, preserved for round trips.
        parent_node: The node whose chunk group holds this one. Set when the
            node is placed in a group; not part of the wire format.
    """
    id: str
    content: str | None = None
    parent_id: str | None = None
    start: int | None = None
    length: int | None = None
    content_chunk_group: str | None = None
    chunks: dict[str, list[Document]] = field(default_factory=dict)
    annotations: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    parent_node: Document | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        for children in self.chunks.values():
            for child in children:
                child.parent_node = self

    @classmethod
    def from_dict(cls, data: dict) -> Document:
        """Build a Document tree from its JSON object form."""
        if not isinstance(data, dict):
            raise StructureError("Document must be a JSON object")
        if 'id' not in data or data['id'] is None:
            raise StructureError("Document is missing its 'id'")

        raw_chunks = data.get('chunks') or {}
        if not isinstance(raw_chunks, dict):
            raise StructureError(f"Document '{data['id']}' has a non-object 'chunks' field")

        chunks = {}
        for group_name, children in raw_chunks.items():
            if not isinstance(children, list):
                raise StructureError(
                    f"Chunk group '{group_name}' of '{data['id']}' must be an array"
                )
            chunks[group_name] = [cls.from_dict(child) for child in children]

        return cls(
            id=str(data['id']),
            content=data.get('content'),
            parent_id=data.get('parent'),
            start=data.get('start'),
            length=data.get('length'),
            content_chunk_group=data.get('content_chunk_group'),
            chunks=chunks,
            annotations=dict(data.get('annotations') or {}),
            metadata=dict(data.get('metadata') or {}),
            extra={k: copy.deepcopy(v) for k, v in data.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict:
        """Serialize back to the JSON object form, omitting unset fields."""
        data: dict[str, Any] = {'id': self.id}
        if self.content is not None:
            data['content'] = self.content
        if self.parent_id is not None:
            data['parent'] = self.parent_id
        if self.start is not None:
            data['start'] = self.start
        if self.length is not None:
            data['length'] = self.length
        if self.content_chunk_group is not None:
            data['content_chunk_group'] = self.content_chunk_group
        if self.chunks:
            data['chunks'] = {
                name: [child.to_dict() for child in children]
                for name, children in self.chunks.items()
            }
        if self.annotations:
            data['annotations'] = copy.deepcopy(self.annotations)
        if self.metadata:
            data['metadata'] = copy.deepcopy(self.metadata)
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data

    def __deepcopy__(self, memo):
        # The copy is detached: its subtree is copied, its ancestors are not
        clone = type(self)(
            id=self.id,
            content=self.content,
            parent_id=self.parent_id,
            start=copy.deepcopy(self.start, memo),
            length=copy.deepcopy(self.length, memo),
            content_chunk_group=self.content_chunk_group,
            chunks=copy.deepcopy(self.chunks, memo),
            annotations=copy.deepcopy(self.annotations, memo),
            metadata=copy.deepcopy(self.metadata, memo),
            extra=copy.deepcopy(self.extra, memo),
        )
        memo[id(self)] = clone
        return clone

    def copy(self) -> Document:
        """Deep copy of this node and its whole subtree, detached from its parent."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # Chunk group access
    # ------------------------------------------------------------------
    def has_group(self, group_name: str) -> bool:
        return group_name in self.chunks

    def get_chunks(self, group_name: str) -> list[Document]:
        """Children of a group, or an empty list if the group is absent."""
        return self.chunks.get(group_name, [])

    def require_chunks(self, group_name: str) -> list[Document]:
        """Children of a group; raises StructureError if the group is absent."""
        if group_name not in self.chunks:
            raise StructureError(f"No chunk group named '{group_name}' found on document '{self.id}'")
        return self.chunks[group_name]

    def set_chunks(self, group_name: str, children: Iterable[Document]):
        """Replace a group in one assignment."""
        children = list(children)
        for child in children:
            child.parent_node = self
        self.chunks[group_name] = children


class DocumentModel:
    """
    Content resolution and token-budgeted re-chunking over Document trees.

    The model is stateless apart from its tokenizer registry; resolution is
    recomputed on every call so a mutated parent is always visible to the
    descendants that resolve afterwards.

    Args:
        tokenizers: Registry used to look up encodings. Defaults to the
                    process-wide tiktoken registry.
    """

    def __init__(self, tokenizers: TokenizerRegistry | None = None):
        self.tokenizers = tokenizers or get_default_registry()

    # ------------------------------------------------------------------
    # Content resolution
    # ------------------------------------------------------------------
    def resolve(self, node: Document, parent: Document | None = None) -> str:
        """
        Return the text a node represents.

        Exactly one path is taken, in this order:
        1. direct ``content`` string, verbatim;
        2. substring [start, start+length) of the structural parent's
           resolved content, when the node has a parent and both offsets
           are integers; the parent resolves through its own ancestors;
        3. concatenation of the children of ``content_chunk_group``;
        4. the empty string.

        Args:
            node: Node to resolve.
            parent: The node whose chunk group contains ``node``. Defaults to
                    the node's ``parent_node`` link.

        Raises:
            StructureError: If the substring reference falls outside the
                            parent's resolved content, or the node's content
                            depends on itself.
        """
        return self._resolve(node, parent, frozenset())

    def _resolve(self, node: Document, parent: Document | None, active: frozenset) -> str:
        if isinstance(node.content, str):
            return node.content

        if id(node) in active:
            raise StructureError(f"Cyclic content reference through '{node.id}'")
        active = active | {id(node)}

        if parent is None:
            parent = node.parent_node

        if parent is not None and _is_int(node.start) and _is_int(node.length):
            parent_text = self._resolve(parent, parent.parent_node, active)
            start = node.start
            end = start + node.length
            if start < 0 or node.length < 0 or end > len(parent_text):
                raise StructureError(
                    f"Invalid substring [{start},{end}) of parent '{parent.id}' "
                    f"(resolved length {len(parent_text)}) in chunk '{node.id}'"
                )
            return parent_text[start:end]

        if node.content_chunk_group and node.has_group(node.content_chunk_group):
            return ''.join(
                self._resolve(child, node, active)
                for child in node.get_chunks(node.content_chunk_group)
            )

        return ''

    def token_count(self, node: Document, encoding: str = DEFAULT_ENCODING,
                    parent: Document | None = None) -> int:
        """Number of tokens in the node's resolved content."""
        encoder = self.tokenizers.get_encoding(encoding)
        return len(encoder.encode(self.resolve(node, parent)))

    # ------------------------------------------------------------------
    # Re-chunking
    # ------------------------------------------------------------------
    def merge_by_token_budget(
        self,
        node: Document,
        group_name: str,
        max_tokens: int,
        encoding: str = DEFAULT_ENCODING,
        overlap_tokens: int = 0,
        new_group_name: str | None = None,
    ) -> list[Document]:
        """
        Merge a group's children into fewer chunks of at most max_tokens.

        Children are accumulated in order until the next one would overflow
        the budget, at which point the buffer is emitted as one chunk and a
        new buffer is seeded with its last ``overlap_tokens`` tokens. A child
        that alone exceeds the budget is cut into windows of ``max_tokens``
        advanced by ``max_tokens - overlap_tokens`` (at least 1).

        The new chunks own direct content, are parented to ``node`` and are
        stored under ``new_group_name`` (the node is mutated). The list is
        also returned.

        Raises:
            InvalidArgument: max_tokens < 1 or overlap_tokens < 0.
            StructureError: The source group does not exist.
        """
        self._check_budget(max_tokens)
        if not _is_int(overlap_tokens) or overlap_tokens < 0:
            raise InvalidArgument(f"overlap_tokens must be a non-negative integer, got {overlap_tokens!r}")
        if not new_group_name:
            new_group_name = f"{group_name}:merged({max_tokens},{encoding})"

        start_time = time.time()
        encoder = self.tokenizers.get_encoding(encoding)
        children = node.require_chunks(group_name)
        debug_log(
            f"[DOC MODEL] Merging {len(children)} chunks of '{node.id}' group '{group_name}' "
            f"(max_tokens={max_tokens}, overlap={overlap_tokens})"
        )

        builder = _ChunkBuilder(node.id, new_group_name, encoder)
        buffer: list[int] = []
        seed_size = 0  # leading tokens of buffer that only repeat the previous chunk

        def flush():
            nonlocal buffer, seed_size
            if len(buffer) > seed_size:
                builder.emit(buffer)
                buffer = _tail(buffer, overlap_tokens)
            else:
                buffer = []
            seed_size = len(buffer)

        for child in children:
            tokens = encoder.encode(self.resolve(child, node))

            if len(tokens) > max_tokens:
                flush()
                step = max(1, max_tokens - overlap_tokens)
                window: list[int] = []
                for window_start in range(0, len(tokens), step):
                    window = tokens[window_start:window_start + max_tokens]
                    builder.emit(window)
                    if window_start + max_tokens >= len(tokens):
                        break
                buffer = _tail(window, overlap_tokens)
                seed_size = len(buffer)
                continue

            if len(buffer) + len(tokens) > max_tokens:
                flush()
                if len(buffer) + len(tokens) > max_tokens:
                    # The overlap seed cannot share a chunk with this child
                    buffer = []
                    seed_size = 0
            buffer.extend(tokens)

        flush()

        new_chunks = builder.chunks
        node.set_chunks(new_group_name, new_chunks)
        debug_timing(f"[DOC MODEL] Merge into '{new_group_name}' ({len(new_chunks)} chunks)",
                     time.time() - start_time)
        return new_chunks

    def split_oversized_by_token_budget(
        self,
        node: Document,
        group_name: str,
        max_tokens: int,
        encoding: str = DEFAULT_ENCODING,
        new_group_name: str | None = None,
    ) -> list[Document]:
        """
        Split only the children that exceed max_tokens; never merge.

        Children within budget are copied unchanged (re-identified into the
        new group). Oversized children become consecutive, non-overlapping
        windows of exactly max_tokens tokens (the last may be shorter).

        Raises:
            InvalidArgument: max_tokens < 1.
            StructureError: The source group does not exist.
        """
        self._check_budget(max_tokens)
        if not new_group_name:
            new_group_name = f"{group_name}:splitOversized({max_tokens},{encoding})"

        start_time = time.time()
        encoder = self.tokenizers.get_encoding(encoding)
        children = node.require_chunks(group_name)
        debug_log(
            f"[DOC MODEL] Splitting oversized chunks of '{node.id}' group '{group_name}' "
            f"(max_tokens={max_tokens})"
        )

        builder = _ChunkBuilder(node.id, new_group_name, encoder)
        for child in children:
            tokens = encoder.encode(self.resolve(child, node))
            if len(tokens) <= max_tokens:
                builder.keep(child)
                continue
            for window_start in range(0, len(tokens), max_tokens):
                builder.emit(tokens[window_start:window_start + max_tokens])

        new_chunks = builder.chunks
        node.set_chunks(new_group_name, new_chunks)
        debug_timing(f"[DOC MODEL] Split into '{new_group_name}' ({len(new_chunks)} chunks)",
                     time.time() - start_time)
        return new_chunks

    def with_merged_by_token_budget(self, node: Document, group_name: str, max_tokens: int,
                                    encoding: str = DEFAULT_ENCODING, overlap_tokens: int = 0,
                                    new_group_name: str | None = None) -> Document:
        """Copy of node with the merged group added; node itself is untouched."""
        clone = node.copy()
        clone.parent_node = node.parent_node
        self.merge_by_token_budget(clone, group_name, max_tokens, encoding,
                                   overlap_tokens, new_group_name)
        return clone

    def with_split_oversized_by_token_budget(self, node: Document, group_name: str, max_tokens: int,
                                             encoding: str = DEFAULT_ENCODING,
                                             new_group_name: str | None = None) -> Document:
        """Copy of node with the split group added; node itself is untouched."""
        clone = node.copy()
        clone.parent_node = node.parent_node
        self.split_oversized_by_token_budget(clone, group_name, max_tokens, encoding, new_group_name)
        return clone

    @staticmethod
    def _check_budget(max_tokens):
        if not _is_int(max_tokens) or max_tokens < 1:
            raise InvalidArgument(f"max_tokens must be an integer >= 1, got {max_tokens!r}")


def create_master_from_documents(
    documents: list[Document],
    master_id: str | None = None,
    group_name: str = DEFAULT_SOURCES_GROUP_NAME,
) -> Document:
    """
    Build a new root whose chunk group holds copies of the given documents.

    Each copy is re-parented to the master. The master resolves to the
    concatenation of its sources. Its id defaults to the inputs' ids
    joined with ":"; an input whose id equals the master id is renamed
    with a "_child" suffix.

    Raises:
        InvalidArgument: No documents were given.
    """
    if not documents:
        raise InvalidArgument("Must provide a non-empty list of top-level documents")

    if not master_id:
        master_id = ":".join(doc.id for doc in documents)

    master = Document(id=master_id, content_chunk_group=group_name)
    sources = []
    for doc in documents:
        child = doc.copy()
        child.parent_id = master_id
        if child.id == master_id:
            child.id = f"{child.id}_child"
        sources.append(child)
    master.set_chunks(group_name, sources)

    info(f"[DOC MODEL] Created master document '{master_id}' from {len(sources)} documents")
    return master


def _tail(tokens: list[int], count: int) -> list[int]:
    """Last ``count`` tokens (none when count is 0)."""
    if count <= 0:
        return []
    return list(tokens[-count:])


class _ChunkBuilder:
    """Accumulates the new chunk list for one group-level operation."""

    def __init__(self, parent_id: str, group_name: str, encoder: TokenEncoder):
        self.parent_id = parent_id
        self.group_name = group_name
        self.encoder = encoder
        self.chunks: list[Document] = []

    def _next_id(self) -> str:
        return f"{self.parent_id}/{self.group_name}@{len(self.chunks)}"

    def emit(self, tokens: list[int]):
        self.chunks.append(Document(
            id=self._next_id(),
            parent_id=self.parent_id,
            content=self.encoder.decode(tokens),
        ))

    def keep(self, child: Document):
        kept = child.copy()
        kept.id = self._next_id()
        self.chunks.append(kept)
