"""
Re-chunking Service

Produces a token-bounded chunk group for a document and describes the new
chunks as titled payloads ready for display or export.

Strategies:
    merge_and_split       Merge small chunks up to chunk_size, window the
                          oversized ones (group "<group>:mergedAndSplit")
    split_by_token_count  Only split chunks above chunk_size
                          (group "<group>:splitByTokenCount")

A document without the requested group gets one first: a single chunk
holding its whole resolved content, so plain documents can be chunked too.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from chunkwise.config import DEFAULT_CHUNK_GROUP_NAME, DEFAULT_ENCODING
from chunkwise.document import Document, DocumentModel
from chunkwise.errors import InvalidArgument
from chunkwise.logging_config import debug_log, debug_timing, info

MERGE_AND_SPLIT = "merge_and_split"
SPLIT_BY_TOKEN_COUNT = "split_by_token_count"

CHUNKING_STRATEGIES = {
    MERGE_AND_SPLIT: "mergedAndSplit",
    SPLIT_BY_TOKEN_COUNT: "splitByTokenCount",
}


@dataclass
class RechunkResult:
    """
    Outcome of a rechunk call.

    Attributes:
        document: The document, now carrying the new group.
        group_name: Name of the new chunk group.
        chunks: Titled payloads, one per new chunk:
                {"chunk_index": i, "chunk_data": {"title": ..., "body": ...}}
    """
    document: Document
    group_name: str
    chunks: list[dict] = field(default_factory=list)


def source_filename(document: Document) -> str:
    """Display name used in chunk titles."""
    metadata = document.metadata or {}
    return metadata.get('originating_filename') or metadata.get('filename') or "Document"


def ensure_chunk_group(document: Document, group_name: str, model: DocumentModel) -> bool:
    """
    Create a one-chunk group from the document's resolved content if missing.

    Returns:
        True if the group was created.
    """
    if document.has_group(group_name):
        return False
    document.set_chunks(group_name, [Document(
        id=f"{document.id}/{group_name}@0",
        parent_id=document.id,
        content=model.resolve(document),
    )])
    debug_log(f"[CHUNKING] Created single-chunk group '{group_name}' on '{document.id}'")
    return True


def rechunk(
    document: Document,
    strategy: str,
    chunk_size: int,
    chunk_group: str = DEFAULT_CHUNK_GROUP_NAME,
    encoding: str = DEFAULT_ENCODING,
    overlap_tokens: int = 0,
    model: DocumentModel | None = None,
) -> RechunkResult:
    """
    Re-chunk one group of a document by token count.

    Args:
        document: Document to re-chunk (mutated: gains the new group).
        strategy: "merge_and_split" or "split_by_token_count".
        chunk_size: Maximum tokens per chunk.
        chunk_group: Source group name.
        encoding: Tokenizer encoding.
        overlap_tokens: Overlap between merged chunks (merge_and_split only).
        model: DocumentModel to use (default registry if None).

    Raises:
        InvalidArgument: Unknown strategy or chunk_size < 1.
    """
    if strategy not in CHUNKING_STRATEGIES:
        allowed = ", ".join(CHUNKING_STRATEGIES)
        raise InvalidArgument(f"Unsupported strategy: {strategy} (expected one of: {allowed})")
    if not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size < 1:
        raise InvalidArgument(f"Invalid chunk_size for {strategy} (must be > 0), got {chunk_size!r}")

    model = model or DocumentModel()
    start_time = time.time()
    ensure_chunk_group(document, chunk_group, model)

    group_name = f"{chunk_group}:{CHUNKING_STRATEGIES[strategy]}"
    if strategy == MERGE_AND_SPLIT:
        new_chunks = model.merge_by_token_budget(
            document, chunk_group, chunk_size, encoding,
            overlap_tokens=overlap_tokens, new_group_name=group_name,
        )
    else:
        new_chunks = model.split_oversized_by_token_budget(
            document, chunk_group, chunk_size, encoding, new_group_name=group_name,
        )

    filename = source_filename(document)
    payloads = [
        {
            "chunk_index": index + 1,
            "chunk_data": {
                "title": f"{filename} (Part {index + 1})",
                "body": model.resolve(chunk, document),
            },
        }
        for index, chunk in enumerate(new_chunks)
    ]

    info(f"[CHUNKING] {strategy}: '{document.id}' -> {len(payloads)} chunks in '{group_name}'")
    debug_timing(f"[CHUNKING] {strategy}", time.time() - start_time)
    return RechunkResult(document=document, group_name=group_name, chunks=payloads)
