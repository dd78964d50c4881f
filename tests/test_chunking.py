"""
Tests for the re-chunking service.

Token counts use the one-token-per-character registry from conftest.
"""

import pytest

from conftest import make_chunked_document

from chunkwise.chunking import (
    MERGE_AND_SPLIT,
    SPLIT_BY_TOKEN_COUNT,
    ensure_chunk_group,
    rechunk,
    source_filename,
)
from chunkwise.document import Document
from chunkwise.errors import InvalidArgument


class TestRechunk:
    """Test both re-chunking strategies end to end."""

    def test_merge_and_split_group_name_and_titles(self, doc_model):
        document = make_chunked_document(["aa", "bb", "cc", "dd"], metadata={"filename": "notes.txt"})

        result = rechunk(document, MERGE_AND_SPLIT, 4, model=doc_model)

        assert result.group_name == "pages:mergedAndSplit"
        assert document.has_group("pages:mergedAndSplit")
        assert [p["chunk_index"] for p in result.chunks] == [1, 2]
        assert [p["chunk_data"]["body"] for p in result.chunks] == ["aabb", "ccdd"]
        assert result.chunks[0]["chunk_data"]["title"] == "notes.txt (Part 1)"
        assert result.chunks[1]["chunk_data"]["title"] == "notes.txt (Part 2)"

    def test_split_by_token_count_never_merges(self, doc_model):
        document = make_chunked_document(["ab", "abcdefghi", "abc"])

        result = rechunk(document, SPLIT_BY_TOKEN_COUNT, 5, model=doc_model)

        assert result.group_name == "pages:splitByTokenCount"
        bodies = [p["chunk_data"]["body"] for p in result.chunks]
        assert bodies == ["ab", "abcde", "fghi", "abc"]

    def test_merge_with_overlap(self, doc_model):
        document = make_chunked_document(["abcd", "efgh"])

        result = rechunk(document, MERGE_AND_SPLIT, 6, overlap_tokens=2, model=doc_model)

        bodies = [p["chunk_data"]["body"] for p in result.chunks]
        assert bodies == ["abcd", "cdefgh"]

    def test_document_without_group_gets_one_chunk_first(self, doc_model):
        document = Document(id="plain", content="abcdefghij")

        result = rechunk(document, SPLIT_BY_TOKEN_COUNT, 4, model=doc_model)

        assert len(document.get_chunks("pages")) == 1
        assert [p["chunk_data"]["body"] for p in result.chunks] == ["abcd", "efgh", "ij"]
        assert result.chunks[0]["chunk_data"]["title"] == "Document (Part 1)"

    def test_custom_source_group(self, doc_model):
        document = make_chunked_document(["abc", "def"], group="sections")

        result = rechunk(document, MERGE_AND_SPLIT, 10, chunk_group="sections", model=doc_model)

        assert result.group_name == "sections:mergedAndSplit"
        assert [p["chunk_data"]["body"] for p in result.chunks] == ["abcdef"]

    @pytest.mark.parametrize("chunk_size", [0, -3, "10", True])
    def test_invalid_chunk_size(self, doc_model, chunk_size):
        with pytest.raises(InvalidArgument):
            rechunk(make_chunked_document(["a"]), MERGE_AND_SPLIT, chunk_size, model=doc_model)

    def test_unknown_strategy(self, doc_model):
        with pytest.raises(InvalidArgument, match="Unsupported strategy"):
            rechunk(make_chunked_document(["a"]), "by_sentence", 10, model=doc_model)


class TestHelpers:
    def test_source_filename_prefers_originating_name(self):
        doc = Document(id="d", metadata={"originating_filename": "a.pdf", "filename": "b.pdf"})
        assert source_filename(doc) == "a.pdf"

    def test_source_filename_fallback(self):
        assert source_filename(Document(id="d")) == "Document"

    def test_ensure_chunk_group_keeps_existing_group(self, doc_model):
        document = make_chunked_document(["x", "y"])

        assert ensure_chunk_group(document, "pages", doc_model) is False
        assert len(document.get_chunks("pages")) == 2

    def test_ensure_chunk_group_creates_resolving_chunk(self, doc_model):
        document = Document(id="d", content="whole text")

        assert ensure_chunk_group(document, "pages", doc_model) is True
        chunk = document.get_chunks("pages")[0]
        assert chunk.id == "d/pages@0"
        assert chunk.parent_id == "d"
        assert doc_model.resolve(chunk, document) == "whole text"
