"""
Shared fixtures for Chunkwise tests.

Tests never touch the network or download tiktoken data:
- char_registry: one token per character, so token counts equal len(text)
- FakeInvoker: scripted model replies with a record of every call
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from chunkwise.ai.invoker import ModelInvoker
from chunkwise.document import Document, DocumentModel
from chunkwise.tokenization import TokenEncoder, TokenizerRegistry


class CharEncoder(TokenEncoder):
    """Every character is one token (its code point)."""

    def __init__(self, name: str = "chars"):
        self.name = name

    def encode(self, text):
        return [ord(ch) for ch in text]

    def decode(self, tokens):
        return "".join(chr(t) for t in tokens)


class CharRegistry(TokenizerRegistry):
    """Registry that answers every encoding name with a CharEncoder."""

    def _create(self, name):
        return CharEncoder(name)


class FakeInvoker(ModelInvoker):
    """
    Scripted model.

    Args:
        replies: List of reply strings (consumed in order) or a callable
                 (system_prompt, transcript, options) -> str.
                 When a list runs out, replies are "reply <n>".
    """

    def __init__(self, replies=None):
        self.replies = replies
        self.calls = []

    def invoke(self, system_prompt, transcript, options=None):
        self.calls.append({
            'system_prompt': system_prompt,
            'transcript': list(transcript),
            'options': options,
        })
        if callable(self.replies):
            return self.replies(system_prompt, transcript, options)
        if self.replies:
            return self.replies.pop(0)
        return f"reply {len(self.calls)}"

    @property
    def user_messages(self):
        return [call['transcript'][-1].content for call in self.calls]


@pytest.fixture
def char_registry():
    return CharRegistry()


@pytest.fixture
def doc_model(char_registry):
    return DocumentModel(char_registry)


@pytest.fixture
def fake_invoker():
    return FakeInvoker()


def make_chunked_document(texts, group="pages", doc_id="doc", metadata=None):
    """Root document whose content is the concatenation of the given chunk texts."""
    return Document(
        id=doc_id,
        content_chunk_group=group,
        metadata=metadata or {},
        chunks={group: [
            Document(id=f"{doc_id}/{group}@{i}", parent_id=doc_id, content=text)
            for i, text in enumerate(texts)
        ]},
    )


@pytest.fixture
def four_page_document():
    return make_chunked_document(["alpha ", "beta ", "gamma ", "delta"])
