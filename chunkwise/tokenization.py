"""
Tokenizer Adapter

Converts text to and from countable token sequences for a named encoding.
Token counts drive chunk sizing (merge/split) and budget accounting only;
nothing here interprets the text.

The default registry resolves encodings through tiktoken. Callers that need a
different tokenizer (or a deterministic one in tests) can pass their own
TokenizerRegistry subclass wherever a registry is accepted.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import tiktoken

from chunkwise.config import DEFAULT_ENCODING
from chunkwise.errors import InvalidArgument
from chunkwise.logging_config import debug_log


def _force_string(decoded) -> str:
    """Some decoders hand back bytes; normalize to str."""
    if isinstance(decoded, str):
        return decoded
    if isinstance(decoded, (bytes, bytearray)):
        return bytes(decoded).decode('utf-8', errors='replace')
    return str(decoded)


class TokenEncoder(ABC):
    """Encode/decode pair for one named encoding."""

    name: str

    @abstractmethod
    def encode(self, text: str) -> list[int]:
        """Convert text to a list of token ids."""

    @abstractmethod
    def decode(self, tokens: list[int]) -> str:
        """Convert a list of token ids back to text."""

    def count(self, text: str) -> int:
        return len(self.encode(text or ''))


class TiktokenEncoder(TokenEncoder):
    """TokenEncoder backed by a tiktoken Encoding."""

    def __init__(self, name: str):
        self.name = name
        self._encoding = tiktoken.get_encoding(name)

    def encode(self, text: str) -> list[int]:
        # Special-token text inside documents is ordinary content here
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: list[int]) -> str:
        return _force_string(self._encoding.decode(list(tokens)))


class TokenizerRegistry:
    """
    Resolves encoding names to TokenEncoder instances, caching each one.

    Subclasses override ``_create`` to supply a different tokenizer family.
    """

    def __init__(self):
        self._encoders: dict[str, TokenEncoder] = {}
        self._lock = threading.Lock()

    def get_encoding(self, name: str) -> TokenEncoder:
        if not name:
            raise InvalidArgument("Encoding name must be a non-empty string")
        with self._lock:
            encoder = self._encoders.get(name)
            if encoder is None:
                debug_log(f"[TOKENIZER] Loading encoding '{name}'")
                encoder = self._create(name)
                self._encoders[name] = encoder
            return encoder

    def _create(self, name: str) -> TokenEncoder:
        try:
            return TiktokenEncoder(name)
        except ValueError as e:
            raise InvalidArgument(f"Unknown encoding '{name}': {e}") from e


_default_registry = TokenizerRegistry()


def get_default_registry() -> TokenizerRegistry:
    """Process-wide registry used when callers do not supply one."""
    return _default_registry


def count_tokens(text: str, encoding: str = DEFAULT_ENCODING,
                 registry: TokenizerRegistry | None = None) -> int:
    """Number of tokens in text under the named encoding."""
    registry = registry or _default_registry
    return registry.get_encoding(encoding).count(text)
