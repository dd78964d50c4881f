"""
Model invocation interface.

The summarization engine talks to a language model through exactly one
capability: ``invoke(system_prompt, transcript, options) -> assistant text``.
How that reaches a provider is up to the concrete invoker.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class Message:
    """One role-tagged transcript entry ('user', 'assistant', ...)."""
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class InvocationOptions:
    """
    Per-call options passed through to the invoker.

    Attributes:
        json_schema: Request structured output conforming to this schema.
        max_tokens: Output cap, if the provider supports one.
        temperature: Sampling temperature override.
    """
    json_schema: dict[str, Any] | None = None
    max_tokens: int | None = None
    temperature: float | None = None


class ModelInvoker(ABC):
    """Abstract model invocation capability."""

    @abstractmethod
    def invoke(
        self,
        system_prompt: str,
        transcript: list[Message],
        options: InvocationOptions | None = None,
    ) -> str:
        """
        Generate the assistant's reply to a transcript.

        Args:
            system_prompt: System instructions for this call.
            transcript: Ordered role-tagged messages.
            options: Structured-output / output-cap / temperature options.

        Returns:
            The assistant text.
        """


class CallableInvoker(ModelInvoker):
    """
    Adapts a plain function to the ModelInvoker interface.

    Example:
        invoker = CallableInvoker(lambda system, transcript, options: "summary")
    """

    def __init__(self, fn: Callable[[str, list[Message], InvocationOptions | None], str]):
        self._fn = fn

    def invoke(self, system_prompt, transcript, options=None) -> str:
        return self._fn(system_prompt, transcript, options)
