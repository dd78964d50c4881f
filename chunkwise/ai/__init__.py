"""
Chunkwise AI Module
Model invocation for the summarization engine.

The engine depends only on ModelInvoker. OllamaChatInvoker is the bundled
concrete backend (REST calls via requests); CallableInvoker adapts a plain
function (system_prompt, transcript, options) -> text.
"""

from .invoker import CallableInvoker, InvocationOptions, Message, ModelInvoker
from .ollama_invoker import OllamaChatInvoker

__all__ = [
    'CallableInvoker',
    'InvocationOptions',
    'Message',
    'ModelInvoker',
    'OllamaChatInvoker',
]
