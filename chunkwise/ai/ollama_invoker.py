"""
Ollama chat invoker for Chunkwise.

Sends a system prompt plus transcript to Ollama's /api/chat endpoint and
returns the assistant message. Structured output requests pass the JSON
schema as Ollama's ``format`` field (Ollama v0.5+).

Timeouts and connection problems surface as RuntimeError; the summarization
engine turns those into GenerationFailure for the job.
"""

import time

import requests

from ..config import (
    OLLAMA_API_BASE,
    OLLAMA_CONTEXT_WINDOW,
    OLLAMA_MODEL_NAME,
    OLLAMA_TIMEOUT_SECONDS,
)
from ..logging_config import debug_log, warning
from .invoker import InvocationOptions, Message, ModelInvoker


class OllamaChatInvoker(ModelInvoker):
    """
    ModelInvoker backed by a local Ollama service.

    Args:
        model_name: Ollama model tag (defaults to OLLAMA_MODEL_NAME).
        api_base: Base URL of the Ollama service.
        timeout: Request timeout in seconds.
        context_window: num_ctx sent with every request.
        temperature: Default sampling temperature when a call gives none.
    """

    def __init__(
        self,
        model_name: str = None,
        api_base: str = None,
        timeout: int = None,
        context_window: int = None,
        temperature: float = None,
    ):
        self.model_name = model_name or OLLAMA_MODEL_NAME
        self.api_base = (api_base or OLLAMA_API_BASE).rstrip('/')
        self.timeout = timeout or OLLAMA_TIMEOUT_SECONDS
        self.context_window = context_window or OLLAMA_CONTEXT_WINDOW
        self.temperature = temperature

    @classmethod
    def from_config(cls, config: dict, model_name: str = None):
        """Build an invoker from the 'ollama' section of the summarizer config."""
        section = config.get('ollama', {})
        return cls(
            model_name=model_name or section.get('model'),
            api_base=section.get('api_base'),
            timeout=section.get('timeout_seconds'),
            context_window=section.get('context_window'),
        )

    def is_available(self) -> bool:
        """Check if Ollama is running and accessible."""
        try:
            response = requests.get(f"{self.api_base}/api/tags", timeout=5)
        except requests.exceptions.RequestException as e:
            debug_log(f"[OLLAMA] Connection error: {e}")
            return False
        return response.status_code == 200

    def _build_payload(self, system_prompt: str, transcript: list[Message],
                       options: InvocationOptions | None) -> dict:
        options = options or InvocationOptions()
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(message.to_dict() for message in transcript)

        model_options = {"num_ctx": self.context_window}
        temperature = options.temperature if options.temperature is not None else self.temperature
        if temperature is not None:
            model_options["temperature"] = temperature
        if options.max_tokens:
            model_options["num_predict"] = options.max_tokens

        payload = {
            "model": self.model_name,
            "messages": messages,
            "stream": False,
            "options": model_options,
        }
        if options.json_schema:
            payload["format"] = options.json_schema
        return payload

    def invoke(self, system_prompt, transcript, options=None) -> str:
        payload = self._build_payload(system_prompt, transcript, options)

        prompt_chars = sum(len(m["content"]) for m in payload["messages"])
        debug_log(f"[OLLAMA] Chat request: model={self.model_name}, "
                  f"{len(payload['messages'])} messages, {prompt_chars} chars")

        # 1 token ≈ 4 chars
        estimated_tokens = prompt_chars // 4
        if estimated_tokens > self.context_window - 300:
            warning(
                f"Prompt ({estimated_tokens} estimated tokens) may be truncated. "
                f"Context window is {self.context_window} tokens."
            )

        try:
            start_time = time.time()
            response = requests.post(
                f"{self.api_base}/api/chat",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RuntimeError(
                f"Generation timeout after {self.timeout} seconds from Ollama at {self.api_base}"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise RuntimeError(
                f"Cannot connect to Ollama at {self.api_base}. "
                "Is Ollama running? Start with: ollama serve"
            ) from e

        if response.status_code != 200:
            raise RuntimeError(f"Ollama returned status {response.status_code}: {response.text}")

        result = response.json()
        content = (result.get('message') or {}).get('content', '')
        debug_log(f"[OLLAMA] Chat complete: {result.get('eval_count', 0)} tokens "
                  f"in {time.time() - start_time:.2f}s, {len(content)} chars")
        return content
