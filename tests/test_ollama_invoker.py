"""
Tests for the Ollama chat invoker.

requests is patched throughout; no Ollama service is needed.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from chunkwise.ai import InvocationOptions, Message, OllamaChatInvoker


def _response(status_code=200, content="summary text", **extra):
    response = MagicMock()
    response.status_code = status_code
    response.text = "server says no"
    response.json.return_value = {"message": {"role": "assistant", "content": content}, **extra}
    return response


@pytest.fixture
def invoker():
    return OllamaChatInvoker(model_name="test-model", api_base="http://ollama:11434/",
                             timeout=30, context_window=4096)


class TestOllamaChatInvoker:
    """Test request construction and error mapping."""

    def test_sends_system_prompt_and_transcript(self, invoker):
        transcript = [Message('user', "hi"), Message('assistant', "{}"), Message('user', "fix it")]

        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=_response()) as post:
            reply = invoker.invoke("be brief", transcript)

        assert reply == "summary text"
        url = post.call_args.args[0]
        payload = post.call_args.kwargs['json']
        assert url == "http://ollama:11434/api/chat"
        assert post.call_args.kwargs['timeout'] == 30
        assert payload['model'] == "test-model"
        assert payload['stream'] is False
        assert payload['messages'] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "{}"},
            {"role": "user", "content": "fix it"},
        ]
        assert payload['options'] == {"num_ctx": 4096}
        assert 'format' not in payload

    def test_options_are_forwarded(self, invoker):
        schema = {"type": "object"}
        options = InvocationOptions(json_schema=schema, max_tokens=200, temperature=0.2)

        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=_response()) as post:
            invoker.invoke("system", [Message('user', "x")], options)

        payload = post.call_args.kwargs['json']
        assert payload['format'] == schema
        assert payload['options'] == {"num_ctx": 4096, "temperature": 0.2, "num_predict": 200}

    def test_default_temperature_used_when_call_has_none(self):
        invoker = OllamaChatInvoker(temperature=0.9)

        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=_response()) as post:
            invoker.invoke("system", [Message('user', "x")], InvocationOptions())

        assert post.call_args.kwargs['json']['options']['temperature'] == 0.9

    def test_missing_message_returns_empty_text(self, invoker):
        response = _response()
        response.json.return_value = {"done": True}

        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=response):
            assert invoker.invoke("system", []) == ""

    def test_http_error_raises_runtime_error(self, invoker):
        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=_response(status_code=500)):
            with pytest.raises(RuntimeError, match="status 500"):
                invoker.invoke("system", [])

    def test_timeout_raises_runtime_error(self, invoker):
        with patch('chunkwise.ai.ollama_invoker.requests.post',
                   side_effect=requests.exceptions.Timeout()):
            with pytest.raises(RuntimeError, match="timeout after 30 seconds"):
                invoker.invoke("system", [])

    def test_connection_error_raises_runtime_error(self, invoker):
        with patch('chunkwise.ai.ollama_invoker.requests.post',
                   side_effect=requests.exceptions.ConnectionError()):
            with pytest.raises(RuntimeError, match="Cannot connect"):
                invoker.invoke("system", [])

    def test_large_prompt_warns(self, invoker):
        big = "x" * (4096 * 4)

        with patch('chunkwise.ai.ollama_invoker.requests.post', return_value=_response()), \
                patch('chunkwise.ai.ollama_invoker.warning') as warn:
            invoker.invoke("system", [Message('user', big)])

        warn.assert_called_once()
        assert "may be truncated" in warn.call_args.args[0]


class TestAvailability:
    def test_available_when_tags_answer(self, invoker):
        with patch('chunkwise.ai.ollama_invoker.requests.get', return_value=MagicMock(status_code=200)):
            assert invoker.is_available()

    def test_unavailable_on_connection_error(self, invoker):
        with patch('chunkwise.ai.ollama_invoker.requests.get',
                   side_effect=requests.exceptions.ConnectionError()):
            assert not invoker.is_available()


class TestFromConfig:
    def test_reads_ollama_section(self):
        config = {"ollama": {"model": "llama3", "api_base": "http://box:1", "timeout_seconds": 5,
                             "context_window": 2048}}

        invoker = OllamaChatInvoker.from_config(config)

        assert invoker.model_name == "llama3"
        assert invoker.api_base == "http://box:1"
        assert invoker.timeout == 5
        assert invoker.context_window == 2048

    def test_explicit_model_wins(self):
        invoker = OllamaChatInvoker.from_config({"ollama": {"model": "llama3"}}, model_name="qwen")
        assert invoker.model_name == "qwen"
