"""
Parsing of model replies into annotation values.

Without a schema a reply is stored as text. With a schema the reply is
stripped of a surrounding markdown code fence and parsed as JSON; a reply that
does not parse becomes a sentinel dict instead of an exception, so one bad
chunk does not throw away a long run:

    {"__json_parse_error": "<parser message>", "raw_text": "<reply>"}
"""

import json
import re
from typing import Any

PARSE_ERROR_KEY = "__json_parse_error"
RAW_TEXT_KEY = "raw_text"

_OPENING_FENCE_RE = re.compile(r"^```[A-Za-z]*\s*")
_CLOSING_FENCE_RE = re.compile(r"```$")


def strip_code_fences(text: str) -> str:
    """Remove a leading ``` / ```json fence and a trailing ``` fence, if present."""
    cleaned = (text or "").strip()
    cleaned = _OPENING_FENCE_RE.sub("", cleaned)
    return _CLOSING_FENCE_RE.sub("", cleaned).strip()


def parse_json_reply(raw: str) -> tuple[Any, str | None]:
    """
    Parse a reply as JSON.

    Returns:
        (value, None) on success, (None, message) on failure.
    """
    try:
        return json.loads(strip_code_fences(raw)), None
    except (json.JSONDecodeError, TypeError) as e:
        return None, str(e)


def parse_error_sentinel(message: str, raw: str) -> dict:
    return {PARSE_ERROR_KEY: message, RAW_TEXT_KEY: raw}


def is_parse_error(value: Any) -> bool:
    return isinstance(value, dict) and PARSE_ERROR_KEY in value


def parse_model_reply(raw: str, structured: bool) -> Any:
    """
    Turn a raw reply into the value stored in an annotation.

    Args:
        raw: Assistant text.
        structured: True when a JSON schema was requested.
    """
    if not structured:
        return raw
    value, message = parse_json_reply(raw)
    if message is not None:
        return parse_error_sentinel(message, raw)
    return value
