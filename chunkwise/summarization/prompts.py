"""
Prompt templates for the summarization strategies.

Each strategy has one system prompt template with a ``{guidance}`` slot. When
structured output is requested, build_system_prompt appends the schema
instruction. User messages are assembled by the helpers at the bottom of
this module so every strategy presents chunks the same way.
"""

import json
from typing import Any

SUMMARY_ASSISTANT = "You are a document summarization assistant."

FULL_PROMPT = SUMMARY_ASSISTANT + """

The user will provide a full document, and you will summarize its contents.

When summarizing, follow the provided guidance below.

<guidance>
{guidance}
</guidance>
"""

MAP_PROMPT = SUMMARY_ASSISTANT + """

The document has been broken down into chunks.

You will produce a summary for exactly one chunk.

(You may also be given some preceding chunks for context, and possibly succeeding chunks.)

When summarizing, follow the provided guidance.

<guidance>
{guidance}
</guidance>
"""

FOLD_PROMPT = SUMMARY_ASSISTANT + """

The document has been broken down into chunks.

You will be provided:
 1. a chunk of the document
 2. an accumulated summary so far.

You must produce an updated accumulated summary in the same format, integrating
what is new from this chunk, but not removing any important information from
the accumulated summary.

When summarizing, follow the guidance.

<guidance>
{guidance}
</guidance>
"""

DELTA_FOLD_PROMPT = SUMMARY_ASSISTANT + """

The document has been broken down into chunks.

You will be provided:
 1. a chunk of the document
 2. an existing "accumulating" summary.

You must produce a "delta" summary (only new information from this chunk that
is not already in the accumulated summary). This "delta" is appended to the
array that forms the final summary.

Follow the guidance carefully, and return only the new "delta".

<guidance>
{guidance}
</guidance>
"""

MERGE_PROMPT = SUMMARY_ASSISTANT + """

You are given two partial summaries of the same document. Your goal is to merge
them into a single, combined summary.

You will also be given extra guidance from the user on how to merge them.
Carefully follow that guidance.

Provide only the merged summary.
"""

SCHEMA_INSTRUCTION = """

The user also requires that your entire response MUST be exactly one JSON value
conforming to the following schema:

{schema}

Do not include extraneous commentary, only valid JSON according to that schema.
If necessary, fill all required fields.
"""

REPAIR_DIRECTIVE = """Your previous response was not valid.

Problems found:
{problems}

Respond again with exactly one JSON value that conforms to the required schema.
Do not include any commentary."""

WORD_LIMIT_NOTE = "## Length limit:\nKeep this summary to at most {words} words."

SYSTEM_PROMPTS = {
    'full': FULL_PROMPT,
    'map': MAP_PROMPT,
    'fold': FOLD_PROMPT,
    'delta-fold': DELTA_FOLD_PROMPT,
    'merge': MERGE_PROMPT,
}


def dump_json(value: Any) -> str:
    """Pretty JSON for prompts (non-ASCII kept readable)."""
    return json.dumps(value, indent=2, ensure_ascii=False)


def build_system_prompt(mode: str, guidance: str = "", json_schema: dict | None = None) -> str:
    """
    System prompt for one strategy step.

    Args:
        mode: Key into SYSTEM_PROMPTS.
        guidance: Caller-provided guidance text.
        json_schema: If given, demand a single JSON value matching it.
    """
    prompt = SYSTEM_PROMPTS[mode].format(guidance=guidance or "")
    if json_schema is not None:
        prompt += SCHEMA_INSTRUCTION.format(schema=dump_json(json_schema))
    return prompt


def render_chunk(chunk_id: str, text: str) -> str:
    return f'<chunk id="{chunk_id}">\n{text}\n</chunk>'


def full_document_message(doc_id: str, metadata: dict, content: str) -> str:
    return (
        f"## Document ID: {doc_id}\n"
        f"## Document metadata:\n{dump_json(metadata or {})}\n\n"
        f"## Full document contents:\n{content}"
    )


def chunk_message(
    doc_id: str,
    chunk_text: str,
    chunk_metadata: dict,
    preceding: list[str],
    succeeding: list[str],
    accumulated_heading: str | None = None,
    accumulated: Any = None,
    word_limit: int | None = None,
) -> str:
    """
    User message for map / fold / delta-fold steps.

    Args:
        doc_id: Id of the root document.
        chunk_text: The current chunk, already rendered with render_chunk.
        chunk_metadata: The current chunk's metadata.
        preceding: Rendered read-only neighbours before the chunk.
        succeeding: Rendered read-only neighbours after the chunk.
        accumulated_heading: Heading for the running summary, if any.
        accumulated: Running summary (fold) or delta array (delta-fold).
        word_limit: Advisory word limit from the budget allocator.
    """
    parts = [f"## Document ID: {doc_id}\n"]
    if accumulated_heading:
        parts.append(f"## {accumulated_heading}:\n{dump_json(accumulated)}\n\n---\n\n")
    if preceding:
        parts.append("## Preceding chunk(s):\n" + "\n\n".join(preceding) + "\n\n---\n\n")
    parts.append(f"## Current chunk metadata:\n{dump_json(chunk_metadata or {})}\n\n")
    parts.append(f"## Current chunk:\n{chunk_text}")
    if succeeding:
        parts.append("\n\n---\n\n## Succeeding chunk(s):\n" + "\n\n".join(succeeding))
    if word_limit is not None:
        parts.append("\n\n" + WORD_LIMIT_NOTE.format(words=word_limit))
    return "".join(parts)


def merge_message(summary_a: Any, summary_b: Any, merge_guidance: str = "") -> str:
    return (
        "We have two partial summaries that need merging:\n\n"
        f"--- Summary A ---\n{dump_json(summary_a)}\n\n"
        f"--- Summary B ---\n{dump_json(summary_b)}\n\n"
        "Additional user guidance on how to merge:\n"
        f"{merge_guidance or '(No extra merge guidance provided)'}\n\n"
        "Please produce a single merged summary:"
    )


def repair_message(problems: list[str]) -> str:
    listed = "\n".join(f"- {problem}" for problem in problems) or "- (unspecified)"
    return REPAIR_DIRECTIVE.format(problems=listed)
