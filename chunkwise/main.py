"""
Chunkwise - Command-line entry point.

Two commands:
    summarize   Run one summarization job over a JSON document with a local
                Ollama model and write the annotated document.
    chunk       Re-chunk a JSON document by token count and print the
                titled chunk payloads.
"""

import argparse
import json
import sys
from pathlib import Path

from chunkwise.ai import OllamaChatInvoker
from chunkwise.chunking import CHUNKING_STRATEGIES, rechunk
from chunkwise.config import DEFAULT_CHUNK_GROUP_NAME, load_summarizer_config
from chunkwise.document import Document
from chunkwise.errors import ChunkwiseError
from chunkwise.jobs import JobStatus, JsonSum, MergeMode, SummarizeMethod
from chunkwise.jobs.manager import SummarizationJobManager
from chunkwise.logging_config import Timer, configure_logging, error, info, warning
from chunkwise.parallel import SequentialStrategy

EXIT_OK = 0
EXIT_JOB_FAILED = 1
EXIT_BAD_INPUT = 2

# Methods whose per-chunk prompts carry a word limit from --budget
BUDGETED_METHODS = {SummarizeMethod.MAP.value, SummarizeMethod.MAP_MERGE.value, SummarizeMethod.DELTA_FOLD.value}


def _read_json(path: str):
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def _write_json(data, path: str | None):
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if path:
        Path(path).write_text(text + "\n", encoding='utf-8')
        info(f"[CLI] Wrote {path}")
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chunkwise",
        description="Chunkwise - Summarize and re-chunk long JSON documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summarize every page, then merge the page summaries
  chunkwise summarize report.json --method map-merge --chunk-group pages -o out.json

  # Running summary with a JSON schema and the repair loop
  chunkwise summarize report.json --method fold --chunk-group pages \\
      --json-schema schema.json --repair-attempts 3

  # Merge pages into ~1000-token chunks
  chunkwise chunk report.json --strategy merge_and_split --chunk-size 1000

  # Debug mode (verbose logging)
  DEBUG=true chunkwise summarize report.json --method full
        """
    )
    parser.add_argument('--config', help='Path to summarizer.yaml (default: config/summarizer.yaml)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='command', required=True)

    summarize = subparsers.add_parser('summarize', help='Summarize a JSON document')
    summarize.add_argument('input', help='Document JSON file')
    summarize.add_argument('--method', required=True, choices=[m.value for m in SummarizeMethod])
    summarize.add_argument('--chunk-group', help='Chunk group to walk (required unless --method full)')
    summarize.add_argument('--context-before', type=int, default=0,
                           help='Preceding chunks shown as context (default: 0)')
    summarize.add_argument('--context-after', type=int, default=0,
                           help='Succeeding chunks shown as context (default: 0)')
    summarize.add_argument('--model', help='Ollama model tag (default from config)')
    summarize.add_argument('--guidance', default="", help='Guidance injected into the system prompt')
    summarize.add_argument('--temperature', type=float, help='Sampling temperature')
    summarize.add_argument('--json-schema', help='JSON Schema file for structured output')
    summarize.add_argument('--json-sum', choices=[j.value for j in JsonSum], default=JsonSum.APPEND.value)
    summarize.add_argument('--initial-summary', help='Seed summary for fold / delta-fold (JSON or text)')
    summarize.add_argument('--merge-mode', choices=[m.value for m in MergeMode],
                           default=MergeMode.LEFT_TO_RIGHT.value)
    summarize.add_argument('--merge-guidance', default="", help='Instructions for merging summaries')
    summarize.add_argument('--budget', type=int, help='Advisory token budget for map, map-merge and delta-fold')
    summarize.add_argument('--tokens-per-word', type=float, help='Token-to-word ratio for the budget')
    summarize.add_argument('--encoding', help='tiktoken encoding for budget accounting')
    summarize.add_argument('--repair', action='store_true',
                           help='Validate structured output and retry (attempts from config)')
    summarize.add_argument('--repair-attempts', type=int,
                           help='Validate structured output and retry up to N attempts')
    summarize.add_argument('--annotation-field', help='Annotation key for summaries')
    summarize.add_argument('-o', '--output', help='Write the annotated document here (default: stdout)')

    chunk = subparsers.add_parser('chunk', help='Re-chunk a JSON document by token count')
    chunk.add_argument('input', help='Document JSON file')
    chunk.add_argument('--strategy', required=True, choices=list(CHUNKING_STRATEGIES))
    chunk.add_argument('--chunk-size', type=int, required=True, help='Maximum tokens per chunk')
    chunk.add_argument('--chunk-group', default=DEFAULT_CHUNK_GROUP_NAME,
                       help=f'Source chunk group (default: {DEFAULT_CHUNK_GROUP_NAME})')
    chunk.add_argument('--overlap', type=int, default=0, help='Overlap tokens for merge_and_split')
    chunk.add_argument('--encoding', help='tiktoken encoding (default from config)')
    chunk.add_argument('-o', '--output', help='Write the chunk payloads here (default: stdout)')
    chunk.add_argument('--document-output', help='Also write the re-chunked document here')

    return parser


def _parse_seed(value: str | None):
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def build_request(args, config: dict) -> dict:
    """Wire request for the job manager from parsed summarize arguments."""
    defaults = config['summarization']
    if args.budget is not None and args.method not in BUDGETED_METHODS:
        warning(f"[CLI] --budget only applies to map, map-merge and delta-fold; ignored for {args.method}")
    return {
        'document': _read_json(args.input),
        'method': args.method,
        'chunk_group': args.chunk_group,
        'context_chunks_before': args.context_before,
        'context_chunks_after': args.context_after,
        'model': args.model,
        'guidance': args.guidance,
        'temperature': args.temperature if args.temperature is not None else defaults['temperature'],
        'json_schema': _read_json(args.json_schema) if args.json_schema else None,
        'json_sum': args.json_sum,
        'initial_summary': _parse_seed(args.initial_summary),
        'annotation_field': args.annotation_field or defaults['annotation_field'],
        'annotation_field_delta': defaults['annotation_field_delta'],
        'merge_summaries_guidance': args.merge_guidance,
        'merge_mode': args.merge_mode,
        'budget': args.budget,
        'tokens_per_word': args.tokens_per_word or defaults['tokens_per_word'],
        'encoding': args.encoding or config['tokenization']['encoding'],
        'repair_attempts': (args.repair_attempts if args.repair_attempts is not None
                            else defaults['repair_attempts'] if args.repair else None),
    }


def run_summarize(args, config: dict) -> int:
    invoker = OllamaChatInvoker.from_config(config, model_name=args.model)
    manager = SummarizationJobManager(invoker, strategy=SequentialStrategy())

    request = build_request(args, config)
    with Timer(f"Summarization job ({args.method})"):
        job = manager.submit(request)
    status = manager.get_status(job.id)
    if job.status is not JobStatus.COMPLETE:
        error(f"[CLI] Job {job.id} ended with status '{status['status']}'")
        print(json.dumps(status, indent=2, ensure_ascii=False), file=sys.stderr)
        return EXIT_JOB_FAILED

    _write_json(manager.get_result(job.id), args.output)
    info(f"[CLI] Job {job.id} complete: {status['chunks_completed']}/{status['chunks_total']} steps")
    return EXIT_OK


def run_chunk(args, config: dict) -> int:
    document = Document.from_dict(_read_json(args.input))
    with Timer(f"Re-chunking ({args.strategy})"):
        result = rechunk(
            document,
            args.strategy,
            args.chunk_size,
            chunk_group=args.chunk_group,
            encoding=args.encoding or config['tokenization']['encoding'],
            overlap_tokens=args.overlap,
        )
    _write_json({'group': result.group_name, 'chunks': result.chunks}, args.output)
    if args.document_output:
        _write_json(result.document.to_dict(), args.document_output)
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the command, and return a process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        configure_logging(debug=True)
    config = load_summarizer_config(Path(args.config) if args.config else None)

    commands = {'summarize': run_summarize, 'chunk': run_chunk}
    try:
        return commands[args.command](args, config)
    except (OSError, json.JSONDecodeError) as e:
        error(f"[CLI] Could not read input: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except ChunkwiseError as e:
        error(f"[CLI] {e.kind}: {e}")
        print(f"Error ({e.kind}): {e}", file=sys.stderr)
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
