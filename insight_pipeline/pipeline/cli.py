"""CLI for the extraction pipeline: extract (bulk), generate (single call), check-env."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import BaseModel

from insight_pipeline.llm import Invoker, LLMMessage, LLMSettings
from insight_pipeline.llm.errors import LLMError, LLMMissingCredentials
from insight_pipeline.llm.settings import normalize_model_id
from insight_pipeline.pipeline.errors import PipelineError
from insight_pipeline.pipeline.records import (
    build_tasks,
    dated_file_name,
    find_latest_dated_file,
    load_records,
    record_kind_for_schema,
)
from insight_pipeline.pipeline.run import run_extraction
from insight_pipeline.pipeline.settings import PipelineSettings
from insight_pipeline.pipeline.sink import JsonlResultSink
from insight_pipeline.schemas import get_schema, schema_names

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    if not verbose:
        # LiteLLM logs every request at INFO.
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def _resolve_schema(name: str | None) -> type[BaseModel] | None:
    return get_schema(name) if name else None


def cmd_extract(args: argparse.Namespace) -> int:
    try:
        settings = PipelineSettings()
        llm_settings = LLMSettings()
        concurrency = args.concurrency if args.concurrency is not None else settings.concurrency
        schema_name = args.schema or settings.schema_name
        schema = _resolve_schema(schema_name)
        kind = record_kind_for_schema(schema_name)
        input_path = (
            Path(args.input)
            if args.input
            else find_latest_dated_file(settings.data_dir, settings.input_prefix or kind.input_prefix)
        )
        records = load_records(input_path, limit=args.limit, model=kind.model)
        prompt_path = args.system_prompt or settings.system_prompt_path or kind.system_prompt_path
        system_prompt = Path(prompt_path).read_text(encoding="utf-8")
    except (KeyError, OSError, ValueError, PipelineError) as e:
        # ValueError covers pydantic ValidationError from bad env values.
        print(f"Extraction failed: {e}", file=sys.stderr)
        return 1

    tasks = build_tasks(records, system_prompt, schema, kind=kind)
    sink = JsonlResultSink(
        Path(settings.output_dir) / dated_file_name(settings.output_prefix or kind.output_prefix),
        settings.errors_path,
        id_field=settings.id_field or kind.id_field,
    )
    invoker = Invoker(llm_settings)
    try:
        summary = asyncio.run(
            run_extraction(
                tasks,
                invoker=invoker,
                sink=sink,
                model=args.model or settings.model,
                concurrency_limit=concurrency,
            )
        )
    except (LLMMissingCredentials, PipelineError, ValueError) as e:
        print(f"Extraction failed: {e}", file=sys.stderr)
        return 1

    print("Extraction complete.")
    print(f"- Input file: {input_path}")
    print(f"- Rows processed: {summary.total}")
    print(f"- Success: {summary.succeeded}")
    print(f"- Failed: {summary.failed}")
    print(f"- Output: {summary.success_path}")
    if summary.failed > 0:
        print(f"- Errors: {summary.failure_path}")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    try:
        invoker = Invoker(LLMSettings())
        schema = _resolve_schema(args.schema)
        system_prompt = Path(args.system_prompt).read_text(encoding="utf-8")
        user_input = Path(args.input).read_text(encoding="utf-8")
    except (KeyError, OSError, ValueError) as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1

    messages = [
        LLMMessage(role="system", content=system_prompt),
        LLMMessage(role="user", content=user_input),
    ]

    async def run() -> object:
        try:
            return await invoker.call(args.model, messages, schema)
        finally:
            await invoker.usage_recorder.drain()

    try:
        payload = asyncio.run(run())
    except LLMError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1

    text = payload.model_dump_json(indent=2) if isinstance(payload, BaseModel) else str(payload)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text + "\n", encoding="utf-8")
        print(f"Output: {out}")
    else:
        print(text)
    return 0


def _ensure_writable_directory(target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    probe = target / ".write-test.tmp"
    probe.write_text("ok", encoding="utf-8")
    probe.unlink()


def cmd_check_env(args: argparse.Namespace) -> int:
    try:
        settings = PipelineSettings()
        llm_settings = LLMSettings()
    except ValueError as e:
        print(json.dumps({"ok": False, "problems": [f"invalid settings: {e}"]}, indent=2))
        return 1
    problems: list[str] = []
    if not llm_settings.has_credentials:
        problems.append("OPENROUTER_API_KEY is not set")
    dirs = {
        Path(settings.output_dir),
        Path(settings.errors_path).parent,
        Path(llm_settings.usage_log_path).parent,
    }
    for directory in sorted(dirs):
        try:
            _ensure_writable_directory(directory)
        except OSError as e:
            problems.append(f"{directory} is not writable: {e}")
    try:
        model = normalize_model_id(settings.model or llm_settings.default_model)
    except ValueError as e:
        problems.append(str(e))
        model = ""
    report = {
        "ok": not problems,
        "model": model,
        "concurrency": settings.concurrency,
        "problems": problems,
    }
    print(json.dumps(report, indent=2))
    return 0 if not problems else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Structured extraction over free-text records")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_extract = sub.add_parser("extract", help="Extract one structured record per input line")
    p_extract.add_argument("input", nargs="?", default=None, help="Cleaned JSONL (default: latest in data dir)")
    p_extract.add_argument("--limit", type=int, default=None, help="Process only the first N records")
    p_extract.add_argument("--concurrency", type=int, default=None, help="Max in-flight requests (default: 5)")
    p_extract.add_argument("--model", default=None, help="Model id, e.g. openrouter/anthropic/claude-3-haiku")
    p_extract.add_argument("--schema", choices=schema_names(), default=None, help="Output schema")
    p_extract.add_argument("--system-prompt", default=None, help="System prompt file")
    p_extract.set_defaults(func=cmd_extract)

    p_generate = sub.add_parser("generate", help="Single completion with optional schema validation")
    p_generate.add_argument("--system-prompt", required=True, help="System prompt file")
    p_generate.add_argument("--input", required=True, help="User message file")
    p_generate.add_argument("--schema", choices=schema_names(), default=None, help="Output schema")
    p_generate.add_argument("--model", default=None, help="Model id")
    p_generate.add_argument("--output", "-o", default=None, help="Write result here instead of stdout")
    p_generate.set_defaults(func=cmd_generate)

    p_check = sub.add_parser("check-env", help="Verify credentials and writable output directories")
    p_check.set_defaults(func=cmd_check_env)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
