"""Command-line interface for the note summarizer.

Entry point: ``summarize-notes`` (configured in ``pyproject.toml``).

Usage:
    summarize-notes --library FILE --item KEY [--item KEY ...] [options]
    summarize-notes --library FILE --all [options]

Key options:
    --model, --base-url, --header-template, --instructions-file, --language,
    --temperature, --max-tokens, --top-p, --skip-existing-check, --timeout,
    --verbose/--no-verbose, --log-file.

``--item`` and ``--all`` are mutually exclusive; exactly one must be supplied.
A single ``--item`` shows stage-by-stage progress; several items (or ``--all``)
run as a batch.  Settings not given as flags come from the environment
(``LLM_BASE_URL``, ``LLM_MODEL``, ``LLM_API_KEY``, ``SUMMARY_HEADER_TEMPLATE``),
which may be populated from a ``.env`` file.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from notesummarizer.batch import run_batch
from notesummarizer.library import JsonLibrary
from notesummarizer.log import setup_logging
from notesummarizer.models import (
    DEFAULT_HEADER_TEMPLATE,
    Config,
    ConfigError,
    PipelineError,
)
from notesummarizer.pipeline import summarize_selection
from notesummarizer.progress import TqdmProgress
from notesummarizer.prompts import INSTRUCTION_PRESETS

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
_DEFAULT_MODEL = "openai/gpt-oss-120b:free"


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return parsed


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI arguments, build the configuration, and run the summarizer."""
    load_dotenv()

    parser = _build_parser()
    args = parser.parse_args()

    if args.log_file:
        log_file = Path(args.log_file)
    else:
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = Path("logs") / f"run_{ts}.log"
    setup_logging(verbose=args.verbose, log_file=log_file)

    try:
        config = build_config(args)
        library = JsonLibrary.load(Path(args.library))
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    keys = library.record_ids() if args.all else args.item
    if len(keys) == 1 and not args.all:
        _run_single(keys[0], library, config)
    else:
        _run_batch(keys, library, config)


def build_config(args: argparse.Namespace) -> Config:
    """Build the immutable ``Config`` from parsed arguments.

    Raises:
        ConfigError: if the instructions file cannot be read.
    """
    if args.instructions_file:
        path = Path(args.instructions_file)
        try:
            instructions = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read instructions file {path}: {exc}") from exc
    else:
        instructions = INSTRUCTION_PRESETS[args.language]

    return Config(
        base_url=args.base_url,
        model=args.model,
        api_key=os.environ.get("LLM_API_KEY") or "lm-studio",
        header_template=args.header_template,
        user_prompt_instructions=instructions,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        top_p=args.top_p,
        skip_existing_check=args.skip_existing_check,
        timeout_s=args.timeout,
    )


# ---------------------------------------------------------------------------
# Single-item mode
# ---------------------------------------------------------------------------


def _run_single(key: str, library: JsonLibrary, config: Config) -> None:
    """Summarize one item with a stage progress bar."""
    progress = TqdmProgress()
    try:
        result = asyncio.run(
            summarize_selection(library.classify(key), library, config, on_event=progress)
        )
    except PipelineError as exc:
        logger.error("%s: %s", key, exc)
        sys.exit(1)
    finally:
        progress.close()

    if result.status == "already_exists":
        logger.info("Summary already exists for %s (use --skip-existing-check to regenerate)", key)
    else:
        logger.info("Written: note %s on %s", result.note_id, result.note_parent.id)


# ---------------------------------------------------------------------------
# Batch mode
# ---------------------------------------------------------------------------


def _run_batch(keys: list[str], library: JsonLibrary, config: Config) -> None:
    report = asyncio.run(run_batch(keys, library, config))

    logger.info(
        "Done — created: %d, skipped: %d, failed: %d",
        report.created,
        report.skipped,
        report.failed,
    )

    if report.failed_items:
        logger.error("Failed items:")
        for item in report.failed_items:
            logger.error("  %s: %s", item.key, item.error)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="summarize-notes",
        description=(
            "Summarise library items with an OpenAI-compatible LLM and attach "
            "the summary as an HTML note."
        ),
    )

    parser.add_argument(
        "--library",
        metavar="FILE",
        required=True,
        help="JSON library file holding records, attachments and notes.",
    )

    target_group = parser.add_mutually_exclusive_group(required=True)
    target_group.add_argument(
        "--item",
        metavar="KEY",
        action="append",
        help="Item key to summarise (record or attachment). Repeat for several.",
    )
    target_group.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="Summarise every top-level record in the library.",
    )

    _default_model = os.environ.get("LLM_MODEL", _DEFAULT_MODEL)
    parser.add_argument(
        "--model",
        metavar="MODEL",
        default=_default_model,
        help=f"LLM model identifier (default: LLM_MODEL env var, currently {_default_model!r}).",
    )
    _default_base_url = os.environ.get("LLM_BASE_URL", _DEFAULT_BASE_URL)
    parser.add_argument(
        "--base-url",
        metavar="URL",
        default=_default_base_url,
        help=f"OpenAI-compatible API base URL (default: LLM_BASE_URL env var or {_DEFAULT_BASE_URL}).",
    )
    parser.add_argument(
        "--header-template",
        metavar="HTML",
        default=os.environ.get("SUMMARY_HEADER_TEMPLATE", DEFAULT_HEADER_TEMPLATE),
        help=(
            "Note header; {{modelName}} is replaced with the model. Notes starting "
            "with the rendered header count as existing summaries."
        ),
    )

    prompt_group = parser.add_mutually_exclusive_group()
    prompt_group.add_argument(
        "--instructions-file",
        metavar="FILE",
        default=None,
        help="Read the summary instructions appended to the prompt from FILE.",
    )
    prompt_group.add_argument(
        "--language",
        choices=sorted(INSTRUCTION_PRESETS),
        default="en",
        help="Built-in summary instructions to use (default: en).",
    )

    parser.add_argument(
        "--temperature",
        metavar="T",
        type=float,
        default=None,
        help="Sampling temperature (default: 0.3).",
    )
    parser.add_argument(
        "--max-tokens",
        metavar="N",
        type=_positive_int,
        default=None,
        help="Maximum tokens the LLM may generate. Default: not sent.",
    )
    parser.add_argument(
        "--top-p",
        metavar="P",
        type=float,
        default=None,
        help="Nucleus sampling parameter. Default: not sent.",
    )
    parser.add_argument(
        "--skip-existing-check",
        action="store_true",
        default=False,
        help="Always generate a new note, even if a summary with the same header exists.",
    )
    parser.add_argument(
        "--timeout",
        metavar="S",
        type=_positive_int,
        default=120,
        help="LLM call timeout in seconds (default: 120).",
    )
    parser.add_argument(
        "--verbose",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Enable DEBUG-level logging (default: off).",
    )
    parser.add_argument(
        "--log-file",
        metavar="FILE",
        default=None,
        help="Write log output to FILE (default: logs/run_TIMESTAMP.log).",
    )

    return parser


if __name__ == "__main__":
    main()
