"""Per-selection orchestration — turns one selected item into a summary note.

Stages run in order, each gated on the previous one::

    resolve target -> check duplicate -> validate text length -> build prompt
    -> call LLM -> render HTML -> persist note -> done

The duplicate check may end the run early (``already_exists``) before any
length validation or network call.  Any exception raised by a stage aborts the
run: a single ``failed`` event carrying ``"Error: <cause>"`` is emitted and a
``PipelineError`` is raised.  The note is written only in the last stage, so a
failed run leaves nothing behind.
"""

import logging
from typing import Callable

from notesummarizer.host import Host
from notesummarizer.llm import ChatCompletionClient, create_client
from notesummarizer.models import (
    Config,
    InputError,
    NoteParent,
    PipelineError,
    PromptContext,
    Selection,
    Stage,
    StageEvent,
    SummaryResult,
)
from notesummarizer.prompts import (
    build_summary_prompt,
    render_header,
    resolve_title,
    short_title,
)
from notesummarizer.renderer import render_summary_html
from notesummarizer.resolver import resolve_target

logger = logging.getLogger(__name__)

EventHandler = Callable[[StageEvent], None]


class _Run:
    """Mutable bookkeeping for one invocation: current stage and event sink."""

    def __init__(self, on_event: EventHandler | None) -> None:
        self._on_event = on_event
        self.stage = Stage.RESOLVE_TARGET
        self.progress = 0
        self.subject: str | None = None

    def enter(self, stage: Stage, progress: int, message: str) -> None:
        self.stage = stage
        self.progress = progress
        logger.info("[%s] %s", stage.value, message)
        if self._on_event is not None:
            self._on_event(StageEvent(stage, progress, message, self.subject))

    def fail(self, exc: Exception) -> PipelineError:
        error = PipelineError(self.stage, exc)
        self.enter(Stage.FAILED, self.progress, str(error))
        return error


async def summarize_selection(
    selection: Selection | None,
    host: Host,
    config: Config,
    client: ChatCompletionClient | None = None,
    on_event: EventHandler | None = None,
) -> SummaryResult:
    """Summarize the selected item and attach the result as a note.

    Args:
        selection: The classified selection (None when nothing is selected).
        host:      Host collaborator used for lookup, extraction and persistence.
        config:    Runtime configuration.
        client:    LLM client; created from ``config`` when omitted.
        on_event:  Optional subscriber receiving every ``StageEvent``.

    Returns:
        ``SummaryResult`` with status ``"created"`` or ``"already_exists"``.

    Raises:
        PipelineError: wraps the error that aborted the run; ``stage`` names
            the stage that failed.
    """
    run = _Run(on_event)
    try:
        return await _run_pipeline(run, selection, host, config, client)
    except Exception as exc:
        raise run.fail(exc) from exc


async def _run_pipeline(
    run: _Run,
    selection: Selection | None,
    host: Host,
    config: Config,
    client: ChatCompletionClient | None,
) -> SummaryResult:
    run.enter(Stage.RESOLVE_TARGET, 0, "Extracting PDF text...")
    target = await resolve_target(selection, host)
    title = resolve_title(
        host.get_field(target.note_parent, "title"),
        host.get_field(target.attachment, "title"),
    )
    run.subject = short_title(title)

    header = render_header(config.header_template, config.model)
    if not config.skip_existing_check:
        run.enter(Stage.CHECK_DUPLICATE, 10, "Checking for an existing summary...")
        if has_existing_summary(host, target.note_parent, header):
            run.enter(Stage.ALREADY_EXISTS, 100, "Summary already exists.")
            return SummaryResult(
                status="already_exists", note_parent=target.note_parent, title=title
            )

    run.enter(Stage.VALIDATE_TEXT_LENGTH, 20, "Extracting PDF text...")
    validate_text_length(target.fulltext, config.min_text_length)

    run.enter(Stage.BUILD_PROMPT, 40, "Building prompt...")
    prompt = build_summary_prompt(
        PromptContext(title=title, text=target.fulltext),
        config.user_prompt_instructions,
    )
    logger.debug(
        "Prompt size: %s chars (~%s tokens)",
        f"{len(prompt):,}",
        f"{len(prompt) // 4:,}",
    )

    run.enter(Stage.CALL_LLM, 50, "Generating summary...")
    if client is None:
        client = create_client(config)
    summary_text = await client.complete(prompt)

    run.enter(Stage.RENDER_HTML, 80, "Creating note...")
    content = header + "\n" + render_summary_html(summary_text)

    run.enter(Stage.PERSIST_NOTE, 90, "Saving note...")
    note_id = await host.create_note(content, target.note_parent)

    run.enter(Stage.DONE, 100, "Summary generated successfully!")
    return SummaryResult(
        status="created",
        note_parent=target.note_parent,
        title=title,
        note_id=note_id,
        content=content,
    )


def has_existing_summary(host: Host, parent: NoteParent, header: str) -> bool:
    """Return True if any note on ``parent`` starts with ``header`` exactly."""
    for note_id in host.note_ids(parent):
        content = host.note_content(note_id)
        if isinstance(content, str) and content.startswith(header):
            logger.info("Existing summary found: note %s", note_id)
            return True
    return False


def validate_text_length(fulltext: str, min_length: int) -> None:
    """Reject empty or too-short extracted text.

    Raises:
        InputError: reporting the actual character count.
    """
    if not fulltext or not fulltext.strip():
        raise InputError(
            "No PDF text found. The PDF may not have been indexed yet. "
            "Please wait a few minutes and try again."
        )
    length = len(fulltext.strip())
    if length < min_length:
        raise InputError(
            f"Extracted text is too short ({length} characters). "
            "The PDF may not have been properly indexed yet. "
            "Please wait a few minutes and try again."
        )
