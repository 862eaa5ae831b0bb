"""Dataclasses, pydantic models, Config, and exceptions for the note summarizer.

Host-facing objects (records, attachments, resolved targets) are frozen
dataclasses: they are created once per invocation and never mutated.  Anything
that crosses a wire or a file boundary (the chat-completion request and
response, batch reports) is a pydantic model so that validation failures surface
as typed errors instead of ``KeyError``/``TypeError`` deep in the pipeline.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Host objects
# ---------------------------------------------------------------------------

#: MIME types whose extracted text can be summarized.
SUPPORTED_CONTENT_TYPES = frozenset({"application/pdf", "text/html"})


@dataclass(frozen=True)
class Record:
    """A top-level bibliographic record that may own attachments and notes."""

    id: str
    library_id: int


@dataclass(frozen=True)
class Attachment:
    """A file linked to a record.  Its text is extracted lazily by the host."""

    id: str
    library_id: int
    content_type: str
    parent_id: str | None = None

    @property
    def is_supported(self) -> bool:
        return self.content_type in SUPPORTED_CONTENT_TYPES


@dataclass(frozen=True)
class OtherItem:
    """Any selected item that is neither a top-level record nor an attachment."""

    id: str
    kind: str


Selection = Union[Record, Attachment, OtherItem]
"""Tagged selection variant, classified once by the host at entry."""

NoteParent = Union[Record, Attachment]


@dataclass(frozen=True)
class ResolvedTarget:
    """The attachment whose text is summarized and the item that owns the note.

    ``fulltext`` is always stripped and non-empty.
    """

    attachment: Attachment
    note_parent: NoteParent
    fulltext: str


@dataclass(frozen=True)
class PromptContext:
    """Values substituted into the summary prompt skeleton."""

    title: str
    text: str


# ---------------------------------------------------------------------------
# Pipeline stages and events
# ---------------------------------------------------------------------------


class Stage(str, Enum):
    """States of the summarization pipeline, in execution order."""

    RESOLVE_TARGET = "resolve_target"
    CHECK_DUPLICATE = "check_duplicate"
    VALIDATE_TEXT_LENGTH = "validate_text_length"
    BUILD_PROMPT = "build_prompt"
    CALL_LLM = "call_llm"
    RENDER_HTML = "render_html"
    PERSIST_NOTE = "persist_note"
    DONE = "done"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.DONE, Stage.ALREADY_EXISTS, Stage.FAILED)


@dataclass(frozen=True)
class StageEvent:
    """A stage transition emitted by the orchestrator for presentation adapters.

    Attributes:
        stage:    The stage being entered.
        progress: Completion estimate in percent (0-100).
        message:  Human-readable status text.
        subject:  Short title of the item being summarized, once known.
    """

    stage: Stage
    progress: int
    message: str
    subject: str | None = None


@dataclass(frozen=True)
class SummaryResult:
    """Successful outcome of one pipeline invocation.

    ``status`` is ``"created"`` when a note was written and ``"already_exists"``
    when the duplicate check short-circuited the run (``note_id`` and
    ``content`` are then ``None``).
    """

    status: Literal["created", "already_exists"]
    note_parent: NoteParent
    title: str
    note_id: str | None = None
    content: str | None = None


# ---------------------------------------------------------------------------
# Chat-completion wire format
# ---------------------------------------------------------------------------

#: Sampling temperature sent when the configuration does not override it.
DEFAULT_TEMPERATURE = 0.3


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatCompletionRequest(BaseModel):
    """Request body for ``POST {base_url}/chat/completions``.

    ``max_tokens`` and ``top_p`` are omitted from the serialized body when
    ``None`` (see ``ChatCompletionClient.build_request``).
    """

    model: str
    messages: list[ChatMessage]
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None
    top_p: float | None = None


class CompletionMessage(BaseModel):
    content: str | None = None


class CompletionChoice(BaseModel):
    message: CompletionMessage | None = None


class ChatCompletionResponse(BaseModel):
    """The subset of a chat-completion response the client relies on."""

    choices: list[CompletionChoice] | None = None


# ---------------------------------------------------------------------------
# Batch reporting
# ---------------------------------------------------------------------------


class FailedItem(BaseModel):
    """Records a single item that could not be summarized during a batch run."""

    key: str
    error: str


class BatchReport(BaseModel):
    """Aggregate result of a batch run over several library items."""

    created: int
    skipped: int
    failed: int
    failed_items: list[FailedItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Config (frozen dataclass, built once at process start)
# ---------------------------------------------------------------------------

DEFAULT_HEADER_TEMPLATE = "<h2>AI Generated Summary ({{modelName}})</h2>"

#: Extracted text shorter than this is most likely an unfinished index.
MIN_TEXT_LENGTH = 100


@dataclass(frozen=True)
class Config:
    """Runtime configuration for the summarizer pipeline.

    Attributes:
        base_url:        OpenAI-compatible API base URL.  Trailing slashes are
                         stripped once, on construction.
        model:           Model identifier sent with every request and
                         substituted into the note header.
        api_key:         Static bearer token for the LLM backend.
        header_template: Note header; the literal ``{{modelName}}`` is replaced
                         with ``model``.  The rendered header is also the
                         duplicate-detection prefix.
        user_prompt_instructions: Free-form instructions appended verbatim to
                         the prompt skeleton.
        temperature:     Sampling temperature.  ``None`` sends the default 0.3.
        max_tokens:      Output token cap.  ``None`` omits it from the request.
        top_p:           Nucleus sampling.  ``None`` omits it from the request.
        skip_existing_check: If True, always generate a new note even when one
                         with the same header already exists.
        timeout_s:       Seconds before the LLM request is abandoned.
        min_text_length: Shortest extracted text accepted for summarization.
    """

    base_url: str
    model: str
    api_key: str
    header_template: str = DEFAULT_HEADER_TEMPLATE
    user_prompt_instructions: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    skip_existing_check: bool = False
    timeout_s: int = 120
    min_text_length: int = MIN_TEXT_LENGTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SummaryError(Exception):
    """Base class for every error raised by the note summarizer."""


class ConfigError(SummaryError):
    """Raised when configuration or the library file cannot be loaded."""


class InputError(SummaryError):
    """The selection cannot be summarized (nothing selected, no text, too short)."""


class LLMError(SummaryError):
    """Base class for failures of the chat-completion call."""


class TransportError(LLMError):
    """The HTTP request could not be completed (DNS, connection, timeout)."""


class HttpStatusError(LLMError):
    """The backend answered with a non-2xx status.

    Attributes:
        status_code: HTTP status code.
        reason:      HTTP reason phrase.
        detail:      ``detail`` or ``error.message`` from a JSON error body.
    """

    def __init__(
        self, message: str, status_code: int, reason: str, detail: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.detail = detail


class ResponseParseError(LLMError):
    """The response body is not valid JSON."""


class ProtocolError(LLMError):
    """The JSON response has no usable ``choices[0].message.content``."""


class RenderError(SummaryError):
    """Markdown rendering failed; callers fall back to preformatted text."""


class PipelineError(SummaryError):
    """Wraps any error that aborts a pipeline invocation.

    ``str(exc)`` is the user-facing status text: ``"Error: "`` followed by the
    cause's message.

    Attributes:
        stage: The stage that was running when the error occurred.
        cause: The original exception.
    """

    def __init__(self, stage: Stage, cause: Exception) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Error: {cause}")
