"""Shared pytest fixtures for the notesummarizer test suite."""

import logging

import pytest

from notesummarizer.models import (
    Attachment,
    Config,
    NoteParent,
    OtherItem,
    Record,
    Selection,
)


# ---------------------------------------------------------------------------
# Logger isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_notesummarizer_logger():
    """Clear the notesummarizer logger between tests.

    Tests that call ``main()`` trigger ``setup_logging()``, which attaches
    handlers and sets ``propagate=False``.  Without this fixture the state
    leaks into subsequent tests and breaks ``caplog`` capture.
    """
    logger = logging.getLogger("notesummarizer")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.propagate = True
    yield
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.propagate = True


# ---------------------------------------------------------------------------
# In-memory host
# ---------------------------------------------------------------------------

PDF = "application/pdf"
HTML = "text/html"

PAPER_TEXT = (
    "Spiking neural networks trained end to end with surrogate gradients "
    "match conventional controllers on simulated reaching tasks while using "
    "a fraction of the spikes. "
) * 4


class FakeHost:
    """In-memory implementation of the ``Host`` protocol.

    ``texts`` maps attachment ids to extracted text; a value that is an
    exception instance is raised by ``extract_text`` instead.
    """

    def __init__(self) -> None:
        self.records: dict[str, Record] = {}
        self.attachments: dict[str, Attachment] = {}
        self.others: dict[str, OtherItem] = {}
        self.children: dict[str, list[str]] = {}
        self.titles: dict[str, str] = {}
        self.texts: dict[str, object] = {}
        self.notes: dict[str, str] = {}
        self.note_children: dict[str, list[str]] = {}
        self.created: list[tuple[str, NoteParent]] = []
        self.extract_calls: list[str] = []

    # -- building ------------------------------------------------------------

    def add_record(self, key: str, title: str = "", library_id: int = 1) -> Record:
        record = Record(id=key, library_id=library_id)
        self.records[key] = record
        self.children[key] = []
        self.titles[key] = title
        return record

    def add_attachment(
        self,
        key: str,
        content_type: str = PDF,
        text: object = None,
        parent: str | None = None,
        title: str = "",
        library_id: int = 1,
    ) -> Attachment:
        attachment = Attachment(
            id=key, library_id=library_id, content_type=content_type, parent_id=parent
        )
        self.attachments[key] = attachment
        self.titles[key] = title
        self.texts[key] = text
        if parent is not None:
            self.children[parent].append(key)
        return attachment

    def add_note(self, key: str, parent: str, content: str) -> None:
        self.notes[key] = content
        self.note_children.setdefault(parent, []).append(key)

    # -- Host protocol -------------------------------------------------------

    def classify(self, item_id: str) -> Selection | None:
        return (
            self.records.get(item_id)
            or self.attachments.get(item_id)
            or self.others.get(item_id)
        )

    def attachment_ids(self, record: Record) -> list[str]:
        return list(self.children.get(record.id, []))

    def get_attachment(self, item_id: str) -> Attachment | None:
        return self.attachments.get(item_id)

    def get_record(self, item_id: str) -> Record | None:
        return self.records.get(item_id)

    async def extract_text(self, attachment: Attachment) -> str | None:
        self.extract_calls.append(attachment.id)
        text = self.texts.get(attachment.id)
        if isinstance(text, Exception):
            raise text
        return text

    def get_field(self, item: NoteParent, field: str) -> str:
        assert field == "title"
        return self.titles.get(item.id, "")

    def note_ids(self, parent: NoteParent) -> list[str]:
        return list(self.note_children.get(parent.id, []))

    def note_content(self, note_id: str) -> str | None:
        return self.notes.get(note_id)

    async def create_note(self, content: str, parent: NoteParent) -> str:
        note_id = f"NOTE{len(self.notes) + 1}"
        self.add_note(note_id, parent.id, content)
        self.created.append((content, parent))
        return note_id


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def config() -> Config:
    return Config(
        base_url="http://llm.test/v1/",
        model="test-model",
        api_key="sk-test",
        user_prompt_instructions="Summarize the paper.",
    )


@pytest.fixture
def header() -> str:
    """The rendered default header for the ``config`` fixture."""
    return "<h2>AI Generated Summary (test-model)</h2>"
