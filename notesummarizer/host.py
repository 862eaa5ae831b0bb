"""The narrow interface the pipeline needs from a reference manager.

The pipeline never touches the host's object model directly; it only calls the
methods below.  ``library.JsonLibrary`` is the bundled implementation; tests use
an in-memory fake.  Text extraction and note persistence are coroutines because
they hit host storage.
"""

from typing import Protocol

from notesummarizer.models import Attachment, NoteParent, Record, Selection


class Host(Protocol):
    """Host capabilities consumed by the resolver and the orchestrator."""

    def classify(self, item_id: str) -> Selection | None:
        """Return the selection variant for ``item_id``, or None if unknown."""
        ...

    def attachment_ids(self, record: Record) -> list[str]:
        """Return the record's attachment ids in their existing order."""
        ...

    def get_attachment(self, item_id: str) -> Attachment | None: ...

    def get_record(self, item_id: str) -> Record | None: ...

    async def extract_text(self, attachment: Attachment) -> str | None:
        """Return the attachment's extracted text.  May raise or return None."""
        ...

    def get_field(self, item: NoteParent, field: str) -> str: ...

    def note_ids(self, parent: NoteParent) -> list[str]: ...

    def note_content(self, note_id: str) -> str | None: ...

    async def create_note(self, content: str, parent: NoteParent) -> str:
        """Persist a child note of ``parent`` in its library; return the note id."""
        ...
