"""JSON-file library — a self-contained host for running outside a reference manager.

A library file looks like::

    {
      "library_id": 1,
      "items": [
        {"key": "REC1", "type": "record", "title": "...", "attachments": ["ATT1"]},
        {"key": "ATT1", "type": "attachment", "parent": "REC1",
         "content_type": "application/pdf", "fulltext_path": "cache/ATT1.txt"},
        {"key": "NOTE1", "type": "note", "parent": "REC1", "note": "<h2>...</h2>"}
      ]
    }

Attachment text is already extracted: either inline (``fulltext``) or in a
text file next to the library (``fulltext_path``).  New notes are appended and
the file is rewritten atomically.
"""

import asyncio
import json
import logging
import os
import secrets
import string
import tempfile
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from notesummarizer.models import (
    Attachment,
    ConfigError,
    NoteParent,
    OtherItem,
    Record,
    Selection,
)

logger = logging.getLogger(__name__)

_KEY_ALPHABET = string.ascii_uppercase + string.digits
_KEY_LENGTH = 8

# ---------------------------------------------------------------------------
# File schema
# ---------------------------------------------------------------------------


class _Entry(BaseModel):
    key: str
    library_id: int | None = None
    title: str = ""


class RecordEntry(_Entry):
    type: Literal["record"]
    attachments: list[str] = Field(default_factory=list)


class AttachmentEntry(_Entry):
    type: Literal["attachment"]
    content_type: str
    parent: str | None = None
    fulltext: str | None = None
    fulltext_path: str | None = None


class NoteEntry(_Entry):
    type: Literal["note"]
    parent: str
    note: str


class OtherEntry(_Entry):
    type: Literal["annotation", "child_record"]
    parent: str | None = None


LibraryEntry = Annotated[
    Union[RecordEntry, AttachmentEntry, NoteEntry, OtherEntry],
    Field(discriminator="type"),
]


class LibraryFile(BaseModel):
    library_id: int = 1
    items: list[LibraryEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Host implementation
# ---------------------------------------------------------------------------


class JsonLibrary:
    """Host backed by a JSON library file.

    Use ``JsonLibrary.load(path)``; the constructor takes an already-validated
    ``LibraryFile``.
    """

    def __init__(self, data: LibraryFile, path: Path) -> None:
        self.path = path
        self._data = data
        self._items: dict[str, _Entry] = {item.key: item for item in data.items}
        # parent key -> note keys, in file order
        self._notes: dict[str, list[str]] = {}
        for item in data.items:
            if isinstance(item, NoteEntry):
                self._notes.setdefault(item.parent, []).append(item.key)

    @classmethod
    def load(cls, path: Path) -> "JsonLibrary":
        """Read and validate a library file.

        Raises:
            ConfigError: if the file is missing, unreadable, not JSON, or fails validation.
        """
        if not path.exists():
            raise ConfigError(f"Library file not found: {path}")
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Cannot read library file {path}: {exc}") from exc
        try:
            data = LibraryFile.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigError(f"Invalid library file {path}: {exc}") from exc
        logger.info("Loaded library %s (%d items)", path.name, len(data.items))
        return cls(data, path)

    # -- lookup ------------------------------------------------------------

    def classify(self, item_id: str) -> Selection | None:
        entry = self._items.get(item_id)
        if entry is None:
            return None
        if isinstance(entry, RecordEntry):
            return self._record(entry)
        if isinstance(entry, AttachmentEntry):
            return self._attachment(entry)
        return OtherItem(id=entry.key, kind=entry.type)

    def record_ids(self) -> list[str]:
        """Return the keys of all top-level records, in file order."""
        return [item.key for item in self._data.items if isinstance(item, RecordEntry)]

    def attachment_ids(self, record: Record) -> list[str]:
        entry = self._items.get(record.id)
        return list(entry.attachments) if isinstance(entry, RecordEntry) else []

    def get_attachment(self, item_id: str) -> Attachment | None:
        entry = self._items.get(item_id)
        return self._attachment(entry) if isinstance(entry, AttachmentEntry) else None

    def get_record(self, item_id: str) -> Record | None:
        entry = self._items.get(item_id)
        return self._record(entry) if isinstance(entry, RecordEntry) else None

    def get_field(self, item: NoteParent, field: str) -> str:
        entry = self._items.get(item.id)
        if entry is None:
            return ""
        value = getattr(entry, field, "")
        return value if isinstance(value, str) else ""

    # -- text --------------------------------------------------------------

    async def extract_text(self, attachment: Attachment) -> str | None:
        entry = self._items.get(attachment.id)
        if not isinstance(entry, AttachmentEntry):
            return None
        if entry.fulltext is not None:
            return entry.fulltext
        if entry.fulltext_path is None:
            return None
        text_path = self.path.parent / entry.fulltext_path
        return await asyncio.to_thread(text_path.read_text, encoding="utf-8")

    # -- notes -------------------------------------------------------------

    def note_ids(self, parent: NoteParent) -> list[str]:
        return list(self._notes.get(parent.id, ()))

    def note_content(self, note_id: str) -> str | None:
        entry = self._items.get(note_id)
        return entry.note if isinstance(entry, NoteEntry) else None

    async def create_note(self, content: str, parent: NoteParent) -> str:
        parent_entry = self._items.get(parent.id)
        if not isinstance(parent_entry, (RecordEntry, AttachmentEntry)):
            raise KeyError(f"Cannot attach a note to unknown item {parent.id!r}")

        note = NoteEntry(
            key=self._new_key(),
            type="note",
            parent=parent.id,
            note=content,
            library_id=parent.library_id,
        )
        self._data.items.append(note)
        self._items[note.key] = note
        self._notes.setdefault(parent.id, []).append(note.key)
        await asyncio.to_thread(self.save)
        logger.info("Created note %s on %s", note.key, parent.id)
        return note.key

    def save(self) -> None:
        """Rewrite the library file atomically."""
        payload = self._data.model_dump(mode="json", exclude_none=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, ensure_ascii=False, indent=2)
                fh.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # -- helpers -----------------------------------------------------------

    def _library_id(self, entry: _Entry) -> int:
        return entry.library_id if entry.library_id is not None else self._data.library_id

    def _record(self, entry: RecordEntry) -> Record:
        return Record(id=entry.key, library_id=self._library_id(entry))

    def _attachment(self, entry: AttachmentEntry) -> Attachment:
        return Attachment(
            id=entry.key,
            library_id=self._library_id(entry),
            content_type=entry.content_type,
            parent_id=entry.parent,
        )

    def _new_key(self) -> str:
        while True:
            key = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(_KEY_LENGTH))
            if key not in self._items:
                return key
