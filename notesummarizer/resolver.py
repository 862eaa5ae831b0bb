"""Decide which attachment's text to summarize and which item owns the note.

Top-level records are scanned first-match: the first supported attachment
(PDF or HTML) that yields non-blank text wins, so attachment order matters.
Extraction failures on a candidate are logged and treated as "no text"; only
exhausting all candidates is an error.
"""

import logging

from notesummarizer.host import Host
from notesummarizer.models import (
    Attachment,
    InputError,
    Record,
    ResolvedTarget,
    Selection,
)

logger = logging.getLogger(__name__)


async def resolve_target(selection: Selection | None, host: Host) -> ResolvedTarget:
    """Resolve a selection into the attachment text and the note parent.

    Args:
        selection: The classified user selection, or None when nothing is
            selected.
        host:      Host used for attachment lookup and text extraction.

    Returns:
        A ``ResolvedTarget`` whose ``fulltext`` is stripped and non-empty.

    Raises:
        InputError: if nothing is selected, the record has no attachments or
            no extractable text, the attachment type is unsupported or not
            indexed yet, or the selection is of an unsupported kind.
    """
    if selection is None:
        raise InputError("No item selected.")

    if isinstance(selection, Record):
        return await _resolve_record(selection, host)

    if isinstance(selection, Attachment):
        return await _resolve_attachment(selection, host)

    raise InputError(
        "Unsupported selection: please select a top-level regular item "
        "or a PDF/HTML attachment."
    )


async def _resolve_record(record: Record, host: Host) -> ResolvedTarget:
    attachment_ids = host.attachment_ids(record)
    if not attachment_ids:
        raise InputError("No attachments found on the selected item.")

    for attachment_id in attachment_ids:
        attachment = host.get_attachment(attachment_id)
        if attachment is None or not attachment.is_supported:
            continue
        text = await extract_fulltext(attachment, host)
        if not text:
            continue
        logger.info(
            "Using attachment %s (%s, %s chars)",
            attachment.id,
            attachment.content_type,
            f"{len(text):,}",
        )
        return ResolvedTarget(attachment=attachment, note_parent=record, fulltext=text)

    raise InputError("No extractable PDF/HTML text found on the selected item.")


async def _resolve_attachment(attachment: Attachment, host: Host) -> ResolvedTarget:
    if not attachment.is_supported:
        raise InputError(
            f"Unsupported attachment type {attachment.content_type!r}: please "
            "select a PDF/HTML attachment or a top-level regular item."
        )

    parent = host.get_record(attachment.parent_id) if attachment.parent_id else None
    text = await extract_fulltext(attachment, host)
    if not text:
        raise InputError(
            "No extractable text found in the selected attachment. "
            "It may not be indexed yet."
        )
    return ResolvedTarget(
        attachment=attachment,
        note_parent=parent or attachment,
        fulltext=text,
    )


async def extract_fulltext(attachment: Attachment, host: Host) -> str | None:
    """Return the attachment's stripped text, or None if it has none.

    Unsupported attachments yield None without calling the host.  Exceptions
    raised by the host's extractor are logged and also yield None.
    """
    if not attachment.is_supported:
        return None

    try:
        text = await host.extract_text(attachment)
    except Exception as exc:
        logger.warning("Text extraction failed for %s: %s", attachment.id, exc)
        return None

    if text and text.strip():
        return text.strip()
    return None
