"""Render the LLM's Markdown-flavoured reply to the HTML subset notes accept.

Supported: ``##``/``###`` headings, ``**bold**``, ``-`` bullet lists, ``1.``
numbered lists and paragraphs.  Everything else (links, inline code, nested
lists) passes through as escaped literal text.

The text is HTML-escaped *before* bold spans are converted, so the generated
``<strong>`` tags survive while any ``<``/``>`` the model wrote does not.
"""

import html
import logging
import re

from notesummarizer.models import RenderError

logger = logging.getLogger(__name__)

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_H3 = re.compile(r"^###\s+(.+)$")
_H2 = re.compile(r"^##\s+(.+)$")
_BULLET = re.compile(r"^-\s+(.+)$")
_NUMBERED = re.compile(r"^\d+\.\s+(.+)$")
_SPACE_RUN = re.compile(r"\s{2,}")


class _ListState:
    """Tracks the one list (``ul`` or ``ol``) that may be open at a time."""

    def __init__(self, out: list[str]) -> None:
        self._out = out
        self.open_tag: str | None = None

    def open(self, tag: str) -> None:
        if self.open_tag == tag:
            return
        self.close()
        self._out.append(f"<{tag}>")
        self.open_tag = tag

    def close(self) -> None:
        if self.open_tag is not None:
            self._out.append(f"</{self.open_tag}>")
            self.open_tag = None


def render_markdown(text: str) -> str:
    """Convert Markdown-flavoured text to HTML in one left-to-right line pass.

    Each line is stripped before classification.  Blank lines close an open
    list and emit nothing; headings and paragraphs close it too; a bullet
    closes an open numbered list and vice versa.

    Args:
        text: The raw LLM reply.

    Returns:
        HTML blocks joined with newlines (empty string for empty input).

    Raises:
        RenderError: if the input cannot be rendered.
    """
    if not isinstance(text, str):
        raise RenderError(f"Cannot render {type(text).__name__} as markdown")
    if not text:
        return ""

    escaped = html.escape(text, quote=False)
    escaped = _BOLD.sub(r"<strong>\1</strong>", escaped)
    try:
        return _render_blocks(escaped)
    except Exception as exc:
        raise RenderError(f"Markdown rendering failed: {exc}") from exc


def _render_blocks(escaped: str) -> str:
    out: list[str] = []
    lists = _ListState(out)
    for raw_line in escaped.split("\n"):
        line = raw_line.strip()
        if not line:
            lists.close()
            continue

        match = _H3.match(line)
        if match:
            lists.close()
            out.append(f"<h3>{match.group(1)}</h3>")
            continue

        match = _H2.match(line)
        if match:
            lists.close()
            out.append(f"<h2>{match.group(1)}</h2>")
            continue

        match = _BULLET.match(line)
        if match:
            lists.open("ul")
            out.append(f"<li>{match.group(1)}</li>")
            continue

        match = _NUMBERED.match(line)
        if match:
            lists.open("ol")
            out.append(f"<li>{match.group(1)}</li>")
            continue

        lists.close()
        out.append(f"<p>{_SPACE_RUN.sub(' ', line)}</p>")

    lists.close()
    return "\n".join(out)


def render_preformatted(text: str) -> str:
    """Wrap escaped ``text`` in a ``<pre>`` block."""
    return f"<pre>{html.escape(text, quote=False)}</pre>"


def render_summary_html(text: str) -> str:
    """Render ``text`` to HTML, falling back to a ``<pre>`` block on failure.

    Never raises ``RenderError``: a failed render is logged and the escaped raw
    text is returned instead, so the note is still written.
    """
    try:
        return render_markdown(text)
    except RenderError as exc:
        logger.warning("Markdown rendering failed (%s); using preformatted text", exc)
        return render_preformatted(str(text))
