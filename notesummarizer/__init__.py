"""
ai-note-summarizer — summarize reference-manager items into HTML notes.

Resolves the attachment text of a selected record, asks an OpenAI-compatible
LLM for a structured summary, renders its Markdown reply to HTML and attaches
the result as a note, skipping items that already carry one.
"""

__version__ = "0.1.0"
