"""Batch processing — summarize several library items one after another.

Each item is a fresh, independent pipeline invocation; nothing is shared
between them except the LLM client.  Items run sequentially: the duplicate
check is not atomic, so running two invocations on the same record at once
could create two notes.

Outcome per item:

* ``created`` : a new note was written;
* ``skipped`` : a note with the same header already exists;
* ``failed``  : the pipeline raised; the error is recorded and the batch
  continues with the next item.
"""

import logging
import sys

from tqdm.auto import tqdm

from notesummarizer.host import Host
from notesummarizer.llm import ChatCompletionClient, create_client
from notesummarizer.models import BatchReport, Config, FailedItem, PipelineError
from notesummarizer.pipeline import summarize_selection

logger = logging.getLogger(__name__)


async def run_batch(
    keys: list[str],
    host: Host,
    config: Config,
    client: ChatCompletionClient | None = None,
) -> BatchReport:
    """Summarize every item in ``keys`` and return an aggregate report.

    Args:
        keys:   Library item keys, processed in order.
        host:   Host collaborator.
        config: Runtime configuration shared by all invocations.
        client: LLM client; created once from ``config`` when omitted.

    Returns:
        A ``BatchReport`` with counts and details of failed items.
    """
    if client is None:
        client = create_client(config)

    total = len(keys)
    logger.info("Selected for processing: %d", total)

    n_created = 0
    n_skipped = 0
    failed_items: list[FailedItem] = []

    with tqdm(
        total=total,
        desc="Summarize",
        unit="item",
        disable=not sys.stderr.isatty(),
        leave=True,
    ) as progress:
        for idx, key in enumerate(keys, start=1):
            logger.info("  Processing [%d/%d]: %s", idx, total, key)
            try:
                result = await summarize_selection(
                    host.classify(key), host, config, client=client
                )
            except PipelineError as exc:
                logger.error("  [%d/%d] Failed: %s", idx, total, exc)
                failed_items.append(FailedItem(key=key, error=str(exc)))
            else:
                if result.status == "created":
                    n_created += 1
                    logger.info("  [%d/%d] Created note %s", idx, total, result.note_id)
                else:
                    n_skipped += 1
                    logger.info("  [%d/%d] Summary already exists", idx, total)
            finally:
                progress.update(1)
                progress.set_postfix(ok=n_created, failed=len(failed_items))

    return BatchReport(
        created=n_created,
        skipped=n_skipped,
        failed=len(failed_items),
        failed_items=failed_items,
    )
