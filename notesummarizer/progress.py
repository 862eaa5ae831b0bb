"""Terminal presentation of pipeline stage events.

``TqdmProgress`` is passed as ``on_event`` to ``summarize_selection``.  The
pipeline itself knows nothing about progress bars.
"""

import sys

from tqdm.auto import tqdm

from notesummarizer.models import Stage, StageEvent


class TqdmProgress:
    """Render ``StageEvent``s on a 0-100 % tqdm bar.

    The bar is created lazily on the first event and closed on a terminal
    stage (done, already exists, failed).  It is disabled when stderr is not a
    TTY, matching the batch progress bars.
    """

    def __init__(self, disable: bool | None = None) -> None:
        self._disable = (not sys.stderr.isatty()) if disable is None else disable
        self._bar: tqdm | None = None
        self.last_event: StageEvent | None = None

    def __call__(self, event: StageEvent) -> None:
        self.last_event = event
        if self._bar is None:
            self._bar = tqdm(
                total=100,
                unit="%",
                disable=self._disable,
                leave=True,
                bar_format="{desc} {percentage:3.0f}%|{bar}| {postfix}",
            )
        if event.subject:
            self._bar.set_description(event.subject, refresh=False)
        self._bar.update(max(0, event.progress - self._bar.n))
        self._bar.set_postfix_str(event.message)
        if event.stage.is_terminal:
            self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    @property
    def failed(self) -> bool:
        return self.last_event is not None and self.last_event.stage is Stage.FAILED
