from __future__ import annotations

import logging
import sys
from typing import TextIO

from tqdm import tqdm

from dkkdownload.models import TransferProgress

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Tracks job and transfer progress without rendering anything.

    Progress is observability only: malformed input is logged and dropped,
    never raised.
    """

    def __init__(self) -> None:
        self.ticks = 0
        self.percent: int | None = None
        self.transfer: TransferProgress | None = None
        self.completed = False

    @property
    def bytes_transferred(self) -> int:
        return self.transfer.bytes_transferred if self.transfer is not None else 0

    def on_tick(self) -> None:
        self.ticks += 1

    def on_progress_update(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            logger.debug("Ignoring non-integer progress value=%r", value)
            return
        self.percent = value

    def on_download_start(self, total_bytes: int | None) -> None:
        if total_bytes is not None and total_bytes < 0:
            total_bytes = None
        self.transfer = TransferProgress(total_bytes=total_bytes)

    def on_bytes(self, count: int) -> None:
        if self.transfer is None:
            self.on_download_start(None)
        try:
            self.transfer.add(count)
        except ValueError:
            logger.debug("Ignoring negative byte count=%s", count)

    def on_complete(self) -> None:
        self.completed = True

    def close(self) -> None:
        pass


class ConsoleProgressReporter(ProgressReporter):
    """Renders progress bars on stderr with tqdm.

    The job phase shows a 0-100% bar plus a poll counter; the download phase
    switches to a byte counter that is open-ended when no total is known.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream if stream is not None else sys.stderr
        self._job_bar: tqdm | None = None
        self._download_bar: tqdm | None = None

    def _ensure_job_bar(self) -> tqdm:
        if self._job_bar is None:
            self._job_bar = tqdm(
                total=100,
                desc="Export job",
                unit="%",
                file=self.stream,
                bar_format="{desc}: {percentage:3.0f}%|{bar}| {postfix}",
            )
        return self._job_bar

    def _close_job_bar(self) -> None:
        if self._job_bar is not None:
            self._job_bar.close()
            self._job_bar = None

    def on_tick(self) -> None:
        super().on_tick()
        bar = self._ensure_job_bar()
        bar.set_postfix_str(f"polls={self.ticks}")

    def on_progress_update(self, value: int) -> None:
        super().on_progress_update(value)
        if self.percent is None:
            return
        bar = self._ensure_job_bar()
        # The service may report lower values than before; show what it says.
        bar.n = max(0, min(100, self.percent))
        bar.refresh()

    def on_download_start(self, total_bytes: int | None) -> None:
        super().on_download_start(total_bytes)
        self._close_job_bar()
        self._download_bar = tqdm(
            total=self.transfer.total_bytes,
            desc="Download",
            unit="B",
            unit_scale=True,
            unit_divisor=1024,
            file=self.stream,
        )

    def on_bytes(self, count: int) -> None:
        before = self.bytes_transferred
        super().on_bytes(count)
        if self._download_bar is not None:
            self._download_bar.update(self.bytes_transferred - before)

    def on_complete(self) -> None:
        super().on_complete()
        self.close()

    def close(self) -> None:
        self._close_job_bar()
        if self._download_bar is not None:
            self._download_bar.close()
            self._download_bar = None
