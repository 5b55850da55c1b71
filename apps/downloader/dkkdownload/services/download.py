from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Callable, Iterator

from dkkdownload.services.progress import ProgressReporter
from dkkdownload.services.remote import ExportApiClient

logger = logging.getLogger(__name__)


@contextmanager
def open_output_sink(path: Path | None) -> Iterator[BinaryIO]:
    """Yield a fresh output file, or stdout's byte stream when no path is given.

    Files are closed on exit; stdout is only flushed.
    """
    if path is None:
        stream = sys.stdout.buffer
        try:
            yield stream
        finally:
            stream.flush()
        return

    with path.open("wb") as handle:
        yield handle


class ObservingSink:
    """Forwards writes to ``inner`` and reports each written byte count."""

    def __init__(self, inner: BinaryIO, observer: Callable[[int], None]) -> None:
        self.inner = inner
        self.observer = observer
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        written = self.inner.write(data)
        if written is None:
            written = len(data)
        self.bytes_written += written
        self.observer(written)
        return written

    def flush(self) -> None:
        self.inner.flush()


class DownloadPipeline:
    def __init__(self, client: ExportApiClient) -> None:
        self.client = client

    def run(self, url: str, sink: BinaryIO, reporter: ProgressReporter) -> int:
        with self.client.fetch(url) as archive:
            total = archive.content_length
            logger.info("Downloading archive url=%s content_length=%s", url, total)
            reporter.on_download_start(total)

            observed = ObservingSink(sink, reporter.on_bytes)
            for chunk in archive.iter_bytes():
                observed.write(chunk)
            observed.flush()

        reporter.on_complete()
        if total is not None and observed.bytes_written != total:
            logger.warning("Archive size mismatch expected=%s received=%s", total, observed.bytes_written)
        logger.info("Archive written bytes=%s", observed.bytes_written)
        return observed.bytes_written
