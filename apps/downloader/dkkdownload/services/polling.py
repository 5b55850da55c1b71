from __future__ import annotations

import logging
import time
from typing import BinaryIO, Callable

from dkkdownload.models import JobFailed, JobHandle, JobProcessing, JobReady, JobStateEnum
from dkkdownload.schemas import ExportRequest
from dkkdownload.services.download import DownloadPipeline
from dkkdownload.services.progress import ProgressReporter
from dkkdownload.services.remote import ExportApiClient, ExportJobFailedError, RemoteError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 1.0


class ExportJobRunner:
    """Drives one export job: submit, poll until ready, then download.

    Polling has no iteration limit; job duration is up to the service. The
    only exits are a ready job or an error.
    """

    def __init__(
        self,
        client: ExportApiClient,
        pipeline: DownloadPipeline,
        reporter: ProgressReporter,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.pipeline = pipeline
        self.reporter = reporter
        self.poll_interval = poll_interval
        self.sleep = sleep

        self.state = JobStateEnum.SUBMITTING
        self.handle: JobHandle | None = None
        self.download_url: str | None = None
        self.error: Exception | None = None
        self.polls = 0

    def _transition(self, state: JobStateEnum) -> None:
        logger.debug("Export job state %s -> %s", self.state.value, state.value)
        self.state = state

    def _wait_until_ready(self, handle: JobHandle) -> str:
        while True:
            status = self.client.poll(handle)
            self.polls += 1

            if isinstance(status, JobReady):
                return status.download_url
            if isinstance(status, JobFailed):
                raise ExportJobFailedError(f"Export job {handle.request_id} failed: {status.diagnostic}")
            if not isinstance(status, JobProcessing):
                raise RemoteError(f"Unknown job status {status!r}")

            self.reporter.on_tick()
            if status.progress is not None:
                self.reporter.on_progress_update(status.progress)
            logger.debug(
                "Export job processing request_id=%s poll=%s progress=%s",
                handle.request_id,
                self.polls,
                status.progress,
            )
            self.sleep(self.poll_interval)

    def run(self, request: ExportRequest, sink: BinaryIO) -> int:
        self.state = JobStateEnum.SUBMITTING
        try:
            self.handle = self.client.submit(request)

            self._transition(JobStateEnum.POLLING)
            self.download_url = self._wait_until_ready(self.handle)
            self._transition(JobStateEnum.READY)
            logger.info("Export job ready request_id=%s polls=%s", self.handle.request_id, self.polls)

            self._transition(JobStateEnum.DOWNLOADING)
            written = self.pipeline.run(self.download_url, sink, self.reporter)
        except Exception as exc:
            self.error = exc
            self.reporter.close()
            logger.info("Export job failed in state=%s: %s", self.state.value, exc)
            self._transition(JobStateEnum.FAILED)
            raise

        self._transition(JobStateEnum.DONE)
        return written
