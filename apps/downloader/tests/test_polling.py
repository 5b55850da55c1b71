import io

import pytest

from dkkdownload.models import JobFailed, JobHandle, JobProcessing, JobReady, JobStateEnum
from dkkdownload.schemas import ExportRequest
from dkkdownload.services.polling import ExportJobRunner
from dkkdownload.services.progress import ProgressReporter
from dkkdownload.services.remote import ExportJobFailedError, TransportError, UnexpectedStatusError

POLYGON = "POLYGON((190000 443000, 191000 443000, 191000 444000, 190000 443000))"
READY = JobReady(download_url="https://downloads.pdok.nl/dl/abc123.zip")


class ScriptedClient:
    def __init__(self, statuses: list, submit_error: Exception | None = None) -> None:
        self.statuses = list(statuses)
        self.submit_error = submit_error
        self.submitted: list[ExportRequest] = []
        self.polls = 0

    def submit(self, request: ExportRequest) -> JobHandle:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(request)
        return JobHandle(request_id="abc123")

    def poll(self, handle: JobHandle):
        assert handle.request_id == "abc123"
        self.polls += 1
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return status


class RecordingPipeline:
    def __init__(self, payload: bytes = b"PK\x03\x04", error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.urls: list[str] = []

    def run(self, url: str, sink, reporter: ProgressReporter) -> int:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        reporter.on_download_start(len(self.payload))
        sink.write(self.payload)
        reporter.on_bytes(len(self.payload))
        reporter.on_complete()
        return len(self.payload)


def _runner(client, pipeline=None, reporter=None):
    sleeps: list[float] = []
    runner = ExportJobRunner(
        client,
        pipeline or RecordingPipeline(),
        reporter or ProgressReporter(),
        sleep=sleeps.append,
    )
    return runner, sleeps


def _request() -> ExportRequest:
    return ExportRequest(feature_types=["perceel"], area_filter=POLYGON)


def test_three_processing_polls_wait_three_times_then_download() -> None:
    client = ScriptedClient([JobProcessing(), JobProcessing(), JobProcessing(), READY])
    pipeline = RecordingPipeline()
    runner, sleeps = _runner(client, pipeline)
    sink = io.BytesIO()

    written = runner.run(_request(), sink)

    assert sleeps == [1.0, 1.0, 1.0]
    assert client.polls == 4
    assert pipeline.urls == [READY.download_url]
    assert written == 4
    assert sink.getvalue() == b"PK\x03\x04"
    assert runner.state == JobStateEnum.DONE
    assert runner.handle == JobHandle("abc123")


def test_progress_updates_are_forwarded_only_when_present() -> None:
    reporter = ProgressReporter()
    client = ScriptedClient([JobProcessing(10), JobProcessing(None), JobProcessing(55), READY])
    runner, _ = _runner(client, reporter=reporter)

    runner.run(_request(), io.BytesIO())

    assert reporter.ticks == 3
    assert reporter.percent == 55


def test_polling_has_no_iteration_limit() -> None:
    client = ScriptedClient([JobProcessing()] * 2500 + [READY])
    runner, sleeps = _runner(client)

    runner.run(_request(), io.BytesIO())

    assert len(sleeps) == 2500
    assert runner.polls == 2501


def test_ready_on_first_poll_never_sleeps() -> None:
    runner, sleeps = _runner(ScriptedClient([READY]))

    runner.run(_request(), io.BytesIO())

    assert sleeps == []
    assert runner.state == JobStateEnum.DONE


def test_submit_failure_skips_polling() -> None:
    error = UnexpectedStatusError(code=500, verb="POST", url="https://downloads.pdok.nl/x", body="Interne fout")
    client = ScriptedClient([READY], submit_error=error)
    pipeline = RecordingPipeline()
    runner, sleeps = _runner(client, pipeline)

    with pytest.raises(UnexpectedStatusError):
        runner.run(_request(), io.BytesIO())

    assert client.polls == 0
    assert sleeps == []
    assert pipeline.urls == []
    assert runner.state == JobStateEnum.FAILED
    assert runner.error is error


def test_poll_error_stops_the_loop() -> None:
    client = ScriptedClient([JobProcessing(20), TransportError("connection reset"), READY])
    pipeline = RecordingPipeline()
    runner, sleeps = _runner(client, pipeline)

    with pytest.raises(TransportError):
        runner.run(_request(), io.BytesIO())

    assert sleeps == [1.0]
    assert pipeline.urls == []
    assert runner.state == JobStateEnum.FAILED


def test_failed_job_is_terminal() -> None:
    client = ScriptedClient([JobProcessing(), JobFailed(diagnostic="geofilter too large")])
    runner, _ = _runner(client)

    with pytest.raises(ExportJobFailedError, match="geofilter too large"):
        runner.run(_request(), io.BytesIO())

    assert runner.state == JobStateEnum.FAILED


def test_download_failure_marks_run_failed() -> None:
    error = UnexpectedStatusError(code=404, verb="GET", url=READY.download_url)
    runner, _ = _runner(ScriptedClient([READY]), RecordingPipeline(error=error))

    with pytest.raises(UnexpectedStatusError):
        runner.run(_request(), io.BytesIO())

    assert runner.state == JobStateEnum.FAILED
    assert runner.download_url == READY.download_url


class ClosingReporter(ProgressReporter):
    def __init__(self) -> None:
        super().__init__()
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


@pytest.mark.parametrize(
    "client, pipeline",
    [
        (ScriptedClient([], submit_error=TransportError("connection refused")), RecordingPipeline()),
        (ScriptedClient([JobProcessing(), TransportError("connection reset")]), RecordingPipeline()),
        (ScriptedClient([READY]), RecordingPipeline(error=TransportError("Download interrupted"))),
    ],
)
def test_reporter_is_closed_when_the_run_fails(client, pipeline) -> None:
    reporter = ClosingReporter()
    runner, _ = _runner(client, pipeline, reporter)

    with pytest.raises(TransportError):
        runner.run(_request(), io.BytesIO())

    assert reporter.closed == 1
    assert not reporter.completed


def test_reporter_is_not_closed_by_the_runner_on_success() -> None:
    reporter = ClosingReporter()
    runner, _ = _runner(ScriptedClient([READY]), reporter=reporter)

    runner.run(_request(), io.BytesIO())

    assert reporter.completed
    assert reporter.closed == 0
