from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

import httpx
from pydantic import ValidationError

from dkkdownload.core.config import Settings
from dkkdownload.models import JobFailed, JobHandle, JobProcessing, JobReady, JobStatus
from dkkdownload.schemas import ExportRequest, ReadyResponse, SubmitResponse

logger = logging.getLogger(__name__)

FAILED_JOB_STATES = {"FAILED", "ERROR"}


class RemoteError(RuntimeError):
    pass


class UnexpectedStatusError(RemoteError):
    def __init__(self, code: int, verb: str, url: str, body: str | None = None) -> None:
        self.code = code
        self.verb = verb
        self.url = url
        self.body = body
        message = f"Unexpected status code ({code}) received in response to {verb} {url}"
        if body:
            message = f"{message}\nThe API says:\n{body}"
        super().__init__(message)


class MalformedResponseError(RemoteError):
    pass


class TransportError(RemoteError):
    pass


class ExportJobFailedError(RemoteError):
    pass


def build_http_client(settings: Settings, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    return httpx.Client(
        base_url=settings.service_root_url,
        timeout=settings.http_timeout_seconds,
        headers={
            "User-Agent": settings.user_agent,
            "Accept": "application/json",
        },
        transport=transport,
    )


def _best_effort_text(response: httpx.Response) -> str | None:
    try:
        text = response.read().decode(response.encoding or "utf-8", errors="replace")
    except httpx.HTTPError:
        return None
    return text.strip() or None


def _unexpected(response: httpx.Response) -> UnexpectedStatusError:
    return UnexpectedStatusError(
        code=response.status_code,
        verb=response.request.method,
        url=str(response.request.url),
        body=_best_effort_text(response),
    )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _extract_progress(payload: Any) -> int | None:
    if not isinstance(payload, dict):
        return None
    value = payload.get("progress")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not 0 <= value <= 100:
        return None
    return int(value)


def _extract_failure(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    status = payload.get("status")
    if not isinstance(status, str) or status.strip().upper() not in FAILED_JOB_STATES:
        return None
    message = payload.get("message") or payload.get("detail")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return f"Export job reported status {status.strip()}"


@dataclass
class ArchiveStream:
    response: httpx.Response
    chunk_size: int

    @property
    def content_length(self) -> int | None:
        raw = self.response.headers.get("Content-Length")
        if raw is None:
            return None
        try:
            length = int(raw)
        except ValueError:
            return None
        return length if length >= 0 else None

    def iter_bytes(self) -> Iterator[bytes]:
        try:
            for chunk in self.response.iter_bytes(chunk_size=self.chunk_size):
                if chunk:
                    yield chunk
        except httpx.TransportError as exc:
            raise TransportError(f"Download interrupted: {exc}") from exc


class ExportApiClient:
    """Typed wrapper around the full custom download endpoints.

    Classifies every response into a result or a ``RemoteError``; it never retries.
    """

    def __init__(self, http: httpx.Client, settings: Settings) -> None:
        self.http = http
        self.settings = settings
        self.jobs_path = settings.api_path.rstrip("/") + "/full/custom"

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    def _resolve_download_url(self, href: str) -> str:
        if httpx.URL(href).is_absolute_url:
            return href
        # Hrefs are root-relative paths; keep any path prefix of the configured root.
        return f"{self.settings.service_root_url.rstrip('/')}/{href.lstrip('/')}"

    def submit(self, request: ExportRequest) -> JobHandle:
        response = self._send(
            "POST",
            self.jobs_path,
            json=request.to_payload(),
            # Without an explicit content type the service answers 500.
            headers={"Content-Type": "application/json"},
        )
        if response.status_code != httpx.codes.ACCEPTED:
            raise _unexpected(response)

        try:
            parsed = SubmitResponse.model_validate(_json_body(response))
        except ValidationError as exc:
            raise MalformedResponseError("Submission response does not contain a downloadRequestId") from exc

        handle = JobHandle(request_id=parsed.download_request_id)
        logger.info("Export job submitted request_id=%s layers=%s", handle.request_id, ",".join(request.feature_types))
        return handle

    def poll(self, handle: JobHandle) -> JobStatus:
        response = self._send("GET", f"{self.jobs_path}/{handle.request_id}/status")

        if response.status_code == httpx.codes.OK:
            payload = _json_body(response)
            diagnostic = _extract_failure(payload)
            if diagnostic is not None:
                return JobFailed(diagnostic=diagnostic)
            return JobProcessing(progress=_extract_progress(payload))

        if response.status_code == httpx.codes.CREATED:
            try:
                parsed = ReadyResponse.model_validate(_json_body(response))
            except ValidationError as exc:
                raise MalformedResponseError(
                    f"Status response for {handle.request_id} has no _links.download.href"
                ) from exc
            download_url = self._resolve_download_url(parsed.links.download.href)
            return JobReady(download_url=download_url)

        raise _unexpected(response)

    @contextmanager
    def fetch(self, url: str) -> Iterator[ArchiveStream]:
        try:
            request = self.http.build_request("GET", url)
            response = self.http.send(request, stream=True)
        except httpx.TransportError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc

        try:
            if response.status_code != httpx.codes.OK:
                raise _unexpected(response)
            yield ArchiveStream(response=response, chunk_size=self.settings.download_chunk_size)
        finally:
            response.close()
