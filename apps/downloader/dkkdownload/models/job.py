from __future__ import annotations

from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Optional, Union

try:
    from enum import StrEnum
except ImportError:
    class StrEnum(str, PyEnum):
        pass


class JobStateEnum(StrEnum):
    SUBMITTING = "SUBMITTING"
    POLLING = "POLLING"
    READY = "READY"
    DOWNLOADING = "DOWNLOADING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class JobHandle:
    request_id: str


@dataclass(frozen=True)
class JobProcessing:
    progress: Optional[int] = None


@dataclass(frozen=True)
class JobReady:
    download_url: str


@dataclass(frozen=True)
class JobFailed:
    diagnostic: str


JobStatus = Union[JobProcessing, JobReady, JobFailed]


@dataclass
class TransferProgress:
    bytes_transferred: int = 0
    total_bytes: Optional[int] = None

    def add(self, count: int) -> None:
        if count < 0:
            raise ValueError("Transferred byte count cannot decrease")
        self.bytes_transferred += count

    @property
    def is_complete(self) -> bool:
        return self.total_bytes is not None and self.bytes_transferred >= self.total_bytes
