from dkkdownload.models.job import (
    JobFailed,
    JobHandle,
    JobProcessing,
    JobReady,
    JobStateEnum,
    JobStatus,
    TransferProgress,
)

__all__ = [
    "JobFailed",
    "JobHandle",
    "JobProcessing",
    "JobReady",
    "JobStateEnum",
    "JobStatus",
    "TransferProgress",
]
