from dkkdownload.schemas.export import EXPORT_FORMAT, ExportRequest, ReadyResponse, SubmitResponse

__all__ = [
    "EXPORT_FORMAT",
    "ExportRequest",
    "ReadyResponse",
    "SubmitResponse",
]
