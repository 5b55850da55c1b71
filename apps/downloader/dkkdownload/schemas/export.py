from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EXPORT_FORMAT = "gml"


class ExportRequest(BaseModel):
    """Submission body for a full custom download.

    "gml" is the only format the service accepts.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    feature_types: tuple[str, ...] = Field(alias="featuretypes", min_length=1)
    format: Literal["gml"] = EXPORT_FORMAT
    area_filter: str = Field(alias="geofilter", min_length=1)

    @field_validator("feature_types")
    @classmethod
    def _non_empty_names(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if any(not name.strip() for name in value):
            raise ValueError("Feature type names must not be empty")
        return value

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class SubmitResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    download_request_id: str = Field(alias="downloadRequestId", min_length=1)


class DownloadLink(BaseModel):
    href: str = Field(min_length=1)


class ReadyLinks(BaseModel):
    download: DownloadLink


class ReadyResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    links: ReadyLinks = Field(alias="_links")
