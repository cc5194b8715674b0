"""
Response models for the PDF → ASYCUDA XML portal.

This module defines Pydantic models for the conversion service contract
and for the responses of the portal's own API.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.conversion import FileStatus, JobStatus, PaymentReport


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConvertAsyncResponse(BaseModel):
    """Conversion service answer to a job submission."""

    model_config = ConfigDict(extra="allow")

    job_id: str = Field(..., description="Remote job identifier")
    status: JobStatus = Field(default=JobStatus.PENDING, description="Initial job status")
    message: str | None = Field(default=None, description="Service message")
    created_at: str | None = Field(default=None, description="Job creation time")


class JobStatusResponse(BaseModel):
    """Conversion service answer to a status request."""

    model_config = ConfigDict(extra="allow")

    job_id: str = Field(..., description="Remote job identifier")
    status: JobStatus = Field(..., description="Current job status")
    filename: str | None = None
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    progress: float | None = Field(default=None, description="Reported progress (0-100)")
    message: str | None = None
    error: str | None = None


class ErrorDetailItem(BaseModel):
    """One entry of a structured validation error body."""

    model_config = ConfigDict(extra="allow")

    msg: str
    type: str | None = None


class ApiErrorBody(BaseModel):
    """Error body returned by the conversion service."""

    model_config = ConfigDict(extra="allow")

    detail: str | list[ErrorDetailItem]

    def message(self) -> str:
        if isinstance(self.detail, str):
            return self.detail
        return ", ".join(item.msg for item in self.detail)


class ResultFile(BaseModel):
    """Binary result of a conversion job."""

    content: bytes = Field(..., repr=False)
    content_type: str = Field(default="application/xml")
    content_disposition: str = Field(default="attachment; filename=output.xml")


class FileRow(BaseModel):
    """Display row of the upload surface, bound to orchestrator state."""

    id: str
    name: str
    size: int
    exchange_rate: float | None = None
    payment_report: PaymentReport | None = None
    status: FileStatus = FileStatus.QUEUED
    progress: float = 0.0
    attempts: int = 0
    output_name: str | None = None
    error: str | None = None
    can_download: bool = False
    can_retry: bool = False
    can_retry_download: bool = False


class BatchResponse(BaseModel):
    """State of the caller's current conversion batch."""

    is_converting: bool = False
    is_downloading: bool = False
    succeeded_count: int = 0
    failed_count: int = 0
    files: list[FileRow] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list, description="Upload validation errors")


class HealthResponse(BaseModel):
    """
    Response model for health check endpoints.

    This model provides system health and status information.
    """

    status: str = Field(..., description="Service status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    environment: str = Field(..., description="Environment name")
    timestamp: datetime = Field(default_factory=_utcnow)

    # Optional system information
    system: dict[str, Any] | None = Field(default=None)
    metrics: dict[str, Any] | None = Field(default=None)
    dependencies: dict[str, bool] | None = Field(default=None)


class ErrorResponse(BaseModel):
    """
    Response model for error responses.

    This model provides consistent error response formatting.
    """

    detail: str = Field(..., description="Error message")
    error: str | None = Field(default=None, description="Error type")
    request_id: str | None = Field(default=None, description="Request identifier")
