"""
Conversion models for the PDF → ASYCUDA XML portal.

This module defines the Pydantic models tracked by the conversion
orchestrator: uploaded file entries, per-file conversion records and
the immutable batch state snapshot.
"""

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class JobStatus(str, Enum):
    """Enumeration of remote job statuses."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class FileStatus(str, Enum):
    """Enumeration of per-file lifecycle statuses."""

    QUEUED = "queued"
    PROCESSING = "processing"
    DOWNLOADING = "downloading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PaymentReport(str, Enum):
    """Payment-report categories offered to the user."""

    KARTA = "KARTA"
    DJAM = "DJAM"


class FailureKind(str, Enum):
    """Why a conversion record ended up failed."""

    VALIDATION = "validation"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    JOB_FAILED = "job_failed"
    DOWNLOAD = "download"
    UNKNOWN = "unknown"

    @property
    def is_conversion_failure(self) -> bool:
        """Failures addressed by converting again rather than downloading again."""
        return self is not FailureKind.DOWNLOAD


class UploadedFile(BaseModel):
    """A PDF collected by the upload surface, with its conversion parameters."""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Local file identifier")
    name: str = Field(..., description="Original file name")
    size: int = Field(..., ge=0, description="File size in bytes")
    content_type: str = Field(default="application/pdf", description="MIME type of the file")
    content: bytes | None = Field(default=None, repr=False, description="Raw file content")
    exchange_rate: float | None = Field(default=None, description="Customs exchange rate")
    payment_report: PaymentReport | None = Field(default=None, description="Payment-report category")

    @field_validator("exchange_rate")
    @classmethod
    def validate_exchange_rate(cls, v: float | None) -> float | None:
        """Validate exchange rate is positive when present."""
        if v is not None and v <= 0:
            raise ValueError("exchange_rate must be positive")
        return v


class ConversionRecord(BaseModel):
    """Immutable per-file conversion tracking entry."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(..., description="Local file identifier")
    status: FileStatus = Field(default=FileStatus.QUEUED, description="Lifecycle status")
    progress: float = Field(default=0.0, ge=0.0, le=100.0, description="Progress estimate (0-100)")
    job_id: str | None = Field(default=None, description="Remote job identifier")
    filename: str | None = Field(default=None, description="Output file name")
    error: str | None = Field(default=None, description="Error message if failed")
    attempts: int = Field(default=0, ge=0, description="Conversion attempts made")
    failure: FailureKind | None = Field(default=None, description="Failure classification")

    def evolve(self, **changes) -> "ConversionRecord":
        """Return a copy of this record with ``changes`` applied."""
        return self.model_copy(update=changes)


class ConversionState(BaseModel):
    """Immutable snapshot of a conversion batch."""

    model_config = ConfigDict(frozen=True)

    is_converting: bool = False
    is_downloading: bool = False
    records: dict[str, ConversionRecord] = Field(default_factory=dict)

    @computed_field  # type: ignore[misc]
    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.records.values() if r.status == FileStatus.SUCCEEDED)

    @computed_field  # type: ignore[misc]
    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records.values() if r.status == FileStatus.FAILED)

    def with_record(self, record: ConversionRecord) -> "ConversionState":
        """Return a new state with ``record`` replacing its previous version."""
        return self.model_copy(update={"records": {**self.records, record.id: record}})

    def with_records(self, records: dict[str, ConversionRecord], merge: bool = False) -> "ConversionState":
        """Return a new state holding ``records``, merged into the current ones if asked."""
        merged = {**self.records, **records} if merge else dict(records)
        return self.model_copy(update={"records": merged})


class SavedArtifact(BaseModel):
    """A downloaded result, either a single XML file or a zip archive."""

    name: str = Field(..., description="File name offered to the user")
    content: bytes = Field(..., repr=False, description="File content")
    media_type: str = Field(default="application/xml", description="MIME type")
