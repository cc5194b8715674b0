"""
Upload surface for the PDF → ASYCUDA XML portal.

Collects candidate PDFs, enforces the count, size and type limits, holds
the per-file conversion parameters the user enters, and renders the
per-file rows shown next to each file from the orchestrator state.
"""

from collections.abc import Iterable

from loguru import logger

from app.config import settings
from app.exceptions import UploadValidationError
from app.models.conversion import (
    ConversionState,
    FailureKind,
    FileStatus,
    PaymentReport,
    UploadedFile,
)
from app.models.response import FileRow
from app.utils.naming import output_filename
from app.utils.validation import ValidationUtils

Candidate = tuple[str, bytes, str | None]


class UploadSurface:
    """The set of files a user is preparing for conversion."""

    def __init__(
        self,
        max_files: int | None = None,
        max_size: int | None = None,
        allowed_extensions: list[str] | None = None,
        allowed_content_types: list[str] | None = None,
    ):
        self.max_files = max_files or settings.MAX_FILES
        self.max_size = max_size or settings.MAX_FILE_SIZE
        self.allowed_extensions = allowed_extensions or settings.ALLOWED_EXTENSIONS
        self.allowed_content_types = allowed_content_types or settings.ALLOWED_CONTENT_TYPES
        self._entries: dict[str, UploadedFile] = {}

    @property
    def entries(self) -> list[UploadedFile]:
        """Files in the order they were added."""
        return list(self._entries.values())

    def get(self, file_id: str) -> UploadedFile | None:
        return self._entries.get(file_id)

    def add_files(self, candidates: Iterable[Candidate]) -> tuple[list[UploadedFile], list[str]]:
        """
        Add candidate files, skipping those that break a limit.

        Args:
            candidates: ``(name, content, content_type)`` tuples

        Returns:
            The added entries and one error message per rejected file
        """
        added: list[UploadedFile] = []
        errors: list[str] = []
        for name, content, content_type in candidates:
            if len(self._entries) >= self.max_files:
                errors.append(f"{name}: maximum reached ({self.max_files} files)")
                continue
            try:
                ValidationUtils.validate_pdf(
                    name, content_type, self.allowed_extensions, self.allowed_content_types
                )
                ValidationUtils.validate_file_size(len(content), self.max_size)
            except UploadValidationError as exc:
                errors.append(f"{name}: {exc.message}")
                continue

            entry = UploadedFile(
                name=name,
                size=len(content),
                content_type=content_type or "application/pdf",
                content=content,
            )
            self._entries[entry.id] = entry
            added.append(entry)

        if errors:
            logger.info(f"Upload rejected {len(errors)} file(s): {'; '.join(errors)}")
        return added, errors

    def _require(self, file_id: str) -> UploadedFile:
        entry = self._entries.get(file_id)
        if entry is None:
            raise UploadValidationError(f"Unknown file: {file_id}", "file")
        return entry

    def set_exchange_rate(self, file_id: str, value: str | float | None) -> UploadedFile:
        """Set the exchange rate of a file."""
        entry = self._require(file_id)
        entry.exchange_rate = ValidationUtils.parse_exchange_rate(value)
        return entry

    def set_payment_report(self, file_id: str, value: str | PaymentReport | None) -> UploadedFile:
        """Set the payment-report category of a file."""
        entry = self._require(file_id)
        entry.payment_report = ValidationUtils.parse_payment_report(value)
        return entry

    def remove(self, file_id: str) -> UploadedFile | None:
        return self._entries.pop(file_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def rows(self, state: ConversionState | None = None) -> list[FileRow]:
        """Per-file display rows, with status taken from ``state``."""
        records = state.records if state is not None else {}
        rows = []
        for entry in self._entries.values():
            row = FileRow(
                id=entry.id,
                name=entry.name,
                size=entry.size,
                exchange_rate=entry.exchange_rate,
                payment_report=entry.payment_report,
                output_name=output_filename(entry.name),
            )
            record = records.get(entry.id)
            if record is not None:
                download_failed = record.failure is FailureKind.DOWNLOAD
                row = row.model_copy(
                    update={
                        "status": record.status,
                        "progress": record.progress,
                        "attempts": record.attempts,
                        "output_name": record.filename or row.output_name,
                        "error": record.error,
                        "can_download": record.status == FileStatus.SUCCEEDED,
                        "can_retry": record.status == FileStatus.FAILED and not download_failed,
                        "can_retry_download": record.status == FileStatus.FAILED and download_failed,
                    }
                )
            rows.append(row)
        return rows
