"""
Shared validation utilities for the PDF → ASYCUDA XML portal.

This module provides the validation rules shared by the upload surface,
the orchestrator and the proxy endpoints, so that the three layers
reject the same inputs with the same messages.
"""

from pathlib import PurePath

from app.exceptions import UploadValidationError
from app.models.conversion import PaymentReport, UploadedFile


class ValidationUtils:
    """Shared validation utilities for common validation patterns."""

    @staticmethod
    def validate_file_size(size: int, max_size: int) -> int:
        """
        Validate file size with common logic.

        Args:
            size: File size in bytes
            max_size: Maximum allowed file size in bytes

        Returns:
            Validated file size

        Raises:
            UploadValidationError: If file size is invalid
        """
        if size <= 0:
            raise UploadValidationError("File is empty", "file")
        if size > max_size:
            raise UploadValidationError(
                f"File exceeds the maximum size of {format_bytes(max_size)}", "file"
            )
        return size

    @staticmethod
    def validate_pdf(
        filename: str,
        content_type: str | None,
        allowed_extensions: list[str],
        allowed_content_types: list[str],
    ) -> None:
        """
        Validate that a file is a PDF by extension or MIME type.

        Raises:
            UploadValidationError: If neither matches
        """
        suffix = PurePath(filename).suffix.lower()
        if suffix in allowed_extensions:
            return
        if content_type and content_type.split(";")[0].strip().lower() in allowed_content_types:
            return
        raise UploadValidationError(
            f"File type not supported. Allowed: {', '.join(allowed_extensions)}", "file"
        )

    @staticmethod
    def parse_exchange_rate(value: str | float | None) -> float:
        """
        Parse and validate an exchange rate.

        Accepts a comma as decimal separator.

        Raises:
            UploadValidationError: If the rate is missing, not a number or not positive
        """
        if value is None or (isinstance(value, str) and not value.strip()):
            raise UploadValidationError("Missing or invalid exchange rate", "exchange_rate")
        try:
            rate = float(value.replace(",", ".")) if isinstance(value, str) else float(value)
        except ValueError:
            raise UploadValidationError(
                "Missing or invalid exchange rate", "exchange_rate"
            ) from None
        if not rate > 0 or rate == float("inf"):
            raise UploadValidationError("Missing or invalid exchange rate", "exchange_rate")
        return rate

    @staticmethod
    def parse_payment_report(value: str | PaymentReport | None) -> PaymentReport:
        """
        Parse and validate a payment-report label.

        Raises:
            UploadValidationError: If the label is missing or unknown
        """
        if isinstance(value, PaymentReport):
            return value
        allowed = ", ".join(label.value for label in PaymentReport)
        if not value:
            raise UploadValidationError(
                f"Missing payment report ({allowed} required)", "payment_report"
            )
        try:
            return PaymentReport(value.strip().upper())
        except ValueError:
            raise UploadValidationError(
                f"Invalid payment report ({allowed} required)", "payment_report"
            ) from None

    @staticmethod
    def validate_entry(entry: UploadedFile) -> None:
        """
        Validate that an uploaded entry is ready for conversion.

        Raises:
            UploadValidationError: On the first missing or invalid parameter
        """
        if not entry.content:
            raise UploadValidationError("Missing file", "file")
        ValidationUtils.parse_exchange_rate(entry.exchange_rate)
        ValidationUtils.parse_payment_report(entry.payment_report)


def format_bytes(size: int) -> str:
    """Format a byte count for humans (``52428800`` → ``"50MB"``)."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:g}{unit}" if value == int(value) else f"{value:.1f}{unit}"
        value /= 1024
    return f"{size}B"
