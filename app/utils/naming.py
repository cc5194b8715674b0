"""
File naming helpers for conversion outputs.
"""

import re
from datetime import datetime, timezone

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)


def output_filename(input_name: str | None, extension: str = ".xml") -> str:
    """
    Compute the output file name for a converted PDF.

    The ``.pdf`` extension (any case) is replaced by ``extension``; names
    without it get ``extension`` appended.

    Args:
        input_name: Name of the uploaded file
        extension: Target extension, with its dot

    Returns:
        str: Output file name
    """
    if not input_name:
        return f"output{extension}"
    if _PDF_SUFFIX.search(input_name):
        return _PDF_SUFFIX.sub(extension, input_name)
    return f"{input_name}{extension}"


def timestamp_slug(now: datetime | None = None) -> str:
    """
    ISO-8601 UTC timestamp usable in file names, without milliseconds.

    ``2026-10-19T08:15:42.123Z`` becomes ``2026-10-19T08-15-42``.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S")
