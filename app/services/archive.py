"""
Archive builder for bulk downloads.

Packages converted XML files into a single in-memory zip archive.
"""

import io
import zipfile
from collections.abc import Iterable
from datetime import datetime

from loguru import logger

from app.exceptions import ArchiveError
from app.utils.naming import timestamp_slug

COMPRESSION_LEVEL = 6


def build_archive(entries: Iterable[tuple[str, bytes]]) -> bytes:
    """
    Create a zip archive containing the given files.

    Members are written in input order.

    Args:
        entries: ``(name, content)`` pairs

    Returns:
        bytes: The zip archive

    Raises:
        ArchiveError: If there is nothing to archive
    """
    entries = list(entries)
    if not entries:
        raise ArchiveError("No files to archive")

    buffer = io.BytesIO()
    with zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL
    ) as zipf:
        for name, content in entries:
            zipf.writestr(name, content)

    logger.debug(f"Built archive with {len(entries)} member(s)")
    return buffer.getvalue()


def archive_name(now: datetime | None = None) -> str:
    """Name of a bulk download archive, e.g. ``conversions-2026-10-19T08-15-42.zip``."""
    return f"conversions-{timestamp_slug(now)}.zip"
