"""
Utilities package for the PDF → ASYCUDA XML portal.

This package contains utility modules for common operations.
"""

from .fs import DirectorySaver, ensure_directory, safe_filename
from .naming import output_filename, timestamp_slug
from .validation import ValidationUtils

__all__ = [
    "ensure_directory", "safe_filename", "DirectorySaver",
    "output_filename", "timestamp_slug",
    "ValidationUtils"
]
