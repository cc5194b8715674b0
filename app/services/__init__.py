"""
Services package for the PDF → ASYCUDA XML portal.

This package contains the conversion service clients, the per-file
orchestrator and the supporting upload, archive and auth services.
"""

from .archive import archive_name, build_archive
from .auth import SupabaseAuthProvider, get_current_user
from .batches import BatchRegistry, BatchSession
from .orchestrator import CancellationToken, ConversionClient, ConversionOrchestrator
from .remote_client import BaseConversionClient, ProxyClient, VendorClient
from .upload import UploadSurface

__all__ = [
    # Conversion service clients
    "BaseConversionClient",
    "VendorClient",
    "ProxyClient",
    # Orchestration
    "ConversionClient",
    "ConversionOrchestrator",
    "CancellationToken",
    "BatchRegistry",
    "BatchSession",
    # Upload and archive
    "UploadSurface",
    "build_archive",
    "archive_name",
    # Authentication
    "SupabaseAuthProvider",
    "get_current_user",
]
