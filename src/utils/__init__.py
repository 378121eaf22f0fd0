"""Utilities package - Flat structure (no nested directories)"""

from .file_utils import content_disposition, derive_output_name, has_suffix
from .signature import PSD_MAGIC, check_signature, read_header

__all__ = [
    "PSD_MAGIC",
    "check_signature",
    "content_disposition",
    "derive_output_name",
    "has_suffix",
    "read_header",
]
