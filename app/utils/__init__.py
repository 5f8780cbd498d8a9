"""
Utilities Package
=================
Helper utilities and common functions.
"""

from .helpers import sanitize_filename, filename_component, content_disposition, truncate_text

__all__ = [
    "sanitize_filename",
    "filename_component",
    "content_disposition",
    "truncate_text"
]
