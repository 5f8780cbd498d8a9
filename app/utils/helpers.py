"""
Helper Utilities
================
Common utility functions used across the application.
"""

import re
from pathlib import Path
from urllib.parse import quote


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename to remove potentially dangerous characters.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename safe for filesystem use
    """
    # Remove path components
    filename = Path(filename.replace('\\', '/')).name

    # Remove or replace dangerous characters
    filename = re.sub(r'[^\w\s\-\.]', '', filename)
    filename = re.sub(r'\s+', '_', filename.strip())

    # Limit length
    if len(filename) > 200:
        name, ext = filename.rsplit('.', 1) if '.' in filename else (filename, '')
        filename = f"{name[:190]}.{ext}" if ext else name[:200]

    return filename or "document"


def filename_component(text: str) -> str:
    """
    Make free text (a company or category name) safe to embed in a filename.

    Separators become underscores instead of being treated as path parts.
    """
    text = re.sub(r'[\\/]+', '_', text or '')
    text = re.sub(r'[^\w\s\-\.]', '', text)
    return re.sub(r'\s+', '_', text.strip())


def content_disposition(filename: str) -> str:
    """
    Attachment header value that survives non-Latin-1 names.

    HTTP headers are Latin-1, so the plain filename parameter carries an
    ASCII fallback and filename* carries the full UTF-8 name (RFC 5987).
    """
    fallback = filename.encode("ascii", "ignore").decode("ascii")
    fallback = re.sub(r"_{2,}", "_", fallback) or "export.csv"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def truncate_text(text: str, max_length: int = 500) -> str:
    """
    Truncate text to a maximum length with ellipsis.

    Args:
        text: Input text
        max_length: Maximum length

    Returns:
        Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    return text[:max_length - 3] + "..."
