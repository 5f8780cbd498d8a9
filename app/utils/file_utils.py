"""
File handling utilities for policy document uploads.
"""

from typing import List
from fastapi import UploadFile, HTTPException

from app.core.config import settings
from app.models.document_model import SourceFile
from app.services.document_inspector import document_inspector


async def read_uploaded_file(file: UploadFile) -> SourceFile:
    """
    Read an uploaded document into memory and inspect it.

    Nothing is written to disk: documents may hold personal and financial
    data and live only as long as the batch.

    Raises:
        DocumentRejectedError: If the file fails inspection
    """
    await file.seek(0)
    content = await file.read(settings.MAX_FILE_SIZE + 1)
    return document_inspector.inspect(content, file.filename or "document", file.content_type)


async def read_multiple_files(files: List[UploadFile]) -> List[SourceFile]:
    """
    Read and inspect every upload; the whole upload is rejected if one file fails.

    Args:
        files: List of FastAPI UploadFile objects

    Returns:
        SourceFiles in upload order
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    sources = []
    for file in files:
        try:
            sources.append(await read_uploaded_file(file))
        finally:
            await file.close()
    return sources
