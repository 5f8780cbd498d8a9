"""
Policy Extraction Service
=========================
Turns uploaded insurance policy documents into validated, exportable
records of 29 fields.
"""

from .models.scheme import (
    BatchResponse,
    TaskResponse,
    ErrorResponse,
    HealthResponse
)

__all__ = [
    "BatchResponse",
    "TaskResponse",
    "ErrorResponse",
    "HealthResponse"
]
