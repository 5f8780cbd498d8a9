"""
Batch accuracy summary model.
"""

from enum import Enum
from pydantic import BaseModel, Field


class SummaryStatus(str, Enum):
    FULLY_VERIFIED = "fully_verified"
    ISSUES_FOUND = "issues_found"


class BatchSummary(BaseModel):
    """Derived from the done tasks of a batch; recomputed, never stored."""

    documents: int = Field(..., description="Number of completed documents")
    average_confidence: float = Field(..., description="Mean confidence, one decimal place")
    total_findings: int = Field(..., description="Findings across all completed documents")
    error_count: int = 0
    warning_count: int = 0
    status: SummaryStatus
    label: str = Field(..., description="Operator-facing status text")
    indicator: str = Field(..., description="success, caution or danger")
