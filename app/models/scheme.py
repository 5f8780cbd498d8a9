"""
Request and response models for the extraction API.
"""

from typing import Optional, List, Dict
from pydantic import BaseModel, Field
from datetime import datetime

from app.models.analytics_model import BatchSummary
from app.models.document_model import DocumentTask, SelectionContext
from app.models.field_schema import FIELD_ORDER


class SelectionRequest(BaseModel):
    """Company and policy category that steer extraction for the batch."""

    company: str = Field(..., min_length=1, description="Insurance company name")
    policy_type: str = Field(..., min_length=1, description="Policy category name")


class TaskResponse(BaseModel):
    """Document task as shown in the processing grid."""

    id: str
    filename: str
    mime_type: str
    size: int
    page_count: Optional[int] = None
    status: str
    progress: int
    confidence: float
    record: Dict[str, str]
    findings: List[Dict[str, Optional[str]]] = Field(default_factory=list)
    error_detail: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_task(cls, task: DocumentTask) -> "TaskResponse":
        return cls(
            id=task.id,
            filename=task.source.filename,
            mime_type=task.source.mime_type,
            size=task.source.size,
            page_count=task.source.page_count,
            status=task.status.value,
            progress=task.progress,
            confidence=task.confidence,
            record=task.record,
            findings=[finding.model_dump(mode="json") for finding in task.findings],
            error_detail=task.error_detail,
            created_at=task.created_at,
            started_at=task.started_at,
            completed_at=task.completed_at,
        )


class BatchResponse(BaseModel):
    """Current batch: tasks in intake order plus derived summary."""

    fields: List[str] = Field(default_factory=lambda: list(FIELD_ORDER))
    selection: SelectionContext
    is_processing: bool
    counts: Dict[str, int]
    summary: Optional[BatchSummary] = None
    tasks: List[TaskResponse]


class WipeResponse(BaseModel):
    status: str = "wiped"
    discarded_tasks: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    timestamp: str = Field(default_factory=lambda: datetime.utcnow().isoformat())
    version: str = Field(..., description="API version")
    ai_model: Optional[str] = Field(None, description="Extraction model")
    ai_service: Optional[str] = Field(None, description="AI service status")
    batch_size: int = 0
