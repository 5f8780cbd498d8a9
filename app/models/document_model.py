from enum import Enum
from typing import List, Optional, Dict
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict, field_serializer

from app.models.field_schema import empty_record


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationFinding(BaseModel):
    """One business-rule result. A finding without a field is cross-field."""
    model_config = ConfigDict(frozen=True)

    field: Optional[str] = None
    message: str
    severity: Severity


class SourceFile(BaseModel):
    """Uploaded document as received at intake."""
    model_config = ConfigDict(frozen=True)

    content: bytes = Field(..., exclude=True, repr=False)
    mime_type: str
    filename: str
    size: int = 0
    page_count: Optional[int] = None


class SelectionContext(BaseModel):
    """Company and policy category chosen by the operator for the batch."""

    company: str = ""
    policy_type: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.company.strip()) and bool(self.policy_type.strip())


class DocumentTask(BaseModel):
    """
    Unit of work tracking one uploaded file through extraction and validation.

    Only DocumentQueue writes to these fields; everybody else receives
    deep copies.
    """

    id: str
    source: SourceFile
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    confidence: float = 0.0
    record: Dict[str, str] = Field(default_factory=empty_record)
    findings: List[ValidationFinding] = Field(default_factory=list)
    error_detail: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def filename(self) -> str:
        return self.source.filename

    @field_serializer('created_at', 'started_at', 'completed_at')
    def serialize_datetime(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None
