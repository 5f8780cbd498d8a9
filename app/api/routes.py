"""
API ROUTES - Policy Extraction
==============================
Workflow:
1. Load masters and select a policy category and insurer
2. Upload one or more documents (each becomes a pending task)
3. Process the batch (sequential extraction + validation)
4. Review tasks, findings and the accuracy summary
5. Export completed records as CSV, then wipe the batch
"""

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Set

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response

from app.core.config import settings
from app.models.analytics_model import BatchSummary
from app.models.scheme import (
    BatchResponse,
    HealthResponse,
    SelectionRequest,
    TaskResponse,
    WipeResponse,
)
from app.models.document_model import SelectionContext
from app.services.accuracy_aggregator import summarize
from app.services.document_queue import DocumentQueue, document_queue
from app.services.exporter import export_csv
from app.services.master_data_service import (
    InsuranceCompany,
    MasterDataService,
    PolicyType,
    master_data_service,
)
from app.utils.file_utils import read_multiple_files
from app.utils.helpers import content_disposition

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Policy Extraction"])

# Keeps background processing runs referenced until they finish
_background_runs: Set[asyncio.Task] = set()


def get_document_queue() -> DocumentQueue:
    return document_queue


def get_master_data_service() -> MasterDataService:
    return master_data_service


def _batch_view(queue: DocumentQueue) -> BatchResponse:
    tasks = queue.tasks()
    return BatchResponse(
        selection=queue.selection,
        is_processing=queue.is_processing,
        counts=queue.counts(),
        summary=summarize(tasks),
        tasks=[TaskResponse.from_task(task) for task in tasks],
    )


# ============================================================================
# MASTER DATA
# ============================================================================


@router.get("/masters/companies", response_model=List[InsuranceCompany])
def list_insurance_companies(service: MasterDataService = Depends(get_master_data_service)):
    """Selectable insurance companies from the master-data backend."""
    return service.get_companies()


@router.get("/masters/policy-types", response_model=List[PolicyType])
def list_policy_types(service: MasterDataService = Depends(get_master_data_service)):
    """Selectable policy categories from the master-data backend."""
    return service.get_policy_types()


# ============================================================================
# BATCH
# ============================================================================


@router.put("/batch/selection", response_model=SelectionContext)
async def set_selection(
    request: SelectionRequest,
    queue: DocumentQueue = Depends(get_document_queue),
):
    if queue.is_processing:
        raise HTTPException(status_code=409, detail="Selection cannot change while the batch is processing")
    return queue.select(request.company, request.policy_type)


@router.post("/batch/files", response_model=List[TaskResponse], status_code=201)
async def upload_documents(
    files: List[UploadFile] = File(...),
    queue: DocumentQueue = Depends(get_document_queue),
):
    """
    Add documents to the batch as pending tasks.

    A policy category and insurer must be selected first.
    """
    if not queue.selection.is_complete:
        raise HTTPException(
            status_code=400,
            detail="Select a policy type and an insurance company before uploading documents",
        )

    sources = await read_multiple_files(files)
    created = queue.intake(sources)
    logger.info(f"📥 Upload accepted: {len(created)} document(s), batch size {len(queue)}")
    return [TaskResponse.from_task(task) for task in created]


@router.post("/batch/process", response_model=BatchResponse)
async def process_batch(
    background: bool = Query(False, description="Return immediately and process in the background"),
    queue: DocumentQueue = Depends(get_document_queue),
):
    """
    Extract and validate every pending document, one at a time.

    Calling again only picks up documents that are still pending.
    """
    if not queue.has_pending:
        return _batch_view(queue)

    if background:
        run = asyncio.create_task(queue.process())
        _background_runs.add(run)
        run.add_done_callback(_background_runs.discard)
        return JSONResponse(status_code=202, content=_batch_view(queue).model_dump(mode="json"))

    await queue.process()
    return _batch_view(queue)


@router.get("/batch", response_model=BatchResponse)
async def get_batch(queue: DocumentQueue = Depends(get_document_queue)):
    return _batch_view(queue)


@router.get("/batch/summary", response_model=Optional[BatchSummary])
async def get_batch_summary(queue: DocumentQueue = Depends(get_document_queue)):
    """Accuracy summary over completed documents; null while none is done."""
    return summarize(queue.done_tasks())


@router.get("/batch/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, queue: DocumentQueue = Depends(get_document_queue)):
    return TaskResponse.from_task(queue.get(task_id))


@router.delete("/batch/tasks/{task_id}", status_code=204)
async def remove_task(task_id: str, queue: DocumentQueue = Depends(get_document_queue)):
    """Drop one document, e.g. a failed one before uploading it again."""
    queue.remove(task_id)
    return Response(status_code=204)


@router.get("/batch/export")
async def export_batch(
    wipe: bool = Query(False, description="Securely wipe the batch after exporting"),
    queue: DocumentQueue = Depends(get_document_queue),
):
    """Download completed records as CSV in schema column order."""
    selection = queue.selection
    artifact = export_csv(queue.done_tasks(), selection.company, selection.policy_type)
    if artifact is None:
        raise HTTPException(status_code=409, detail="No completed documents to export")

    if wipe:
        if queue.is_processing:
            raise HTTPException(status_code=409, detail="Batch is still processing; export without wipe")
        queue.clear()

    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={
            "Content-Disposition": content_disposition(artifact.filename),
            "X-Exported-Rows": str(artifact.row_count),
        },
    )


@router.delete("/batch", response_model=WipeResponse)
async def wipe_batch(queue: DocumentQueue = Depends(get_document_queue)):
    """Secure wipe: discard every document, result and the selection."""
    return WipeResponse(discarded_tasks=queue.clear())


# ============================================================================
# HEALTH
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(queue: DocumentQueue = Depends(get_document_queue)):
    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        ai_model=settings.AI_MODEL,
        ai_service="configured" if settings.OPENAI_API_KEY else "missing api key",
        batch_size=len(queue),
        timestamp=datetime.now().isoformat(),
    )
