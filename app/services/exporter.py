"""
Exporter
========
Serializes completed records to CSV in field-schema column order.

Formatting only: the artifact is returned in memory and the caller decides
where it goes.
"""

import csv
import io
import logging
from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel

from app.models.document_model import DocumentTask, TaskStatus
from app.models.field_schema import FIELD_ORDER, ordered_values
from app.utils.helpers import filename_component

logger = logging.getLogger(__name__)

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


class ExportArtifact(BaseModel):
    filename: str
    content: bytes
    media_type: str = CSV_MEDIA_TYPE
    row_count: int
    exported_at: datetime


def build_export_filename(company: str, policy_type: str, exported_at: datetime) -> str:
    timestamp_ms = int(exported_at.timestamp() * 1000)
    return f"Extraction_{filename_component(company)}_{filename_component(policy_type)}_{timestamp_ms}.csv"


def render_csv(tasks: Iterable[DocumentTask]) -> str:
    """Header of literal field names, then one fully quoted row per task."""
    buffer = io.StringIO()
    buffer.write(",".join(FIELD_ORDER))
    buffer.write("\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for task in tasks:
        writer.writerow(ordered_values(task.record))
    return buffer.getvalue()


def export_csv(
    tasks: Iterable[DocumentTask],
    company: str,
    policy_type: str,
    exported_at: Optional[datetime] = None,
) -> Optional[ExportArtifact]:
    """
    Export the done subset of a batch.

    Args:
        tasks: Task snapshots in batch order; tasks that are not done are skipped
        company: Selected insurance company, embedded in the filename
        policy_type: Selected policy category, embedded in the filename
        exported_at: Export timestamp; pass a fixed value for reproducible output

    Returns:
        ExportArtifact, or None when there is nothing to export
    """
    done = [task for task in tasks if task.status == TaskStatus.DONE]
    if not done:
        logger.info("Nothing to export: no completed documents")
        return None

    exported_at = exported_at or datetime.now()
    artifact = ExportArtifact(
        filename=build_export_filename(company, policy_type, exported_at),
        content=render_csv(done).encode("utf-8"),
        row_count=len(done),
        exported_at=exported_at,
    )
    logger.info(f"📤 Exported {artifact.row_count} record(s) to {artifact.filename}")
    return artifact
