"""
Accuracy Aggregator
===================
Batch-level confidence and findings summary over completed documents.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from app.core.config import settings
from app.models.analytics_model import BatchSummary, SummaryStatus
from app.models.document_model import DocumentTask, Severity, TaskStatus

logger = logging.getLogger(__name__)


def _round_one_decimal(value: float) -> float:
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def summarize(
    tasks: Iterable[DocumentTask],
    verified_threshold: Optional[float] = None,
) -> Optional[BatchSummary]:
    """
    Summarize the done tasks of a batch.

    Args:
        tasks: Task snapshots; anything not done is ignored
        verified_threshold: Minimum mean confidence for a clean batch to be
            reported as fully verified (defaults to settings)

    Returns:
        BatchSummary, or None when no task is done
    """
    threshold = settings.VERIFIED_CONFIDENCE_THRESHOLD if verified_threshold is None else verified_threshold
    done = [task for task in tasks if task.status == TaskStatus.DONE]
    if not done:
        return None

    average = sum(task.confidence for task in done) / len(done)
    findings = [finding for task in done for finding in task.findings]
    errors = sum(1 for finding in findings if finding.severity == Severity.ERROR)
    total = len(findings)

    if total == 0 and average >= threshold:
        status = SummaryStatus.FULLY_VERIFIED
        label = "Verified Successful"
        indicator = "success"
    else:
        status = SummaryStatus.ISSUES_FOUND
        label = f"{total} Issues Found"
        indicator = "danger" if total > 0 else "caution"

    summary = BatchSummary(
        documents=len(done),
        average_confidence=_round_one_decimal(average),
        total_findings=total,
        error_count=errors,
        warning_count=total - errors,
        status=status,
        label=label,
        indicator=indicator,
    )
    logger.debug(
        f"📊 Summary over {summary.documents} document(s): "
        f"{summary.average_confidence}% confidence, {summary.label}"
    )
    return summary
