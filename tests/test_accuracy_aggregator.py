"""Tests for the batch accuracy summary."""

import pytest

from app.models.analytics_model import SummaryStatus
from app.models.document_model import DocumentTask, Severity, TaskStatus, ValidationFinding
from app.services.accuracy_aggregator import summarize


@pytest.fixture
def make_task(make_source):
    def _make(status=TaskStatus.DONE, confidence=98.0, findings=None, task_id="doc_1"):
        return DocumentTask(
            id=task_id,
            source=make_source(),
            status=status,
            confidence=confidence,
            findings=findings or [],
        )
    return _make


def _finding(severity=Severity.ERROR):
    return ValidationFinding(field=None, message="Premium Math Error: 1 + 1 != 5", severity=severity)


class TestSummarize:

    def test_no_done_tasks_gives_no_summary(self, make_task):
        tasks = [make_task(status=TaskStatus.PENDING), make_task(status=TaskStatus.ERROR)]

        assert summarize(tasks) is None
        assert summarize([]) is None

    def test_clean_batch_is_fully_verified(self, make_task):
        summary = summarize([make_task(task_id="a"), make_task(task_id="b")])

        assert summary.documents == 2
        assert summary.average_confidence == 98.0
        assert summary.total_findings == 0
        assert summary.status == SummaryStatus.FULLY_VERIFIED
        assert summary.label == "Verified Successful"
        assert summary.indicator == "success"

    def test_findings_are_counted_across_documents(self, make_task):
        tasks = [
            make_task(task_id="a", findings=[_finding(), _finding(Severity.WARNING)]),
            make_task(task_id="b", findings=[_finding()]),
            make_task(task_id="c"),
        ]

        summary = summarize(tasks)

        assert summary.total_findings == 3
        assert summary.error_count == 2
        assert summary.warning_count == 1
        assert summary.status == SummaryStatus.ISSUES_FOUND
        assert summary.label == "3 Issues Found"
        assert summary.indicator == "danger"

    def test_failed_and_pending_tasks_are_ignored(self, make_task):
        tasks = [
            make_task(task_id="a", confidence=90.0),
            make_task(task_id="b", status=TaskStatus.ERROR, confidence=0.0),
            make_task(task_id="c", status=TaskStatus.PROCESSING, confidence=0.0),
        ]

        summary = summarize(tasks)

        assert summary.documents == 1
        assert summary.average_confidence == 90.0

    def test_average_is_rounded_to_one_decimal(self, make_task):
        tasks = [make_task(task_id="a", confidence=98.0), make_task(task_id="b", confidence=97.25)]

        assert summarize(tasks).average_confidence == 97.6

    def test_low_confidence_without_findings_is_caution(self, make_task):
        summary = summarize([make_task(confidence=80.0)])

        assert summary.status == SummaryStatus.ISSUES_FOUND
        assert summary.label == "0 Issues Found"
        assert summary.indicator == "caution"

    def test_threshold_boundary_is_inclusive(self, make_task):
        summary = summarize([make_task(confidence=95.0)], verified_threshold=95.0)

        assert summary.status == SummaryStatus.FULLY_VERIFIED

    def test_average_ties_round_half_up(self, make_task):
        tasks = [make_task(task_id="a", confidence=96.0), make_task(task_id="b", confidence=96.5)]

        assert summarize(tasks).average_confidence == 96.3
