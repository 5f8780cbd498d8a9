"""Tests for the document queue state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import ExtractionError, InvalidTransitionError, TaskNotFoundError
from app.models.document_model import Severity, TaskStatus
from app.models.field_schema import FIELD_ORDER
from app.services.document_queue import DocumentQueue


class TestIntake:

    def test_intake_creates_pending_tasks_in_order(self, queue, make_source):
        created = queue.intake([make_source("a.pdf"), make_source("b.pdf")])

        assert [t.filename for t in created] == ["a.pdf", "b.pdf"]
        for task in created:
            assert task.status == TaskStatus.PENDING
            assert task.progress == 0
            assert task.findings == []
            assert task.error_detail is None
            assert list(task.record.keys()) == list(FIELD_ORDER)
            assert all(value == "" for value in task.record.values())

    def test_intake_appends_without_reordering(self, queue, make_source):
        first = queue.intake([make_source("a.pdf")])
        second = queue.intake([make_source("b.pdf"), make_source("c.pdf")])

        ids = [t.id for t in queue.tasks()]
        assert ids == [first[0].id, second[0].id, second[1].id]
        assert len(set(ids)) == 3

    def test_snapshots_are_detached(self, queue, make_source):
        (task,) = queue.intake([make_source()])
        snapshot = queue.get(task.id)

        snapshot.record["Policy No"] = "tampered"
        snapshot.status = TaskStatus.DONE

        fresh = queue.get(task.id)
        assert fresh.record["Policy No"] == ""
        assert fresh.status == TaskStatus.PENDING

    def test_unknown_id_raises(self, queue):
        with pytest.raises(TaskNotFoundError):
            queue.get("doc_missing")


class TestProcessing:

    @pytest.mark.asyncio
    async def test_successful_extraction_reaches_done(self, queue, make_source, sample_record):
        queue.select("ACME General", "Motor")
        (task,) = queue.intake([make_source("policy.pdf")])

        finished = await queue.process()

        done = queue.get(task.id)
        assert [t.id for t in finished] == [task.id]
        assert done.status == TaskStatus.DONE
        assert done.progress == 100
        assert done.confidence == 98.0
        assert done.record == sample_record
        assert done.findings == []
        assert done.started_at is not None and done.completed_at is not None

    @pytest.mark.asyncio
    async def test_selection_is_passed_as_context(self, queue, make_source, mock_extraction_client):
        queue.select("ACME General", "Motor")
        queue.intake([make_source("policy.pdf", mime_type="image/png", content=b"png-bytes")])

        await queue.process()

        args, kwargs = mock_extraction_client.extract.call_args
        assert args == (b"png-bytes", "image/png")
        assert kwargs["company"] == "ACME General"
        assert kwargs["policy_type"] == "Motor"
        assert kwargs["filename"] == "policy.pdf"

    @pytest.mark.asyncio
    async def test_findings_are_attached(self, queue, make_source, mock_extraction_client, sample_record):
        sample_record["Policy No"] = ""
        mock_extraction_client.extract = AsyncMock(return_value=sample_record)
        (task,) = queue.intake([make_source()])

        await queue.process()

        done = queue.get(task.id)
        assert done.status == TaskStatus.DONE
        assert [(f.field, f.severity) for f in done.findings] == [("Policy No", Severity.ERROR)]

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_its_task(self, queue, make_source, mock_extraction_client, sample_record):
        mock_extraction_client.extract = AsyncMock(side_effect=[
            dict(sample_record),
            ExtractionError("Model response is not valid JSON"),
            dict(sample_record),
        ])
        tasks = queue.intake([make_source("a.pdf"), make_source("b.pdf"), make_source("c.pdf")])

        finished = await queue.process()

        assert [t.id for t in finished] == [t.id for t in tasks]
        statuses = [queue.get(t.id).status for t in tasks]
        assert statuses == [TaskStatus.DONE, TaskStatus.ERROR, TaskStatus.DONE]

        failed = queue.get(tasks[1].id)
        assert failed.error_detail == "Model response is not valid JSON"
        assert failed.progress == 0
        assert all(value == "" for value in failed.record.values())
        assert failed.findings == []

    @pytest.mark.asyncio
    async def test_unexpected_exception_marks_error(self, queue, make_source, mock_extraction_client):
        mock_extraction_client.extract = AsyncMock(side_effect=RuntimeError("boom"))
        (task,) = queue.intake([make_source()])

        await queue.process()

        failed = queue.get(task.id)
        assert failed.status == TaskStatus.ERROR
        assert failed.error_detail == "boom"

    @pytest.mark.asyncio
    async def test_incomplete_record_is_rejected(self, queue, make_source, mock_extraction_client):
        mock_extraction_client.extract = AsyncMock(return_value={"Proposer Name": "Ravi"})
        (task,) = queue.intake([make_source()])

        await queue.process()

        failed = queue.get(task.id)
        assert failed.status == TaskStatus.ERROR
        assert "incomplete" in failed.error_detail

    @pytest.mark.asyncio
    async def test_process_is_idempotent(self, queue, make_source, mock_extraction_client):
        queue.intake([make_source("a.pdf")])
        await queue.process()

        assert await queue.process() == []
        assert mock_extraction_client.extract.await_count == 1

        queue.intake([make_source("b.pdf")])
        finished = await queue.process()

        assert [t.filename for t in finished] == ["b.pdf"]
        assert mock_extraction_client.extract.await_count == 2

    @pytest.mark.asyncio
    async def test_tasks_finish_in_intake_order(self, queue, make_source, mock_extraction_client, sample_record):
        seen = []

        async def extract(content, mime_type, company, policy_type, filename):
            seen.append(filename)
            return dict(sample_record)

        mock_extraction_client.extract = AsyncMock(side_effect=extract)
        queue.intake([make_source(name) for name in ("c.pdf", "a.pdf", "b.pdf")])

        finished = await queue.process()

        assert seen == ["c.pdf", "a.pdf", "b.pdf"]
        assert [t.filename for t in finished] == seen

    @pytest.mark.asyncio
    async def test_progress_while_processing(self, queue, make_source, mock_extraction_client, sample_record):
        observed = {}
        (task,) = queue.intake([make_source()])

        async def extract(*args, **kwargs):
            snapshot = queue.get(task.id)
            observed["status"] = snapshot.status
            observed["progress"] = snapshot.progress
            observed["is_processing"] = queue.is_processing
            return dict(sample_record)

        mock_extraction_client.extract = AsyncMock(side_effect=extract)

        await queue.process()

        assert observed == {"status": TaskStatus.PROCESSING, "progress": 30, "is_processing": True}
        assert queue.is_processing is False

    @pytest.mark.asyncio
    async def test_concurrent_calls_never_double_process(self, queue, make_source, mock_extraction_client, sample_record):
        async def slow_extract(*args, **kwargs):
            await asyncio.sleep(0.01)
            return dict(sample_record)

        mock_extraction_client.extract = AsyncMock(side_effect=slow_extract)
        queue.intake([make_source("a.pdf"), make_source("b.pdf")])

        first, second = await asyncio.gather(queue.process(), queue.process())

        assert len(first) + len(second) == 2
        assert mock_extraction_client.extract.await_count == 2

    def test_baseline_confidence_from_settings(self, mock_extraction_client):
        queue = DocumentQueue(extraction_client=mock_extraction_client)

        assert queue.baseline_confidence == 98.0


class TestTransitions:

    def test_terminal_tasks_cannot_move(self, queue, make_source, sample_record):
        (task,) = queue.intake([make_source()])

        with pytest.raises(InvalidTransitionError):
            queue.mark_done(task.id, sample_record)

    @pytest.mark.asyncio
    async def test_done_task_cannot_fail(self, queue, make_source):
        (task,) = queue.intake([make_source()])
        await queue.process()

        with pytest.raises(InvalidTransitionError):
            queue.mark_error(task.id, "late failure")
        assert queue.get(task.id).status == TaskStatus.DONE

    @pytest.mark.asyncio
    async def test_mark_done_rejects_incomplete_record(self, queue, make_source, mock_extraction_client, sample_record):
        (task,) = queue.intake([make_source()])
        observed = {}

        async def extract(*args, **kwargs):
            with pytest.raises(ExtractionError, match="incomplete"):
                queue.mark_done(task.id, {"Proposer Name": "Ravi"})
            snapshot = queue.get(task.id)
            observed["status"] = snapshot.status
            observed["record"] = snapshot.record
            return dict(sample_record)

        mock_extraction_client.extract = AsyncMock(side_effect=extract)

        await queue.process()

        assert observed["status"] == TaskStatus.PROCESSING
        assert all(value == "" for value in observed["record"].values())
        assert queue.get(task.id).status == TaskStatus.DONE

    @pytest.mark.asyncio
    async def test_cancelled_extraction_ends_in_error(self, queue, make_source, mock_extraction_client, sample_record):
        started = asyncio.Event()

        async def hanging_extract(*args, **kwargs):
            started.set()
            await asyncio.Event().wait()

        mock_extraction_client.extract = AsyncMock(side_effect=hanging_extract)
        (task,) = queue.intake([make_source("a.pdf")])

        run = asyncio.create_task(queue.process())
        await started.wait()
        run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run

        cancelled = queue.get(task.id)
        assert cancelled.status == TaskStatus.ERROR
        assert cancelled.error_detail == "Extraction cancelled"
        assert cancelled.progress == 0
        assert queue.is_processing is False

        queue.remove(task.id)
        mock_extraction_client.extract = AsyncMock(return_value=dict(sample_record))
        (retry,) = queue.intake([make_source("a.pdf")])
        finished = await queue.process()
        assert [t.id for t in finished] == [retry.id]

    @pytest.mark.asyncio
    async def test_remove_failed_task_for_reintake(self, queue, make_source, mock_extraction_client, sample_record):
        mock_extraction_client.extract = AsyncMock(side_effect=[ExtractionError("timeout"), dict(sample_record)])
        (failed,) = queue.intake([make_source("a.pdf")])
        await queue.process()

        queue.remove(failed.id)
        (retry,) = queue.intake([make_source("a.pdf")])
        await queue.process()

        assert retry.id != failed.id
        assert queue.get(retry.id).status == TaskStatus.DONE
        with pytest.raises(TaskNotFoundError):
            queue.get(failed.id)


class TestClear:

    @pytest.mark.asyncio
    async def test_clear_discards_tasks_and_selection(self, queue, make_source):
        queue.select("ACME General", "Motor")
        tasks = queue.intake([make_source("a.pdf"), make_source("b.pdf")])
        await queue.process()

        assert queue.clear() == 2

        assert queue.tasks() == []
        assert len(queue) == 0
        assert queue.selection.company == ""
        assert queue.selection.policy_type == ""
        for task in tasks:
            with pytest.raises(TaskNotFoundError):
                queue.get(task.id)
            with pytest.raises(TaskNotFoundError):
                queue.remove(task.id)

    @pytest.mark.asyncio
    async def test_stale_completion_after_clear_is_dropped(self, queue, make_source, mock_extraction_client, sample_record):
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocking_extract(*args, **kwargs):
            started.set()
            await release.wait()
            return dict(sample_record)

        mock_extraction_client.extract = AsyncMock(side_effect=blocking_extract)
        (old,) = queue.intake([make_source("old.pdf")])

        run = asyncio.create_task(queue.process())
        await started.wait()

        queue.clear()
        (new,) = queue.intake([make_source("new.pdf")])
        release.set()
        finished = await run

        assert finished == []
        with pytest.raises(TaskNotFoundError):
            queue.get(old.id)
        assert queue.get(new.id).status == TaskStatus.PENDING

        mock_extraction_client.extract = AsyncMock(return_value=dict(sample_record))
        finished = await queue.process()
        assert [t.id for t in finished] == [new.id]

    @pytest.mark.asyncio
    async def test_stale_failure_after_clear_is_dropped(self, queue, make_source, mock_extraction_client):
        started = asyncio.Event()
        release = asyncio.Event()

        async def failing_extract(*args, **kwargs):
            started.set()
            await release.wait()
            raise ExtractionError("late")

        mock_extraction_client.extract = AsyncMock(side_effect=failing_extract)
        queue.intake([make_source()])

        run = asyncio.create_task(queue.process())
        await started.wait()
        queue.clear()
        release.set()

        assert await run == []
        assert queue.counts() == {"pending": 0, "processing": 0, "done": 0, "error": 0}
