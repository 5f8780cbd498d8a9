"""
Document Queue
==============
Owns the current batch of document tasks and drives each one through
extraction and validation.

State machine per task:

    pending --> processing --> done
                          +--> error

done and error are terminal. A failed document is retried by removing it
and uploading it again, which gives it a new id.

A single worker processes pending tasks in intake order. Clearing the batch
bumps its generation, so a model call that was in flight when the batch was
wiped cannot write its result into the new batch.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from app.core.config import settings
from app.core.exceptions import ExtractionError, InvalidTransitionError, TaskNotFoundError
from app.models.document_model import DocumentTask, SelectionContext, SourceFile, TaskStatus
from app.models.field_schema import is_complete_record
from app.services.extraction_client import ExtractionClient
from app.services.validation_engine import validate_record

logger = logging.getLogger(__name__)

PROGRESS_STARTED = 10
PROGRESS_DISPATCHED = 30
PROGRESS_COMPLETE = 100

_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING},
    TaskStatus.PROCESSING: {TaskStatus.DONE, TaskStatus.ERROR},
    TaskStatus.DONE: set(),
    TaskStatus.ERROR: set(),
}


def _generate_task_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


class DocumentQueue:
    """
    Single owner of the batch. Other components only ever receive
    deep-copied snapshots of its tasks.
    """

    def __init__(
        self,
        extraction_client: Optional[ExtractionClient] = None,
        baseline_confidence: Optional[float] = None,
    ):
        self.extraction_client = extraction_client or ExtractionClient()
        self.baseline_confidence = (
            settings.BASELINE_CONFIDENCE if baseline_confidence is None else baseline_confidence
        )
        self._tasks: "OrderedDict[str, DocumentTask]" = OrderedDict()
        self._selection = SelectionContext()
        self._generation = 0
        self._worker_lock = asyncio.Lock()
        self._processing = False

    # ------------------------------------------------------------------
    # Intake and selection
    # ------------------------------------------------------------------

    def select(self, company: str, policy_type: str) -> SelectionContext:
        self._selection = SelectionContext(company=company.strip(), policy_type=policy_type.strip())
        logger.info(f"🏷️  Selection: {self._selection.company} / {self._selection.policy_type}")
        return self.selection

    @property
    def selection(self) -> SelectionContext:
        return self._selection.model_copy()

    def intake(self, files: Iterable[SourceFile]) -> List[DocumentTask]:
        """
        Append one pending task per file, after every existing task.

        Returns:
            Snapshots of the newly created tasks
        """
        created = []
        for source in files:
            task_id = _generate_task_id()
            while task_id in self._tasks:
                task_id = _generate_task_id()
            task = DocumentTask(id=task_id, source=source)
            self._tasks[task_id] = task
            created.append(task.model_copy(deep=True))
            logger.info(f"📥 Queued {source.filename} as {task_id}")
        return created

    def remove(self, task_id: str) -> None:
        """Drop a single task that is not currently being processed."""
        task = self._require(task_id)
        if task.status == TaskStatus.PROCESSING:
            raise InvalidTransitionError(task_id, task.status.value, "removed")
        del self._tasks[task_id]
        logger.info(f"🗑️  Removed task {task_id}")

    def clear(self) -> int:
        """
        Secure wipe: discard every task and the selection context.

        Returns:
            Number of tasks discarded
        """
        discarded = len(self._tasks)
        self._tasks = OrderedDict()
        self._selection = SelectionContext()
        self._generation += 1
        logger.info(f"🧹 Batch wiped ({discarded} task(s) discarded, generation {self._generation})")
        return discarded

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> DocumentTask:
        return self._require(task_id).model_copy(deep=True)

    def tasks(self) -> List[DocumentTask]:
        """All tasks in intake order."""
        return [task.model_copy(deep=True) for task in self._tasks.values()]

    def done_tasks(self) -> List[DocumentTask]:
        return [
            task.model_copy(deep=True)
            for task in self._tasks.values()
            if task.status == TaskStatus.DONE
        ]

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self._tasks.values():
            counts[task.status.value] += 1
        return counts

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def has_pending(self) -> bool:
        return any(task.status == TaskStatus.PENDING for task in self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process(self) -> List[DocumentTask]:
        """
        Run every pending task to done or error, one at a time, in intake order.

        Safe to call repeatedly: only pending tasks are picked up, including
        ones added while an earlier call is still running.

        Returns:
            Snapshots of the tasks that reached a terminal state in this call
        """
        finished = []
        async with self._worker_lock:
            generation = self._generation
            self._processing = True
            try:
                while generation == self._generation:
                    task = self._next_pending()
                    if task is None:
                        break
                    result = await self._run_task(task.id, generation)
                    if result is not None:
                        finished.append(result)
            finally:
                self._processing = False

        if finished:
            logger.info(f"📊 Processed {len(finished)} document(s): {self.counts()}")
        return finished

    def _next_pending(self) -> Optional[DocumentTask]:
        for task in self._tasks.values():
            if task.status == TaskStatus.PENDING:
                return task
        return None

    async def _run_task(self, task_id: str, generation: int) -> Optional[DocumentTask]:
        task = self._tasks[task_id]
        selection = self._selection.model_copy()

        self._transition(task, TaskStatus.PROCESSING)
        task.started_at = datetime.now()
        self._advance(task, PROGRESS_STARTED)

        source = task.source
        self._advance(task, PROGRESS_DISPATCHED)

        try:
            record = await self.extraction_client.extract(
                source.content,
                source.mime_type,
                company=selection.company,
                policy_type=selection.policy_type,
                filename=source.filename,
            )
        except asyncio.CancelledError:
            if self._is_current(task_id, generation):
                logger.warning(f"⚠️  Extraction of {task_id} cancelled")
                self.mark_error(task_id, "Extraction cancelled")
            raise
        except Exception as e:
            if not self._is_current(task_id, generation):
                logger.warning(f"⚠️  Dropping stale failure for {task_id} after batch wipe")
                return None
            if not isinstance(e, ExtractionError):
                logger.exception(f"Unexpected extraction failure for {task_id}")
            return self.mark_error(task_id, str(e))

        if not self._is_current(task_id, generation):
            logger.warning(f"⚠️  Dropping stale result for {task_id} after batch wipe")
            return None
        try:
            return self.mark_done(task_id, record)
        except ExtractionError as e:
            return self.mark_error(task_id, str(e))

    def _is_current(self, task_id: str, generation: int) -> bool:
        return generation == self._generation and task_id in self._tasks

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_done(self, task_id: str, record: Dict[str, str]) -> DocumentTask:
        """
        processing -> done: store the record and attach validation findings.

        Raises:
            ExtractionError: If the record does not hold exactly the schema
                fields; the task is left untouched
        """
        task = self._require(task_id)
        if not is_complete_record(record):
            raise ExtractionError("Extraction returned an incomplete record")
        self._transition(task, TaskStatus.DONE)
        task.record = dict(record)
        task.findings = validate_record(task.record)
        task.confidence = self.baseline_confidence
        task.progress = PROGRESS_COMPLETE
        task.completed_at = datetime.now()
        task.error_detail = None

        if task.findings:
            logger.info(f"✅ {task.filename}: done with {len(task.findings)} finding(s)")
        else:
            logger.info(f"✅ {task.filename}: done, fully validated")
        return task.model_copy(deep=True)

    def mark_error(self, task_id: str, error_message: str) -> DocumentTask:
        """processing -> error: keep the failure message, reset progress."""
        task = self._require(task_id)
        self._transition(task, TaskStatus.ERROR)
        task.error_detail = error_message or "Failed to parse document"
        task.progress = 0
        task.completed_at = datetime.now()

        logger.error(f"❌ {task.filename}: {task.error_detail}")
        return task.model_copy(deep=True)

    def _require(self, task_id: str) -> DocumentTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    @staticmethod
    def _transition(task: DocumentTask, target: TaskStatus) -> None:
        if target not in _TRANSITIONS[task.status]:
            raise InvalidTransitionError(task.id, task.status.value, target.value)
        task.status = target

    @staticmethod
    def _advance(task: DocumentTask, progress: int) -> None:
        task.progress = min(100, max(task.progress, progress))


# Global batch owned by the API
document_queue = DocumentQueue()
