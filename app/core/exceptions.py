"""
Exception hierarchy for the extraction pipeline.

Extraction failures are recorded on the owning task by the queue; the
remaining errors signal contract violations or rejected input and are
mapped to HTTP responses in main.py.
"""


class PolicyExtractionError(Exception):
    """Base class for all pipeline errors."""
    pass


class ExtractionError(PolicyExtractionError):
    """The external model call failed or returned a non-conforming payload."""
    pass


class TaskNotFoundError(PolicyExtractionError, KeyError):
    """Raised for an id that is unknown or belongs to a wiped batch."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Document task not found: {task_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransitionError(PolicyExtractionError):
    """A task was asked to move along an edge the state machine does not have."""

    def __init__(self, task_id: str, current: str, target: str):
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(f"Task {task_id}: cannot move from {current} to {target}")


class DocumentRejectedError(PolicyExtractionError):
    """An uploaded file failed intake inspection."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")


class MasterDataError(PolicyExtractionError):
    """The master-data backend could not be reached or answered with an error."""
    pass
