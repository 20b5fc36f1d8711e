"""Exception hierarchy for Clarity.

Every error carries a human readable ``message``; the workspace surfaces it
on the status line or on the result pane that produced it.
"""


class WorkbenchError(Exception):
    """Base exception for all Clarity errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(WorkbenchError):
    """Bad input caught before the database is contacted."""


class GridShapeError(ValidationError):
    """Draft rows no longer line up with the snapshot columns."""


class ExecutionError(WorkbenchError):
    """The database rejected a statement or the driver failed."""


class SessionError(WorkbenchError):
    """No session, unknown session id, or the session went away mid-flight."""


class ProviderNotImplementedError(WorkbenchError):
    """A known provider without a working adapter."""


class CommitInProgressError(WorkbenchError):
    """A data grid commit is already running."""
