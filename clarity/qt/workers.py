"""
Background workers for statement batches, detail loads and grid commits.

Workers only talk to the database through the workspace's thread-safe entry
points (``run_plan_statement``, ``run_detail_request``, ``run_commit``).
Results travel back as signals and are applied by a relay object that lives on
the thread owning the workspace.
"""

from typing import Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal, pyqtSlot

from ..editor import CommitOutcome, ObjectDataEditor
from ..errors import WorkbenchError
from ..logging import get_logger
from ..workspace import BatchPlan, DetailRequest, Workspace


class BatchWorker(QThread):
    """Background thread that runs a planned batch one statement at a time."""

    statement_finished = pyqtSignal(int, object, str)  # index, TabularResult or None, error
    batch_finished = pyqtSignal(int)  # statements dispatched

    def __init__(self, workspace: Workspace, plan: BatchPlan):
        super().__init__()
        self.workspace = workspace
        self.plan = plan
        self._cancelled = False
        self.log = get_logger(__name__)

    def cancel(self) -> None:
        """Stop before the next statement is dispatched."""
        self._cancelled = True

    def run(self) -> None:
        dispatched = 0
        for index in range(len(self.plan.statements)):
            if self._cancelled:
                self.log.info("batch_cancelled", tab_id=self.plan.tab_id, index=index)
                break
            dispatched += 1
            try:
                result = self.workspace.run_plan_statement(self.plan, index)
            except WorkbenchError as e:
                self.statement_finished.emit(index, None, e.message)
                break
            self.statement_finished.emit(index, result, "")
        self.batch_finished.emit(dispatched)


class DetailLoadWorker(QThread):
    """Background thread for one data or metadata fetch."""

    loaded = pyqtSignal(str, str, object, str)  # tab_id, kind, TabularResult or None, error

    def __init__(self, workspace: Workspace, request: DetailRequest):
        super().__init__()
        self.workspace = workspace
        self.request = request

    def run(self) -> None:
        try:
            result = self.workspace.run_detail_request(self.request)
        except WorkbenchError as e:
            self.loaded.emit(self.request.tab_id, self.request.kind.value, None, e.message)
            return
        self.loaded.emit(self.request.tab_id, self.request.kind.value, result, "")


class CommitWorker(QThread):
    """Background thread for writing a data grid's dirty rows.

    Takes an editor already claimed with ``Workspace.begin_commit``.
    """

    commit_finished = pyqtSignal(object)  # CommitOutcome

    def __init__(self, workspace: Workspace, editor: ObjectDataEditor):
        super().__init__()
        self.workspace = workspace
        self.editor = editor

    def run(self) -> None:
        try:
            outcome = self.workspace.run_commit(self.editor)
        except WorkbenchError as e:
            outcome = CommitOutcome(error_message=e.message, message=e.message)
        except Exception as e:
            get_logger(__name__).exception("commit_crashed", tab_id=self.editor.tab.id)
            outcome = CommitOutcome(error_message=str(e), message=f"Commit failed: {e}")
        self.commit_finished.emit(outcome)


class _WorkspaceRelay(QObject):
    """Receives worker signals on the workspace's thread."""

    def __init__(self, workspace: Workspace, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.workspace = workspace
        self.plan: Optional[BatchPlan] = None
        self.request: Optional[DetailRequest] = None

    @pyqtSlot(int, object, str)
    def on_statement_finished(self, index, result, error):
        self.workspace.apply_statement_outcome(self.plan, index, result=result, error=error)

    @pyqtSlot(int)
    def on_batch_finished(self, dispatched):
        self.workspace.finish_batch(self.plan, dispatched)

    @pyqtSlot(str, str, object, str)
    def on_detail_loaded(self, tab_id, kind, result, error):
        self.workspace.finish_detail_load(self.request, result=result, error=error)

    @pyqtSlot(object)
    def on_commit_finished(self, outcome):
        self.workspace.apply_commit_outcome(outcome)


def connect_batch_worker(workspace: Workspace, worker: BatchWorker) -> QObject:
    """Apply a batch worker's results to the workspace, on the calling thread."""
    relay = _WorkspaceRelay(workspace)
    relay.plan = worker.plan
    worker.statement_finished.connect(relay.on_statement_finished)
    worker.batch_finished.connect(relay.on_batch_finished)
    worker.relay = relay
    return relay


def connect_detail_worker(workspace: Workspace, worker: DetailLoadWorker) -> QObject:
    relay = _WorkspaceRelay(workspace)
    relay.request = worker.request
    worker.loaded.connect(relay.on_detail_loaded)
    worker.relay = relay
    return relay


def connect_commit_worker(workspace: Workspace, worker: CommitWorker) -> QObject:
    relay = _WorkspaceRelay(workspace)
    worker.commit_finished.connect(relay.on_commit_finished)
    worker.relay = relay
    return relay
