"""
Editable data grid for table detail tabs.

The grid keeps the last loaded snapshot as a baseline and a list of draft rows
the user edits. Dirty rows are written back one statement per row: UPDATEs
keyed by the hidden row identity column, INSERTs for rows added after the
snapshot.
"""

import threading
from typing import Callable, List, Optional, Set

from pydantic import BaseModel, Field

from .adapters import DBAdapter, quote_identifier, quote_literal
from .errors import CommitInProgressError, GridShapeError, ValidationError, WorkbenchError
from .models import ROW_IDENTITY_COLUMN, ObjectDetailTab, TabularResult
from .tabs import normalize_object_type


class CommitOutcome(BaseModel):
    """What one commit of the data grid did."""

    statements: List[str] = Field(default_factory=list)
    updated_rows: List[int] = Field(default_factory=list)
    inserted_rows: List[int] = Field(default_factory=list)
    failed_row: Optional[int] = None
    error_message: str = ""
    reloaded: bool = False
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.failed_row is None and not self.error_message


def _is_blank(value: str) -> bool:
    return not value.strip()


class ObjectDataEditor:
    """Draft rows over the data snapshot of one object-detail tab."""

    def __init__(self, tab: ObjectDetailTab, adapter: DBAdapter):
        self.tab = tab
        self.adapter = adapter
        self._columns: List[str] = []
        self._identities: List[str] = []
        self._baseline: List[List[str]] = []
        self._drafts: List[List[str]] = []
        self._saved_pending: Set[int] = set()
        self._has_identity = False
        self._committing = False
        self._commit_lock = threading.Lock()
        self._reload_deferred = False
        self._apply_snapshot()

    # ── State ─────────────────────────────────────────────────

    @property
    def editable(self) -> bool:
        return (normalize_object_type(self.tab.target.object_type) == "TABLE"
                and self._has_identity)

    @property
    def columns(self) -> List[str]:
        """Display columns, without the row identity column."""
        return list(self._columns)

    @property
    def rows(self) -> List[List[str]]:
        if not self.editable:
            return [list(row) for row in self._baseline]
        return [list(row) for row in self._drafts]

    @property
    def snapshot_row_count(self) -> int:
        return len(self._baseline)

    @property
    def is_committing(self) -> bool:
        return self._committing

    def is_saved_pending_reload(self, row: int) -> bool:
        return row in self._saved_pending

    def load_snapshot(self, result: Optional[TabularResult] = None) -> None:
        """Replace the baseline and every draft row with a fresh snapshot."""
        if self._committing:
            raise CommitInProgressError("A commit is already in progress")
        self._apply_snapshot(result)

    def snapshot_changed(self) -> None:
        """Pick up the tab's new data snapshot, after the running commit if there is one."""
        if self._committing:
            self._reload_deferred = True
            return
        self._apply_snapshot()

    def _apply_snapshot(self, result: Optional[TabularResult] = None) -> None:
        if result is not None:
            self.tab.data_snapshot = result
        snapshot = self.tab.data_snapshot

        self._saved_pending = set()
        if snapshot is None:
            self._columns = []
            self._identities = []
            self._baseline = []
            self._drafts = []
            self._has_identity = False
            return

        self._has_identity = bool(snapshot.columns) and snapshot.columns[0] == ROW_IDENTITY_COLUMN
        if self._has_identity:
            self._columns = list(snapshot.columns[1:])
            self._identities = [row[0] for row in snapshot.rows]
            self._baseline = [list(row[1:]) for row in snapshot.rows]
        else:
            self._columns = list(snapshot.columns)
            self._identities = []
            self._baseline = [list(row) for row in snapshot.rows]

        self._drafts = [list(row) for row in self._baseline] if self.editable else []

    # ── Editing ───────────────────────────────────────────────

    def _check_editable(self) -> None:
        if self._committing:
            raise CommitInProgressError("A commit is already in progress")
        if not self.editable:
            raise ValidationError(f"{self.tab.target.qualified_name} is read only")

    def edit_cell(self, row: int, col: int, value: str) -> None:
        self._check_editable()
        if row < 0 or row >= len(self._drafts):
            raise ValidationError(f"Row {row + 1} does not exist")
        if col < 0 or col >= len(self._drafts[row]):
            raise ValidationError(f"Column {col + 1} does not exist")
        if row in self._saved_pending:
            raise ValidationError(f"Row {row + 1} was saved; reload the data to edit it")
        self._drafts[row][col] = value

    def add_row(self) -> int:
        """Append an all-blank draft row and return its index."""
        self._check_editable()
        self._drafts.append([""] * len(self._columns))
        return len(self._drafts) - 1

    def is_dirty(self, row: int) -> bool:
        if not self.editable or row in self._saved_pending:
            return False
        if row < 0 or row >= len(self._drafts):
            return False
        draft = self._drafts[row]
        if row >= len(self._baseline):
            return any(not _is_blank(value) for value in draft)
        return draft != self._baseline[row]

    def dirty_rows(self) -> List[int]:
        return [row for row in range(len(self._drafts)) if self.is_dirty(row)]

    @property
    def has_changes(self) -> bool:
        return bool(self.dirty_rows())

    def revert(self) -> None:
        """Throw away every draft change and start again from the snapshot."""
        self.load_snapshot()

    # ── Statements ────────────────────────────────────────────

    def _value_sql(self, value: str) -> str:
        return "NULL" if _is_blank(value) else quote_literal(value)

    def build_statement(self, row: int) -> Optional[str]:
        """SQL that writes one dirty draft row, or None when there is nothing to do."""
        if not self.is_dirty(row):
            return None

        table = self.adapter.table_ref(self.tab.target)
        draft = self._drafts[row]

        if row >= len(self._baseline):
            filled = [(col, value) for col, value in zip(self._columns, draft)
                      if not _is_blank(value)]
            if not filled:
                return None
            names = ", ".join(quote_identifier(col) for col, _ in filled)
            values = ", ".join(self._value_sql(value) for _, value in filled)
            return f"INSERT INTO {table} ({names}) VALUES ({values})"

        baseline = self._baseline[row]
        assignments = [
            f"{quote_identifier(col)} = {self._value_sql(value)}"
            for index, (col, value) in enumerate(zip(self._columns, draft))
            if index >= len(baseline) or value != baseline[index]
        ]
        if not assignments:
            return None
        predicate = self.adapter.row_identity_predicate(self._identities[row])
        return f"UPDATE {table} SET {', '.join(assignments)} WHERE {predicate}"

    def validate(self) -> None:
        """Reject a draft that cannot be committed, before any statement runs."""
        width = len(self._columns)
        for row in self.dirty_rows():
            draft = self._drafts[row]
            if len(draft) != width:
                raise GridShapeError(
                    f"Row {row + 1} has {len(draft)} values, expected {width}")
            if row < len(self._baseline):
                if row >= len(self._identities) or not self._identities[row]:
                    raise ValidationError(
                        f"Row {row + 1} has no row identity; reload the data")
                if all(_is_blank(value) for value in draft):
                    raise ValidationError(
                        f"Row {row + 1} has no values; deleting rows is not supported")

    # ── Commit ────────────────────────────────────────────────

    def claim_commit(self) -> None:
        """Mark a commit as in flight. Only one claim can be held at a time."""
        if not self._commit_lock.acquire(blocking=False):
            raise CommitInProgressError("A commit is already in progress")
        self._committing = True

    def release_commit(self) -> None:
        """End an in-flight commit and apply any snapshot that arrived meanwhile."""
        self._committing = False
        self._commit_lock.release()
        if self._reload_deferred:
            self._reload_deferred = False
            self._apply_snapshot()

    def commit(self, execute: Callable[[str], object],
               reload: Optional[Callable[[], Optional[TabularResult]]] = None,
               claimed: bool = False) -> CommitOutcome:
        """Write every dirty row, in row order, through ``execute``.

        Stops at the first failed statement. Rows written before the failure
        keep their saved state: updated rows become the new baseline, inserted
        rows turn read only until the next reload. On full success the grid is
        reloaded through ``reload`` when any row was inserted.

        Pass ``claimed=True`` when ``claim_commit`` was already called; the
        claim is released when this returns or raises.
        """
        if not claimed:
            self.claim_commit()
        try:
            return self._commit_dirty_rows(execute, reload)
        finally:
            self.release_commit()

    def _commit_dirty_rows(self, execute, reload) -> CommitOutcome:
        if not self.editable:
            raise ValidationError(f"{self.tab.target.qualified_name} is read only")
        self.validate()

        outcome = CommitOutcome()
        dirty = self.dirty_rows()
        if not dirty:
            outcome.message = "No changes to commit."
            return outcome

        for row in dirty:
            statement = self.build_statement(row)
            if statement is None:
                continue
            is_insert = row >= len(self._baseline)
            try:
                execute(statement)
            except WorkbenchError as e:
                outcome.failed_row = row
                outcome.error_message = e.message
                break

            outcome.statements.append(statement)
            if is_insert:
                self._saved_pending.add(row)
                outcome.inserted_rows.append(row)
            else:
                self._baseline[row] = list(self._drafts[row])
                outcome.updated_rows.append(row)

        saved = len(outcome.statements)
        if not outcome.ok:
            outcome.message = (f"Saved {saved} row(s); row {outcome.failed_row + 1} "
                               f"failed: {outcome.error_message}")
            return outcome

        outcome.message = f"Saved {saved} row(s)."
        if outcome.inserted_rows and reload is not None:
            try:
                result = reload()
            except WorkbenchError as e:
                outcome.message += f" Reload failed: {e.message}"
                return outcome
            if result is not None:
                self._apply_snapshot(result)
                self._reload_deferred = False
                outcome.reloaded = True
        return outcome
