"""
The workspace: one owned aggregate for a single connected session.

Every user-facing operation goes through a ``Workspace`` method. Operations
report failure by setting ``error_message`` and returning a falsy value;
successful ones update ``status_message``. A generation counter, bumped on
connect and disconnect, lets late responses from an old session be dropped.
"""

from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .adapters import DBAdapter, get_adapter
from .config import WorkbenchSettings
from .database import Database
from .editor import CommitOutcome, ObjectDataEditor
from .errors import SessionError, WorkbenchError
from .gateway import SessionGateway, validate_search_request
from .logging import get_logger
from .models import (
    ConnectParams,
    DetailKind,
    ObjectDetailTab,
    ObjectRef,
    QueryTab,
    SearchMatch,
    SessionSummary,
    TabularResult,
)
from .preflight import assess_batch
from .results import ResultPaneManager
from .splitter import split_statements, statement_at
from .tabs import WorksheetTabRegistry, can_preview_data

ConfirmCallback = Callable[[List[str], List[str]], bool]


class BatchPlan(BaseModel):
    """A confirmed batch, bound to the tab and session it was started from."""

    tab_id: str
    session_id: int
    generation: int
    run_token: int
    statements: List[str] = Field(default_factory=list)
    allow_destructive: bool = False
    row_limit: int = 1000


class DetailRequest(BaseModel):
    """One pending data or metadata fetch for an object-detail tab."""

    tab_id: str
    kind: DetailKind
    sql: str
    session_id: int
    generation: int
    row_limit: int


class Workspace:
    def __init__(self, gateway: SessionGateway, settings: Optional[WorkbenchSettings] = None):
        self.gateway = gateway
        self.settings = settings or WorkbenchSettings()
        self.session: Optional[SessionSummary] = None
        self.objects: List[ObjectRef] = []
        self.tabs = WorksheetTabRegistry()
        self.panes = ResultPaneManager()
        self.editors: Dict[str, ObjectDataEditor] = {}
        self.search_term = ""
        self.search_results: List[SearchMatch] = []
        self.status_message = ""
        self.error_message = ""
        self.generation = 0
        self._run_tokens: Dict[str, int] = {}
        self.log = get_logger(__name__)

    # ── Helpers ───────────────────────────────────────────────

    def _fail(self, message: str, **context):
        self.error_message = message
        self.log.warning("operation_failed", error=message, **context)
        return None

    def _ok(self, message: str) -> None:
        self.status_message = message
        self.error_message = ""

    def _require_session(self) -> SessionSummary:
        if self.session is None:
            raise SessionError("Not connected")
        return self.session

    def _check_current(self, session_id: int, generation: int) -> None:
        if (generation != self.generation or self.session is None
                or self.session.session_id != session_id):
            raise SessionError("Session was disconnected")

    @property
    def adapter(self) -> DBAdapter:
        if self.session is not None:
            return self.gateway.adapter_for(self.session.session_id)
        return get_adapter("oracle")

    @property
    def is_connected(self) -> bool:
        return self.session is not None

    def _default_worksheet_text(self) -> str:
        if self.session is None:
            return ""
        return self.adapter.default_worksheet_sql(self.session.schema_name)

    def _clear_session_state(self) -> None:
        self.objects = []
        self.editors = {}
        self.search_term = ""
        self.search_results = []
        self.tabs.reset(self._default_worksheet_text())

    # ── Session ───────────────────────────────────────────────

    def connect(self, params: ConnectParams) -> Optional[SessionSummary]:
        if self.session is not None:
            self.disconnect()

        if not params.oracle_client_lib_dir and self.settings.oracle_client_lib_dir:
            params = params.model_copy(
                update={"oracle_client_lib_dir": self.settings.oracle_client_lib_dir})

        try:
            summary = self.gateway.connect(params)
        except WorkbenchError as e:
            return self._fail(e.message, host=params.host)

        self.generation += 1
        self.session = summary
        self._clear_session_state()
        self._ok(f"Connected to {summary.display_name}")
        self.log.info("connected", session_id=summary.session_id,
                      target=summary.display_name, generation=self.generation)
        self.refresh_objects()
        return summary

    def disconnect(self) -> bool:
        if self.session is None:
            return False

        session_id = self.session.session_id
        self.generation += 1
        self.session = None
        self._clear_session_state()
        self.log.info("disconnected", session_id=session_id, generation=self.generation)

        try:
            self.gateway.disconnect(session_id)
        except WorkbenchError as e:
            self._fail(e.message, session_id=session_id)
            return True
        self._ok("Disconnected")
        return True

    def refresh_objects(self) -> Optional[List[ObjectRef]]:
        try:
            session = self._require_session()
            objects = self.gateway.list_objects(session.session_id)
        except WorkbenchError as e:
            return self._fail(e.message)
        self.objects = objects
        return objects

    def object_tree(self) -> Dict[str, List[ObjectRef]]:
        """Explorer objects grouped by type; types and names sorted."""
        groups: Dict[str, List[ObjectRef]] = {}
        for ref in self.objects:
            groups.setdefault(ref.object_type, []).append(ref)
        return {
            object_type: sorted(groups[object_type], key=lambda ref: ref.object_name)
            for object_type in sorted(groups)
        }

    # ── Tabs ──────────────────────────────────────────────────

    def add_query_tab(self) -> QueryTab:
        return self.tabs.add_query_tab(self._default_worksheet_text())

    def set_tab_text(self, tab_id: str, text: str) -> bool:
        tab = self.tabs.get(tab_id)
        if tab is None:
            return False
        tab.source_text = text
        return True

    def activate_tab(self, tab_id: str) -> bool:
        if not self.tabs.activate(tab_id):
            return False
        if self.tabs.get_detail_tab(tab_id) is not None:
            self.ensure_detail_loaded(tab_id)
        return True

    def close_tab(self, tab_id: str) -> bool:
        if self.tabs.get_query_tab(tab_id) is not None:
            closed = self.tabs.close_query_tab(tab_id)
        else:
            closed = self.tabs.close_detail_tab(tab_id) is not None
            if closed:
                self.editors.pop(tab_id, None)

        if closed and self.tabs.active_detail_tab is not None:
            self.ensure_detail_loaded(self.tabs.active_tab_id)
        return closed

    # ── Worksheet execution ───────────────────────────────────

    def plan_execution(self, tab_id: Optional[str] = None,
                       confirm: Optional[ConfirmCallback] = None,
                       statements: Optional[List[str]] = None) -> Optional[BatchPlan]:
        """Split, assess and confirm a worksheet run, then prepare its panes.

        Returns None when there is nothing to run, the user declined, or the
        input is invalid. Nothing is sent to the database here.
        """
        tab = self.tabs.get_query_tab(tab_id or self.tabs.active_tab_id)
        if tab is None:
            return self._fail("No worksheet is active")
        try:
            session = self._require_session()
        except WorkbenchError as e:
            return self._fail(e.message)

        if statements is None:
            statements = split_statements(tab.source_text)
        if not statements:
            return self._fail("Query cannot be empty", tab_id=tab.id)

        assessment = assess_batch(statements)
        if assessment.should_confirm:
            if confirm is None or not confirm(assessment.reasons, statements):
                self._ok("Execution cancelled.")
                return None

        self.panes.prepare(tab, len(statements))
        token = self._run_tokens.get(tab.id, 0) + 1
        self._run_tokens[tab.id] = token
        self._ok(f"Running {len(statements)} statement(s)...")
        self.log.info("batch_started", tab_id=tab.id, statements=len(statements),
                      confirmed=assessment.should_confirm)

        return BatchPlan(
            tab_id=tab.id,
            session_id=session.session_id,
            generation=self.generation,
            run_token=token,
            statements=statements,
            allow_destructive=assessment.should_confirm,
            row_limit=self.settings.row_limit,
        )

    def run_plan_statement(self, plan: BatchPlan, index: int) -> TabularResult:
        """Send one planned statement to the gateway. Safe to call off the UI thread."""
        self._check_current(plan.session_id, plan.generation)
        return self.gateway.run_statement(
            plan.session_id,
            plan.statements[index],
            row_limit=plan.row_limit,
            allow_destructive=plan.allow_destructive,
        )

    def apply_statement_outcome(self, plan: BatchPlan, index: int,
                                result: Optional[TabularResult] = None,
                                error: str = "") -> bool:
        """Write a statement's outcome into the pane of the tab that ran it."""
        if plan.generation != self.generation:
            self.log.debug("stale_result_discarded", tab_id=plan.tab_id, index=index)
            return False
        if self._run_tokens.get(plan.tab_id) != plan.run_token:
            self.log.debug("superseded_result_discarded", tab_id=plan.tab_id, index=index)
            return False
        tab = self.tabs.get_query_tab(plan.tab_id)
        if tab is None:
            return False

        failed = bool(error) or result is None
        pane = self.panes.write(tab, index, result=result, error=error if failed else None)
        if failed:
            self.error_message = pane.error_message
            self.status_message = f"Statement {index + 1} of {len(plan.statements)} failed."
            self.log.warning("statement_failed", tab_id=plan.tab_id, index=index,
                             error=pane.error_message)
        else:
            self.status_message = result.message
        return True

    def finish_batch(self, plan: BatchPlan, dispatched: int) -> None:
        self.log.info("batch_finished", tab_id=plan.tab_id, dispatched=dispatched,
                      planned=len(plan.statements))

    def _dispatch(self, plan: BatchPlan) -> None:
        dispatched = 0
        for index in range(len(plan.statements)):
            dispatched += 1
            try:
                result = self.run_plan_statement(plan, index)
            except WorkbenchError as e:
                self.apply_statement_outcome(plan, index, error=e.message)
                break
            self.apply_statement_outcome(plan, index, result=result)
        self.finish_batch(plan, dispatched)

    def execute_tab(self, tab_id: Optional[str] = None,
                    confirm: Optional[ConfirmCallback] = None) -> Optional[BatchPlan]:
        """Run every statement of a worksheet, one pane per statement, in order."""
        plan = self.plan_execution(tab_id, confirm)
        if plan is not None:
            self._dispatch(plan)
        return plan

    def execute_statement_at(self, offset: int, tab_id: Optional[str] = None,
                             confirm: Optional[ConfirmCallback] = None) -> Optional[BatchPlan]:
        """Run only the statement under the cursor."""
        tab = self.tabs.get_query_tab(tab_id or self.tabs.active_tab_id)
        if tab is None:
            return self._fail("No worksheet is active")
        statement = statement_at(tab.source_text, offset)
        if not statement:
            return self._fail("Query cannot be empty", tab_id=tab.id)

        plan = self.plan_execution(tab.id, confirm, statements=[statement])
        if plan is not None:
            self._dispatch(plan)
        return plan

    def activate_result_pane(self, tab_id: str, pane_id: str) -> bool:
        tab = self.tabs.get_query_tab(tab_id)
        return tab is not None and self.panes.activate(tab, pane_id)

    # ── Object detail ─────────────────────────────────────────

    def _fetch_ddl(self, ref: ObjectRef) -> Optional[str]:
        try:
            session = self._require_session()
            return self.gateway.get_object_ddl(session.session_id, ref)
        except WorkbenchError as e:
            return self._fail(e.message, object=ref.key)

    def open_object(self, ref: ObjectRef) -> Optional[ObjectDetailTab]:
        """Open an explorer object, reusing its tab when it is already open."""
        tab = self.tabs.reactivate_object(ref)
        if tab is None:
            source = self._fetch_ddl(ref)
            if source is None:
                return None
            tab = self.tabs.open_object(ref, source)
            self.log.info("object_opened", object=ref.key)

        self._ok(f"Opened {ref.qualified_name}")
        self.ensure_detail_loaded(tab.id)
        return tab

    def open_search_match(self, match: SearchMatch) -> Optional[ObjectDetailTab]:
        """Open the object behind a search hit, scrolled to the matching line."""
        ref = match.to_ref()
        source = self._fetch_ddl(ref)
        if source is None:
            return None
        tab = self.tabs.open_object(ref, source, target_line=match.line)
        self._ok(f"Opened {ref.qualified_name}")
        self.ensure_detail_loaded(tab.id)
        return tab

    def activate_detail_kind(self, kind: DetailKind) -> bool:
        tab = self.tabs.activate_detail_kind(kind)
        if tab is None:
            return False
        self.ensure_detail_loaded(tab.id, kind)
        return True

    def begin_detail_load(self, tab_id: str, kind: Optional[DetailKind] = None,
                          force: bool = False) -> Optional[DetailRequest]:
        """Claim the loading flag for a data or metadata fetch.

        Returns None when there is nothing to fetch: DDL view, already loaded,
        already loading, a data commit in flight, or no session.
        """
        tab = self.tabs.get_detail_tab(tab_id)
        if tab is None or self.session is None:
            return None
        kind = kind or tab.active_detail_kind
        adapter = self.adapter

        if kind == DetailKind.DATA:
            if not can_preview_data(tab.target.object_type) or tab.loading_data:
                return None
            editor = self.editors.get(tab_id)
            if editor is not None and editor.is_committing:
                return None
            if tab.data_snapshot is not None and not force:
                return None
            tab.loading_data = True
            limit = self.settings.data_preview_limit
            sql = adapter.data_preview_sql(tab.target, limit)
        elif kind == DetailKind.METADATA:
            if tab.loading_metadata:
                return None
            if tab.metadata_snapshot is not None and not force:
                return None
            tab.loading_metadata = True
            limit = self.settings.row_limit
            sql = adapter.metadata_sql(tab.target)
        else:
            return None

        self.log.debug("detail_load_started", tab_id=tab_id, kind=kind.value)
        return DetailRequest(
            tab_id=tab_id,
            kind=kind,
            sql=sql,
            session_id=self.session.session_id,
            generation=self.generation,
            row_limit=limit,
        )

    def run_detail_request(self, request: DetailRequest) -> TabularResult:
        """Fetch a detail snapshot. Safe to call off the UI thread."""
        self._check_current(request.session_id, request.generation)
        return self.gateway.run_statement(request.session_id, request.sql,
                                          row_limit=request.row_limit)

    def finish_detail_load(self, request: DetailRequest,
                           result: Optional[TabularResult] = None,
                           error: str = "") -> bool:
        """Store a fetched snapshot on its tab and release the loading flag."""
        if request.generation != self.generation:
            self.log.debug("stale_detail_discarded", tab_id=request.tab_id)
            return False
        tab = self.tabs.get_detail_tab(request.tab_id)
        if tab is None:
            return False

        if request.kind == DetailKind.DATA:
            tab.loading_data = False
        else:
            tab.loading_metadata = False

        if error or result is None:
            self._fail(error or "No result returned", tab_id=request.tab_id)
            return False

        if request.kind == DetailKind.DATA:
            tab.data_snapshot = result
            editor = self.editors.get(tab.id)
            if editor is not None:
                editor.snapshot_changed()
        else:
            tab.metadata_snapshot = result
        self.log.debug("detail_loaded", tab_id=tab.id, kind=request.kind.value,
                       rows=len(result.rows))
        return True

    def ensure_detail_loaded(self, tab_id: str, kind: Optional[DetailKind] = None,
                             force: bool = False) -> bool:
        request = self.begin_detail_load(tab_id, kind, force)
        if request is None:
            return False
        try:
            result = self.run_detail_request(request)
        except WorkbenchError as e:
            self.finish_detail_load(request, error=e.message)
            return False
        return self.finish_detail_load(request, result)

    def refresh_active_detail(self) -> bool:
        tab = self.tabs.active_detail_tab
        if tab is None:
            return False
        if tab.active_detail_kind == DetailKind.DDL:
            source = self._fetch_ddl(tab.target)
            if source is None:
                return False
            tab.source_text = source
            self._ok(f"Reloaded {tab.target.qualified_name}")
            return True
        return self.ensure_detail_loaded(tab.id, tab.active_detail_kind, force=True)

    def save_ddl(self, tab_id: Optional[str] = None) -> Optional[str]:
        tab = self.tabs.get_detail_tab(tab_id or self.tabs.active_tab_id)
        if tab is None:
            return self._fail("No object is open")
        try:
            session = self._require_session()
            message = self.gateway.update_object_ddl(session.session_id, tab.target,
                                                     tab.source_text)
        except WorkbenchError as e:
            return self._fail(e.message, object=tab.id)

        self._ok(message)
        self.refresh_objects()
        return message

    # ── Search ────────────────────────────────────────────────

    def search_schema(self, term: str, include_object_names: bool = True,
                      include_source: bool = True, include_ddl: bool = True,
                      limit: Optional[int] = None) -> Optional[List[SearchMatch]]:
        try:
            needle = validate_search_request(term, include_object_names, include_source,
                                             include_ddl)
            session = self._require_session()
            matches = self.gateway.search_schema(
                session.session_id, needle,
                include_object_names=include_object_names,
                include_source=include_source,
                include_ddl=include_ddl,
                limit=limit or self.settings.search_limit,
            )
        except WorkbenchError as e:
            return self._fail(e.message, term=term)

        self.search_term = needle
        self.search_results = matches
        self.tabs.open_search_tab()
        self._ok(f"Found {len(matches)} match(es) for '{needle}'")
        return matches

    # ── Data grid ─────────────────────────────────────────────

    def editor_for(self, tab_id: Optional[str] = None) -> Optional[ObjectDataEditor]:
        tab = self.tabs.get_detail_tab(tab_id or self.tabs.active_tab_id)
        if tab is None:
            return None
        editor = self.editors.get(tab.id)
        if editor is None:
            editor = ObjectDataEditor(tab, self.adapter)
            self.editors[tab.id] = editor
        return editor

    def begin_commit(self, tab_id: Optional[str] = None) -> Optional[ObjectDataEditor]:
        """Claim an editor's commit on the calling thread.

        Returns the claimed editor, or None when there is no open object, no
        session, or a commit is already in flight. The claim is released by
        ``run_commit``.
        """
        editor = self.editor_for(tab_id)
        if editor is None:
            return self._fail("No object is open")
        try:
            self._require_session()
            editor.claim_commit()
        except WorkbenchError as e:
            return self._fail(e.message, tab_id=editor.tab.id)
        return editor

    def run_commit(self, editor: ObjectDataEditor) -> CommitOutcome:
        """Write a claimed editor's dirty rows. Raises WorkbenchError on invalid input."""
        try:
            session = self._require_session()
            limit = self.settings.data_preview_limit
            preview_sql = self.adapter.data_preview_sql(editor.tab.target, limit)
        except WorkbenchError:
            editor.release_commit()
            raise
        session_id = session.session_id
        generation = self.generation

        def execute(sql: str) -> TabularResult:
            self._check_current(session_id, generation)
            return self.gateway.run_statement(session_id, sql, allow_destructive=True)

        def reload() -> TabularResult:
            self._check_current(session_id, generation)
            return self.gateway.run_statement(session_id, preview_sql, row_limit=limit)

        self.log.info("commit_started", tab_id=editor.tab.id, rows=len(editor.dirty_rows()))
        return editor.commit(execute, reload, claimed=True)

    def apply_commit_outcome(self, outcome: CommitOutcome) -> CommitOutcome:
        if outcome.ok:
            self._ok(outcome.message)
            self.log.info("commit_finished", statements=len(outcome.statements),
                          reloaded=outcome.reloaded)
        else:
            self._fail(outcome.message or outcome.error_message,
                       failed_row=outcome.failed_row)
        return outcome

    def commit_data_edits(self, tab_id: Optional[str] = None) -> Optional[CommitOutcome]:
        editor = self.begin_commit(tab_id)
        if editor is None:
            return None
        try:
            outcome = self.run_commit(editor)
        except WorkbenchError as e:
            return self._fail(e.message)
        return self.apply_commit_outcome(outcome)

    def revert_data_edits(self, tab_id: Optional[str] = None) -> bool:
        editor = self.editor_for(tab_id)
        if editor is None:
            self._fail("No object is open")
            return False
        try:
            editor.revert()
        except WorkbenchError as e:
            self._fail(e.message)
            return False
        self._ok("Changes discarded.")
        return True

    # ── Persistence ───────────────────────────────────────────

    def save_tabs(self, db: Database) -> None:
        schema = self.session.schema_name if self.session else ""
        db.save_tabs(self.tabs.snapshot(), schema)

    def restore_tabs(self, db: Database) -> int:
        schema = self.session.schema_name if self.session else ""
        saved = db.get_saved_tabs(schema)
        texts = [row["source_text"] or "" for row in saved]
        if texts:
            self.editors = {}
            self.tabs.restore(texts)
        return len(texts)
