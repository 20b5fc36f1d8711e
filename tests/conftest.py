"""Shared test fixtures for Clarity."""

import os
import threading
from typing import Callable, Dict, List, Optional

import pytest

# Qt workers run without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from clarity.adapters import OracleAdapter  # noqa: E402
from clarity.errors import ExecutionError, SessionError, ValidationError  # noqa: E402
from clarity.gateway import SAFETY_CHECK_MESSAGE, SessionGateway, validate_search_request  # noqa: E402
from clarity.models import (  # noqa: E402
    ConnectParams,
    ObjectDetailTab,
    ObjectRef,
    SearchMatch,
    SessionSummary,
    TabularResult,
)
from clarity.preflight import assess_statement  # noqa: E402
from clarity.splitter import leading_keyword  # noqa: E402
from clarity.workspace import Workspace  # noqa: E402


class FakeGateway(SessionGateway):
    """In-memory gateway that records every call.

    ``results`` maps exact SQL to a result; ``failures`` maps a SQL substring
    to the error message the statement fails with.
    """

    def __init__(self):
        self.adapter = OracleAdapter()
        self.open_sessions = set()
        self.next_id = 1
        self.objects: List[ObjectRef] = []
        self.ddl: Dict[str, str] = {}
        self.results: Dict[str, TabularResult] = {}
        self.failures: Dict[str, str] = {}
        self.matches: List[SearchMatch] = []
        self.before_run: Optional[Callable[[str], None]] = None
        self.calls: List[dict] = []
        self.ddl_calls: List[str] = []
        self.ddl_updates: List[str] = []
        self.search_calls: List[dict] = []
        self.disconnects: List[int] = []
        self._lock = threading.Lock()

    def connect(self, params: ConnectParams) -> SessionSummary:
        self.adapter.validate(params)
        schema = self.adapter.normalize_schema_name(params.schema_name)
        session_id = self.next_id
        self.next_id += 1
        self.open_sessions.add(session_id)
        return SessionSummary(
            session_id=session_id,
            display_name=f"{params.username}@{self.adapter.describe_target(params)} [{schema}]",
            schema_name=schema,
        )

    def _check(self, session_id: int) -> None:
        if session_id not in self.open_sessions:
            raise SessionError("Session not found")

    def disconnect(self, session_id: int) -> None:
        self._check(session_id)
        self.open_sessions.discard(session_id)
        self.disconnects.append(session_id)

    def list_objects(self, session_id: int) -> List[ObjectRef]:
        self._check(session_id)
        return list(self.objects)

    def get_object_ddl(self, session_id: int, ref: ObjectRef) -> str:
        self._check(session_id)
        self.ddl_calls.append(ref.key)
        return self.ddl.get(ref.key, f"CREATE TABLE {ref.object_name} (ID NUMBER)")

    def update_object_ddl(self, session_id: int, ref: ObjectRef, ddl: str) -> str:
        self._check(session_id)
        self.ddl_updates.append(ddl)
        return f"{ref.object_type.upper()} {ref.schema_name}.{ref.object_name.upper()} updated"

    def run_statement(self, session_id: int, sql: str, row_limit: Optional[int] = None,
                      allow_destructive: bool = False) -> TabularResult:
        with self._lock:
            self.calls.append({
                "session_id": session_id,
                "sql": sql,
                "row_limit": row_limit,
                "allow_destructive": allow_destructive,
            })
        if self.before_run is not None:
            self.before_run(sql)
        self._check(session_id)
        if assess_statement(sql).should_confirm and not allow_destructive:
            raise ValidationError(SAFETY_CHECK_MESSAGE)
        for fragment, message in self.failures.items():
            if fragment in sql:
                raise ExecutionError(message)
        if sql in self.results:
            return self.results[sql]
        if leading_keyword(sql) in ("SELECT", "WITH"):
            return TabularResult(columns=["X"], rows=[["1"]],
                                 message="Query executed. Returned 1 row(s).")
        return TabularResult(rows_affected=1, message="Statement executed. 1 row(s) affected.")

    def search_schema(self, session_id: int, term: str, include_object_names: bool = True,
                      include_source: bool = True, include_ddl: bool = True,
                      limit: Optional[int] = None) -> List[SearchMatch]:
        validate_search_request(term, include_object_names, include_source, include_ddl)
        self._check(session_id)
        self.search_calls.append({"term": term, "limit": limit})
        return list(self.matches)

    @property
    def statements(self) -> List[str]:
        return [call["sql"] for call in self.calls]


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def connect_params():
    return ConnectParams(
        host="db.local",
        port=1521,
        service_name="FREEPDB1",
        username="scott",
        password="tiger",
        schema_name="hr",
    )


@pytest.fixture
def workspace(gateway):
    """A workspace that has not connected yet."""
    return Workspace(gateway)


@pytest.fixture
def connected(workspace, connect_params):
    """A workspace connected to the fake HR schema."""
    workspace.connect(connect_params)
    return workspace


@pytest.fixture
def emp_ref():
    return ObjectRef(schema_name="HR", object_type="TABLE", object_name="EMP")


@pytest.fixture
def emp_snapshot():
    return TabularResult(
        columns=["CLARITY$ROWID", "ID", "NAME"],
        rows=[["AAA1", "1", "Ann"], ["AAA2", "2", "Bob"]],
    )


@pytest.fixture
def emp_tab(emp_ref, emp_snapshot):
    return ObjectDetailTab(id=emp_ref.key, target=emp_ref, data_snapshot=emp_snapshot)


@pytest.fixture
def preview_sql(emp_ref):
    return OracleAdapter().data_preview_sql(emp_ref, 500)
