"""
Session gateway: the only place that talks to a database driver.

``SessionGateway`` is the interface the workspace depends on. ``DatabaseGateway``
binds it to DB-API connections opened through an adapter, keyed by integer
session ids.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .adapters import DBAdapter, get_adapter
from .config import DEFAULT_ROW_LIMIT, DEFAULT_SEARCH_LIMIT, MAX_ROW_LIMIT, MAX_SEARCH_LIMIT
from .errors import ExecutionError, SessionError, ValidationError, WorkbenchError
from .logging import get_logger
from .models import ConnectParams, ObjectRef, SearchMatch, SessionSummary, TabularResult
from .preflight import assess_statement
from .splitter import leading_keyword, normalize_block

SAFETY_CHECK_MESSAGE = (
    "Safety check blocked a write/DDL/PLSQL statement. Confirm execution and retry."
)
MAX_SNIPPET_CHARS = 220

DML_KEYWORDS = frozenset({"INSERT", "UPDATE", "DELETE", "MERGE"})
PLSQL_KEYWORDS = frozenset({"BEGIN", "DECLARE", "CALL", "EXECUTE"})
DDL_KEYWORDS = frozenset({
    "CREATE", "ALTER", "DROP", "TRUNCATE", "RENAME", "GRANT", "REVOKE", "COMMENT",
})


def clamp(value: Optional[int], default: int, upper: int) -> int:
    if value is None:
        return default
    return max(1, min(int(value), upper))


def make_unique_columns(names: List[str]) -> List[str]:
    """Suffix repeated column names (ID, ID_2, ID_3) so every name is distinct."""
    seen = set()
    unique = []
    for name in names:
        candidate = name
        suffix = 2
        while candidate in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1
        seen.add(candidate)
        unique.append(candidate)
    return unique


def stringify(value) -> str:
    if value is None:
        return ""
    if hasattr(value, "read"):
        value = value.read()
    if isinstance(value, bytes):
        return value.hex().upper()
    return str(value)


def truncate_snippet(value: str) -> str:
    trimmed = value.strip()
    if len(trimmed) <= MAX_SNIPPET_CHARS:
        return trimmed
    return trimmed[:MAX_SNIPPET_CHARS] + "..."


def find_matching_line(text: str, term: str):
    """First (line number, trimmed line) containing term, case-insensitively."""
    needle = term.upper()
    for number, line in enumerate(text.splitlines(), start=1):
        if needle in line.upper():
            return number, line.strip()
    return None


class SessionGateway(ABC):
    """Operations the workspace needs from a live database."""

    @abstractmethod
    def connect(self, params: ConnectParams) -> SessionSummary:
        pass

    @abstractmethod
    def disconnect(self, session_id: int) -> None:
        pass

    @abstractmethod
    def list_objects(self, session_id: int) -> List[ObjectRef]:
        pass

    @abstractmethod
    def get_object_ddl(self, session_id: int, ref: ObjectRef) -> str:
        pass

    @abstractmethod
    def update_object_ddl(self, session_id: int, ref: ObjectRef, ddl: str) -> str:
        pass

    @abstractmethod
    def run_statement(self, session_id: int, sql: str, row_limit: Optional[int] = None,
                      allow_destructive: bool = False) -> TabularResult:
        pass

    @abstractmethod
    def search_schema(self, session_id: int, term: str, include_object_names: bool = True,
                      include_source: bool = True, include_ddl: bool = True,
                      limit: Optional[int] = None) -> List[SearchMatch]:
        pass

    def adapter_for(self, session_id: int) -> DBAdapter:
        """Dialect helper for a session; the default covers the built-in provider."""
        return get_adapter("oracle")


def validate_search_request(term: str, include_object_names: bool, include_source: bool,
                            include_ddl: bool) -> str:
    needle = term.strip()
    if not needle:
        raise ValidationError("Search term is required")
    if not (include_object_names or include_source or include_ddl):
        raise ValidationError("Select at least one search scope")
    return needle


class _Session:
    def __init__(self, connection, adapter: DBAdapter, summary: SessionSummary):
        self.connection = connection
        self.adapter = adapter
        self.summary = summary
        self.lock = threading.Lock()


class DatabaseGateway(SessionGateway):
    """SessionGateway over DB-API connections, one per session id."""

    def __init__(self):
        self._sessions: Dict[int, _Session] = {}
        self._lock = threading.Lock()
        self._next_id = 1
        self.log = get_logger(__name__)

    def _get_session(self, session_id: int) -> _Session:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionError("Session not found")
        return session

    @contextmanager
    def _using(self, session_id: int) -> Iterator[_Session]:
        """Hold the session's connection and translate driver errors."""
        session = self._get_session(session_id)
        with session.lock:
            try:
                yield session
            except WorkbenchError:
                raise
            except session.adapter.driver_error() as e:
                raise ExecutionError(str(e)) from e

    def _ensure_in_scope(self, session: _Session, schema: str) -> str:
        normalized = session.adapter.normalize_schema_name(schema)
        if normalized != session.summary.schema_name:
            raise ValidationError(
                f"Connected schema is {session.summary.schema_name}. "
                "Object access is limited to that schema.")
        return normalized

    def adapter_for(self, session_id: int) -> DBAdapter:
        return self._get_session(session_id).adapter

    # ── Sessions ──────────────────────────────────────────────

    def connect(self, params: ConnectParams) -> SessionSummary:
        adapter = get_adapter(params.provider)
        adapter.validate(params)
        schema = adapter.normalize_schema_name(params.schema_name)
        if not adapter.is_available():
            raise ValidationError(
                f"{adapter.display_name} driver is not installed. {adapter.install_hint}")

        try:
            connection = adapter.connect(params)
        except adapter.driver_error() as e:
            raise ExecutionError(adapter.explain_connect_error(e, params)) from e

        try:
            cursor = connection.cursor()
            try:
                cursor.execute(adapter.set_schema_sql(schema))
            finally:
                cursor.close()
        except adapter.driver_error() as e:
            connection.close()
            raise ExecutionError(str(e)) from e

        display_name = f"{params.username.strip()}@{adapter.describe_target(params)} [{schema}]"
        with self._lock:
            session_id = self._next_id
            self._next_id += 1
            summary = SessionSummary(
                session_id=session_id,
                display_name=display_name,
                schema_name=schema,
                provider=adapter.db_type,
            )
            self._sessions[session_id] = _Session(connection, adapter, summary)

        self.log.info("session_opened", session_id=session_id, target=display_name)
        return summary

    def disconnect(self, session_id: int) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionError("Session not found")

        with session.lock:
            try:
                session.connection.close()
            except session.adapter.driver_error() as e:
                self.log.warning("session_close_failed", session_id=session_id, error=str(e))
        self.log.info("session_closed", session_id=session_id)

    # ── Catalog ───────────────────────────────────────────────

    def list_objects(self, session_id: int) -> List[ObjectRef]:
        with self._using(session_id) as session:
            sql, binds = session.adapter.list_objects_query()
            cursor = session.connection.cursor()
            try:
                cursor.execute(sql, [session.summary.schema_name] + binds)
                rows = cursor.fetchall()
            finally:
                cursor.close()
        return [
            ObjectRef(schema_name=owner, object_type=object_type, object_name=name)
            for owner, object_type, name in rows
        ]

    def _fetch_ddl(self, session: _Session, schema: str, object_type: str, name: str) -> str:
        adapter = session.adapter
        cursor = session.connection.cursor()
        try:
            if adapter.is_source_type(object_type):
                cursor.execute(adapter.source_query(),
                               [schema, object_type.strip().upper(), name])
                lines = [stringify(row[0]) for row in cursor.fetchall()]
                text = "".join(line if line.endswith("\n") else line + "\n" for line in lines)
                if text.strip():
                    return text

            cursor.execute(adapter.metadata_ddl_query(),
                           [adapter.metadata_ddl_type(object_type), name, schema])
            row = cursor.fetchone()
            return stringify(row[0]) if row else ""
        finally:
            cursor.close()

    def get_object_ddl(self, session_id: int, ref: ObjectRef) -> str:
        with self._using(session_id) as session:
            schema = self._ensure_in_scope(session, ref.schema_name)
            return self._fetch_ddl(session, schema, ref.object_type,
                                   ref.object_name.strip().upper())

    def update_object_ddl(self, session_id: int, ref: ObjectRef, ddl: str) -> str:
        statement = normalize_block(ddl)
        if not statement:
            raise ValidationError("DDL cannot be empty")

        with self._using(session_id) as session:
            schema = self._ensure_in_scope(session, ref.schema_name)
            cursor = session.connection.cursor()
            try:
                cursor.execute(statement)
            finally:
                cursor.close()
            session.connection.commit()

        self.log.info("ddl_updated", session_id=session_id, object=ref.key)
        return f"{ref.object_type.upper()} {schema}.{ref.object_name.upper()} updated"

    # ── Statements ────────────────────────────────────────────

    def run_statement(self, session_id: int, sql: str, row_limit: Optional[int] = None,
                      allow_destructive: bool = False) -> TabularResult:
        statement = sql.strip()
        if not statement:
            raise ValidationError("Query cannot be empty")
        if assess_statement(statement).should_confirm and not allow_destructive:
            raise ValidationError(SAFETY_CHECK_MESSAGE)

        limit = clamp(row_limit, DEFAULT_ROW_LIMIT, MAX_ROW_LIMIT)
        keyword = leading_keyword(statement)

        with self._using(session_id) as session:
            cursor = session.connection.cursor()
            try:
                cursor.execute(statement)

                if cursor.description:
                    columns = make_unique_columns([str(col[0]) for col in cursor.description])
                    fetched = cursor.fetchmany(limit + 1)
                    truncated = len(fetched) > limit
                    rows = [[stringify(value) for value in row] for row in fetched[:limit]]
                    message = f"Query executed. Returned {len(rows)} row(s)."
                    if truncated:
                        message += f" Results truncated at {limit} rows."
                    return TabularResult(columns=columns, rows=rows, message=message)

                rows_affected = max(cursor.rowcount or 0, 0)
            finally:
                cursor.close()

            if keyword in DML_KEYWORDS or keyword in PLSQL_KEYWORDS:
                session.connection.commit()

        if keyword in DML_KEYWORDS:
            message = f"Statement executed. {rows_affected} row(s) affected."
        elif keyword in DDL_KEYWORDS:
            message = "DDL executed."
        elif keyword in PLSQL_KEYWORDS:
            message = "PL/SQL block executed."
        else:
            message = "Statement executed."
        return TabularResult(rows_affected=rows_affected, message=message)

    # ── Search ────────────────────────────────────────────────

    def search_schema(self, session_id: int, term: str, include_object_names: bool = True,
                      include_source: bool = True, include_ddl: bool = True,
                      limit: Optional[int] = None) -> List[SearchMatch]:
        needle = validate_search_request(term, include_object_names, include_source,
                                         include_ddl)
        limit = clamp(limit, DEFAULT_SEARCH_LIMIT, MAX_SEARCH_LIMIT)
        matches: List[SearchMatch] = []

        with self._using(session_id) as session:
            adapter = session.adapter
            owner = session.summary.schema_name
            cursor = session.connection.cursor()
            try:
                if include_object_names:
                    cursor.execute(adapter.search_object_names_query(), [owner, needle, limit])
                    for schema, object_type, name in cursor.fetchall():
                        matches.append(SearchMatch(
                            schema_name=schema, object_type=object_type, object_name=name,
                            match_scope="object_name", snippet=truncate_snippet(name)))

                remaining = limit - len(matches)
                if include_source and remaining > 0:
                    cursor.execute(adapter.search_source_query(), [owner, needle, remaining])
                    for schema, object_type, name, line, text in cursor.fetchall():
                        matches.append(SearchMatch(
                            schema_name=schema, object_type=object_type, object_name=name,
                            match_scope="source", line=int(line),
                            snippet=truncate_snippet(stringify(text))))

                if include_ddl and len(matches) < limit:
                    sql, binds = adapter.search_ddl_candidates_query()
                    cursor.execute(sql, [owner] + binds)
                    candidates = cursor.fetchall()
                    for schema, object_type, name in candidates:
                        if len(matches) >= limit:
                            break
                        try:
                            ddl = self._fetch_ddl(session, schema, object_type, name)
                        except adapter.driver_error() as e:
                            # Objects without extractable DDL are skipped
                            self.log.debug("ddl_search_skipped", object=name, error=str(e))
                            continue
                        found = find_matching_line(ddl, needle)
                        if found:
                            line, snippet = found
                            matches.append(SearchMatch(
                                schema_name=schema, object_type=object_type, object_name=name,
                                match_scope="ddl", line=line,
                                snippet=truncate_snippet(snippet)))
            finally:
                cursor.close()

        return matches[:limit]
