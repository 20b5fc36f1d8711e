"""Database adapters: connection setup and dialect SQL per provider."""

import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import ProviderNotImplementedError, ValidationError
from .models import ROW_IDENTITY_COLUMN, ConnectParams, ObjectRef
from .tabs import can_preview_data, normalize_object_type

_UNQUOTED_IDENTIFIER = re.compile(r"^[A-Z0-9_$#]+$")


def _find_instant_client_dir() -> Optional[Path]:
    """Look for Oracle Instant Client in the usual install locations."""
    candidates = [
        Path("/opt/oracle/instantclient"),
        Path("/opt/oracle"),
        Path("/usr/lib/oracle"),
        Path("/opt/homebrew/lib"),
        Path("/usr/local/lib"),
    ]

    for base in candidates:
        if not base.is_dir():
            continue
        if any(base.glob("libclntsh*")):
            return base
        for child in sorted(base.glob("instantclient*")):
            if child.is_dir() and any(child.glob("libclntsh*")):
                return child
    return None


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote a string literal, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def strip_terminator(sql: str) -> str:
    """Trim a statement and drop any trailing semicolons."""
    sql_stripped = sql.strip()
    while sql_stripped.endswith(';'):
        sql_stripped = sql_stripped[:-1].strip()
    return sql_stripped


class DBAdapter(ABC):
    """Base class for database adapters."""

    db_type = "base"
    display_name = "Base"
    default_port: Optional[int] = None
    required_module: Optional[str] = None  # Module name to import for this adapter
    install_hint: Optional[str] = None  # pip install hint for missing dependency

    @classmethod
    def is_available(cls) -> bool:
        """Check if the required module for this adapter is installed."""
        if cls.required_module is None:
            return True
        try:
            __import__(cls.required_module)
            return True
        except ImportError:
            return False

    @abstractmethod
    def validate(self, params: ConnectParams) -> None:
        """Raise ValidationError for connection parameters that cannot work."""

    @abstractmethod
    def connect(self, params: ConnectParams):
        """Connect to the database and return a DB-API connection."""

    @abstractmethod
    def driver_error(self):
        """Exception class the driver raises for database errors."""

    @abstractmethod
    def describe_target(self, params: ConnectParams) -> str:
        """Connect string shown in the session display name."""

    def explain_connect_error(self, error: Exception, params: ConnectParams) -> str:
        return str(error)

    @abstractmethod
    def set_schema_sql(self, schema: str) -> str:
        """Statement that makes ``schema`` the session's default schema."""

    @abstractmethod
    def list_objects_query(self) -> Tuple[str, List]:
        """Get SQL (bound to the owner first) plus trailing binds for the explorer."""

    @abstractmethod
    def is_source_type(self, object_type: str) -> bool:
        """Whether the object's definition lives in the stored source catalog."""

    @abstractmethod
    def source_query(self) -> str:
        """Get SQL returning source lines for (owner, type, name)."""

    @abstractmethod
    def metadata_ddl_query(self) -> str:
        """Get SQL returning generated DDL for (type, name, owner)."""

    def metadata_ddl_type(self, object_type: str) -> str:
        return normalize_object_type(object_type)

    @abstractmethod
    def search_object_names_query(self) -> str:
        """Get SQL matching object names, bound to (owner, term, limit)."""

    @abstractmethod
    def search_source_query(self) -> str:
        """Get SQL matching source lines, bound to (owner, term, limit)."""

    @abstractmethod
    def search_ddl_candidates_query(self) -> Tuple[str, List]:
        """Get SQL listing objects whose DDL is scanned during a search."""

    def normalize_schema_name(self, schema: str) -> str:
        normalized = schema.strip().upper()
        if not normalized:
            raise ValidationError("Schema is required")
        if not _UNQUOTED_IDENTIFIER.match(normalized):
            raise ValidationError(
                "Schema must use unquoted identifier characters: A-Z, 0-9, _, $, #")
        return normalized

    def table_ref(self, ref: ObjectRef) -> str:
        return f"{quote_identifier(ref.schema_name)}.{quote_identifier(ref.object_name)}"

    def row_identity_predicate(self, identity: str) -> str:
        """WHERE clause that targets exactly one row by its locator."""
        return f"ROWID = {quote_literal(identity)}"

    def default_worksheet_sql(self, schema: str) -> str:
        return "SELECT 1"

    def add_row_limit(self, sql: str, limit: int) -> str:
        """Default uses LIMIT."""
        return f"{strip_terminator(sql)} LIMIT {limit}"

    @abstractmethod
    def data_preview_sql(self, ref: ObjectRef, limit: int) -> str:
        """SELECT for the data grid; editable tables lead with the row identity."""

    @abstractmethod
    def metadata_sql(self, ref: ObjectRef) -> str:
        """Column metadata for tables and views, catalog facts otherwise."""


class OracleAdapter(DBAdapter):
    """Adapter for Oracle via python-oracledb."""

    db_type = "oracle"
    display_name = "Oracle"
    default_port = 1521
    required_module = "oracledb"
    install_hint = "pip install clarity-workbench[oracle]"

    EXPLORER_OBJECT_TYPES = (
        "TABLE", "VIEW", "PROCEDURE", "FUNCTION", "PACKAGE", "PACKAGE BODY",
        "TRIGGER", "SEQUENCE",
    )
    SOURCE_OBJECT_TYPES = (
        "PROCEDURE", "FUNCTION", "PACKAGE", "PACKAGE BODY", "TRIGGER", "TYPE",
        "TYPE BODY",
    )
    MAX_EXPLORER_OBJECTS = 5000
    MAX_DDL_SEARCH_OBJECTS = 2000

    _client_initialized = False

    def validate(self, params: ConnectParams) -> None:
        if not params.host.strip():
            raise ValidationError("Host is required")
        if not params.username.strip():
            raise ValidationError("Username is required")
        if not params.password:
            raise ValidationError("Password is required")
        if not params.service_name.strip():
            raise ValidationError("Service name is required")
        if not params.schema_name.strip():
            raise ValidationError("Schema is required")

    def describe_target(self, params: ConnectParams) -> str:
        port = params.port or self.default_port
        return f"//{params.host.strip()}:{port}/{params.service_name.strip()}"

    @classmethod
    def init_client(cls, lib_dir: str = "") -> None:
        """Switch python-oracledb to thick mode when a client directory is known.

        Without one the driver stays in thin mode, which needs no Oracle
        Client libraries at all. Runs at most once per process.
        """
        if cls._client_initialized:
            return

        import oracledb

        chosen = lib_dir.strip() or os.environ.get("ORACLE_CLIENT_LIB_DIR", "")
        if not chosen and os.environ.get("CLARITY_ORACLE_THICK"):
            found = _find_instant_client_dir()
            chosen = str(found) if found else ""
        if chosen:
            os.environ["ORACLE_CLIENT_LIB_DIR"] = chosen
            config_dir = os.environ.get("TNS_ADMIN") or None
            oracledb.init_oracle_client(lib_dir=chosen, config_dir=config_dir)
        cls._client_initialized = True

    def connect(self, params: ConnectParams):
        import oracledb

        self.init_client(params.oracle_client_lib_dir)
        # CLOB columns (GET_DDL, source) come back as plain strings
        oracledb.defaults.fetch_lobs = False
        dsn = self.describe_target(params).lstrip("/")
        return oracledb.connect(
            user=params.username.strip(),
            password=params.password,
            dsn=dsn,
        )

    def driver_error(self):
        import oracledb
        return oracledb.Error

    def explain_connect_error(self, error: Exception, params: ConnectParams) -> str:
        base = str(error)
        if "DPI-1047" in base:
            return (f"{base} Oracle Client libraries are required. Install Oracle "
                    "Instant Client and set ORACLE_CLIENT_LIB_DIR, or leave the "
                    "client directory empty to use thin mode.")
        return f"{base} (target: {self.describe_target(params)})"

    def set_schema_sql(self, schema: str) -> str:
        return f"ALTER SESSION SET CURRENT_SCHEMA = {schema}"

    def row_identity_predicate(self, identity: str) -> str:
        return f"ROWID = CHARTOROWID({quote_literal(identity)})"

    def default_worksheet_sql(self, schema: str) -> str:
        owner = schema.strip().upper() or "YOUR_SCHEMA"
        return (f"select object_name, object_type from all_objects "
                f"where owner = {quote_literal(owner)} "
                f"order by object_type, object_name fetch first 100 rows only")

    def add_row_limit(self, sql: str, limit: int) -> str:
        return f"{strip_terminator(sql)} FETCH FIRST {limit} ROWS ONLY"

    def data_preview_sql(self, ref: ObjectRef, limit: int) -> str:
        table = self.table_ref(ref)
        if normalize_object_type(ref.object_type) == "TABLE":
            sql = (f"SELECT ROWIDTOCHAR(t.ROWID) AS {quote_identifier(ROW_IDENTITY_COLUMN)}, "
                   f"t.* FROM {table} t")
        else:
            sql = f"SELECT * FROM {table}"
        return self.add_row_limit(sql, limit)

    def metadata_sql(self, ref: ObjectRef) -> str:
        owner = quote_literal(ref.schema_name.strip())
        name = quote_literal(ref.object_name.strip())
        if can_preview_data(ref.object_type):
            return ("SELECT column_id, column_name, data_type, data_length, "
                    "data_precision, data_scale, nullable, data_default "
                    f"FROM all_tab_columns WHERE owner = {owner} "
                    f"AND table_name = {name} ORDER BY column_id")
        object_type = quote_literal(ref.object_type.strip())
        return ("SELECT owner, object_name, object_type, status, created, last_ddl_time "
                f"FROM all_objects WHERE owner = {owner} AND object_name = {name} "
                f"AND object_type = {object_type}")

    def list_objects_query(self) -> Tuple[str, List]:
        types = ", ".join(quote_literal(t) for t in self.EXPLORER_OBJECT_TYPES)
        sql = f"""
            SELECT OWNER, OBJECT_TYPE, OBJECT_NAME
            FROM ALL_OBJECTS
            WHERE OWNER = :1
              AND OBJECT_TYPE IN ({types})
            ORDER BY OBJECT_TYPE, OBJECT_NAME
            FETCH FIRST :2 ROWS ONLY
        """
        return sql, [self.MAX_EXPLORER_OBJECTS]

    def is_source_type(self, object_type: str) -> bool:
        return normalize_object_type(object_type) in self.SOURCE_OBJECT_TYPES

    def source_query(self) -> str:
        return """
            SELECT TEXT
            FROM ALL_SOURCE
            WHERE OWNER = :1
              AND TYPE = :2
              AND NAME = :3
            ORDER BY LINE
        """

    def metadata_ddl_query(self) -> str:
        return "SELECT DBMS_METADATA.GET_DDL(:1, :2, :3) FROM DUAL"

    def metadata_ddl_type(self, object_type: str) -> str:
        return super().metadata_ddl_type(object_type).replace(" ", "_")

    def search_object_names_query(self) -> str:
        return """
            SELECT OWNER, OBJECT_TYPE, OBJECT_NAME
            FROM ALL_OBJECTS
            WHERE OWNER = :1
              AND INSTR(UPPER(OBJECT_NAME), UPPER(:2)) > 0
            ORDER BY OBJECT_TYPE, OBJECT_NAME
            FETCH FIRST :3 ROWS ONLY
        """

    def search_source_query(self) -> str:
        types = ", ".join(quote_literal(t) for t in self.SOURCE_OBJECT_TYPES)
        return f"""
            SELECT OWNER, TYPE, NAME, LINE, TEXT
            FROM ALL_SOURCE
            WHERE OWNER = :1
              AND TYPE IN ({types})
              AND INSTR(UPPER(TEXT), UPPER(:2)) > 0
            ORDER BY TYPE, NAME, LINE
            FETCH FIRST :3 ROWS ONLY
        """

    def search_ddl_candidates_query(self) -> Tuple[str, List]:
        sql, _ = self.list_objects_query()
        return sql, [self.MAX_DDL_SEARCH_OBJECTS]


# Registry of providers; None marks a provider that is known but not built yet
ADAPTERS = {
    'oracle': OracleAdapter,
    'postgres': None,
    'mysql': None,
    'sqlite': None,
}


def get_adapter(db_type: str) -> DBAdapter:
    """Get an adapter instance by provider name."""
    key = (db_type or "").strip().lower()
    if key not in ADAPTERS:
        raise ValidationError(f"Unknown database type: {db_type}")
    adapter_class = ADAPTERS[key]
    if adapter_class is None:
        raise ProviderNotImplementedError(f"Provider '{key}' is not implemented yet.")
    return adapter_class()


def get_adapter_choices(include_unavailable: bool = False) -> List[Tuple[str, str]]:
    """Get list of (db_type, display_name) for implemented providers.

    Args:
        include_unavailable: If True, include adapters whose driver module is
                             not installed.
    """
    return [
        (key, cls.display_name)
        for key, cls in ADAPTERS.items()
        if cls is not None and (include_unavailable or cls.is_available())
    ]


def get_unavailable_adapters() -> List[Tuple[str, str, str]]:
    """Get list of (db_type, display_name, install_hint) missing their driver."""
    return [
        (key, cls.display_name, cls.install_hint)
        for key, cls in ADAPTERS.items()
        if cls is not None and not cls.is_available()
    ]
