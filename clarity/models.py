"""
Workspace data model for Clarity.

Pydantic models for sessions, explorer objects, query results and the
worksheet / object-detail tab state the workspace owns.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

ROW_IDENTITY_COLUMN = "CLARITY$ROWID"


class DetailKind(str, Enum):
    """Views available on an object-detail tab."""

    DATA = "data"
    DDL = "ddl"
    METADATA = "metadata"


class ConnectParams(BaseModel):
    """Everything needed to open one session."""

    provider: str = "oracle"
    host: str = "localhost"
    port: Optional[int] = 1521
    service_name: str = ""
    username: str = ""
    password: str = ""
    schema_name: str = ""
    oracle_client_lib_dir: str = ""


class SessionSummary(BaseModel):
    """One live database connection as the workspace sees it."""

    session_id: int
    display_name: str
    schema_name: str
    provider: str = "oracle"


class ObjectRef(BaseModel):
    """A schema object listed by the explorer."""

    schema_name: str
    object_type: str
    object_name: str

    @property
    def key(self) -> str:
        """Detail tab id; two opens of the same object resolve to one tab."""
        return f"ddl:{self.schema_name}:{self.object_type}:{self.object_name}"

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.object_name}"


class SearchMatch(BaseModel):
    """One hit from a schema search."""

    schema_name: str
    object_type: str
    object_name: str
    match_scope: str
    line: Optional[int] = None
    snippet: str = ""

    def to_ref(self) -> ObjectRef:
        return ObjectRef(
            schema_name=self.schema_name,
            object_type=self.object_type,
            object_name=self.object_name,
        )


class TabularResult(BaseModel):
    """Outcome of one statement: a row set or a mutation summary."""

    columns: List[str] = Field(default_factory=list)
    rows: List[List[str]] = Field(default_factory=list)
    rows_affected: Optional[int] = None
    message: str = ""

    @model_validator(mode="after")
    def _check_shape(self) -> "TabularResult":
        if len(set(self.columns)) != len(self.columns):
            raise ValueError("result columns must be unique")
        width = len(self.columns)
        for index, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(
                    f"row {index} has {len(row)} values, expected {width}")
        if self.rows_affected is not None and self.columns:
            raise ValueError("a result is either a row set or a mutation summary")
        return self

    @property
    def is_row_set(self) -> bool:
        return self.rows_affected is None


class PreflightAssessment(BaseModel):
    """Whether a statement (or batch) should be confirmed before running."""

    should_confirm: bool = False
    reasons: List[str] = Field(default_factory=list)


class ResultPane(BaseModel):
    """Slot holding the outcome of exactly one statement of a batch."""

    id: str
    title: str
    result: Optional[TabularResult] = None
    error_message: str = ""

    @property
    def is_filled(self) -> bool:
        return self.result is not None or bool(self.error_message)


class QueryTab(BaseModel):
    """A SQL worksheet tab."""

    id: str
    title: str
    source_text: str = ""
    result_panes: List[ResultPane] = Field(default_factory=list)
    active_result_pane_id: str = ""
    next_pane_number: int = 1


class ObjectDetailTab(BaseModel):
    """Data / DDL / metadata views of one explorer object."""

    id: str
    target: ObjectRef
    source_text: str = ""
    focus_line: Optional[int] = None
    focus_token: int = 0
    active_detail_kind: DetailKind = DetailKind.DDL
    data_snapshot: Optional[TabularResult] = None
    metadata_snapshot: Optional[TabularResult] = None
    loading_data: bool = False
    loading_metadata: bool = False
