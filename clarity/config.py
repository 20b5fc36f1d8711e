"""
Workbench settings.

Stored as key/value pairs in the local settings table. Values that do not
parse or fall outside their range are replaced by defaults instead of failing
start-up.
"""

import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .database import Database

DEFAULT_ROW_LIMIT = 1000
MAX_ROW_LIMIT = 10000
DEFAULT_DATA_PREVIEW_LIMIT = 500
DEFAULT_SEARCH_LIMIT = 200
MAX_SEARCH_LIMIT = 1000


class WorkbenchSettings(BaseModel):
    """User-tunable limits and the Oracle client location."""

    row_limit: int = Field(default=DEFAULT_ROW_LIMIT, ge=1, le=MAX_ROW_LIMIT)
    data_preview_limit: int = Field(default=DEFAULT_DATA_PREVIEW_LIMIT, ge=1, le=MAX_ROW_LIMIT)
    search_limit: int = Field(default=DEFAULT_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT)
    oracle_client_lib_dir: str = ""
    theme: Literal["light", "dark"] = "light"


def load_settings(db: Optional[Database] = None) -> WorkbenchSettings:
    """Read settings, keeping the default for every value that is unusable."""
    stored = db.get_settings() if db is not None else {}
    values = {}

    for name in WorkbenchSettings.model_fields:
        raw = stored.get(name)
        if raw is None:
            continue
        candidate = raw.strip()
        if name == "theme":
            candidate = candidate.lower()
        try:
            WorkbenchSettings.model_validate({name: candidate})
        except PydanticValidationError:
            continue
        values[name] = candidate

    settings = WorkbenchSettings.model_validate(values)
    if not settings.oracle_client_lib_dir:
        env_dir = os.environ.get("ORACLE_CLIENT_LIB_DIR", "").strip()
        if env_dir:
            settings = settings.model_copy(update={"oracle_client_lib_dir": env_dir})
    return settings


def save_settings(db: Database, settings: WorkbenchSettings) -> None:
    for name, value in settings.model_dump().items():
        db.set_setting(name, value)
