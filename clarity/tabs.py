"""
Worksheet tab registry.

Owns the query tabs, the object-detail tabs and the single active tab id.
Tab identity for objects is derived from (schema, type, name), so opening the
same object twice always lands on one tab.
"""

from typing import Dict, List, Optional, Union

from .models import DetailKind, ObjectDetailTab, ObjectRef, QueryTab

QUERY_TAB_PREFIX = "query:"
SEARCH_TAB_ID = "search:code"
PREVIEWABLE_TYPES = frozenset({"TABLE", "VIEW"})


def normalize_object_type(object_type: str) -> str:
    return object_type.strip().upper()


def can_preview_data(object_type: str) -> bool:
    """Whether the object type has rows worth showing in a data grid."""
    return normalize_object_type(object_type) in PREVIEWABLE_TYPES


def supported_detail_kinds(object_type: str) -> List[DetailKind]:
    kinds = []
    if can_preview_data(object_type):
        kinds.append(DetailKind.DATA)
    kinds.append(DetailKind.DDL)
    kinds.append(DetailKind.METADATA)
    return kinds


def default_detail_kind(object_type: str) -> DetailKind:
    return DetailKind.DATA if can_preview_data(object_type) else DetailKind.DDL


class WorksheetTabRegistry:
    """Query tabs plus object-detail tabs, with exactly one active tab."""

    def __init__(self, default_text: str = ""):
        self.query_tabs: List[QueryTab] = []
        self.detail_tabs: List[ObjectDetailTab] = []
        self.active_tab_id = ""
        self._next_query_number = 1
        self.add_query_tab(default_text)

    # ── Lookup ────────────────────────────────────────────────

    def get_query_tab(self, tab_id: str) -> Optional[QueryTab]:
        for tab in self.query_tabs:
            if tab.id == tab_id:
                return tab
        return None

    def get_detail_tab(self, tab_id: str) -> Optional[ObjectDetailTab]:
        for tab in self.detail_tabs:
            if tab.id == tab_id:
                return tab
        return None

    def get(self, tab_id: str) -> Optional[Union[QueryTab, ObjectDetailTab]]:
        return self.get_query_tab(tab_id) or self.get_detail_tab(tab_id)

    def find_detail_tab(self, ref: ObjectRef) -> Optional[ObjectDetailTab]:
        return self.get_detail_tab(ref.key)

    @property
    def active_query_tab(self) -> Optional[QueryTab]:
        return self.get_query_tab(self.active_tab_id)

    @property
    def active_detail_tab(self) -> Optional[ObjectDetailTab]:
        return self.get_detail_tab(self.active_tab_id)

    @property
    def is_search_tab_active(self) -> bool:
        return self.active_tab_id == SEARCH_TAB_ID

    # ── Query tabs ────────────────────────────────────────────

    def add_query_tab(self, source_text: str = "") -> QueryTab:
        """Open a new worksheet and make it active."""
        number = self._next_query_number
        self._next_query_number += 1
        tab = QueryTab(
            id=f"{QUERY_TAB_PREFIX}{number}",
            title=f"Query {number}",
            source_text=source_text,
        )
        self.query_tabs.append(tab)
        self.active_tab_id = tab.id
        return tab

    def close_query_tab(self, tab_id: str) -> bool:
        """Close a worksheet. The last remaining worksheet cannot be closed."""
        if len(self.query_tabs) <= 1:
            return False

        index = next(
            (i for i, tab in enumerate(self.query_tabs) if tab.id == tab_id), -1)
        if index < 0:
            return False

        was_active = self.active_tab_id == tab_id
        del self.query_tabs[index]

        if was_active:
            fallback = self.query_tabs[max(0, index - 1)]
            self.active_tab_id = fallback.id
        return True

    # ── Activation ────────────────────────────────────────────

    def activate(self, tab_id: str) -> bool:
        """Make a tab active. Unknown ids leave the current tab in place."""
        if tab_id != SEARCH_TAB_ID and self.get(tab_id) is None:
            return False
        self.active_tab_id = tab_id
        return True

    def open_search_tab(self) -> None:
        self.active_tab_id = SEARCH_TAB_ID

    # ── Object-detail tabs ────────────────────────────────────

    def reactivate_object(self, ref: ObjectRef) -> Optional[ObjectDetailTab]:
        """Bring an already open object to the front, if there is one."""
        tab = self.find_detail_tab(ref)
        if tab is None:
            return None

        tab.target = ref
        if tab.active_detail_kind not in supported_detail_kinds(ref.object_type):
            tab.active_detail_kind = default_detail_kind(ref.object_type)
        self.active_tab_id = tab.id
        return tab

    def open_object(self, ref: ObjectRef, source_text: str,
                    target_line: Optional[int] = None) -> ObjectDetailTab:
        """Open (or refresh) the detail tab for an object and activate it.

        A target line forces the source view and bumps the focus token, so a
        consumer can scroll to the line again even when it did not change.
        """
        tab = self.find_detail_tab(ref)
        if tab is None:
            tab = ObjectDetailTab(
                id=ref.key,
                target=ref,
                source_text=source_text,
                focus_line=target_line,
                focus_token=0 if target_line is None else 1,
                active_detail_kind=(DetailKind.DDL if target_line is not None
                                    else default_detail_kind(ref.object_type)),
            )
            self.detail_tabs.append(tab)
        else:
            tab.target = ref
            tab.source_text = source_text
            tab.focus_line = target_line
            if target_line is not None:
                tab.focus_token += 1
                tab.active_detail_kind = DetailKind.DDL
            elif tab.active_detail_kind not in supported_detail_kinds(ref.object_type):
                tab.active_detail_kind = default_detail_kind(ref.object_type)

        self.active_tab_id = tab.id
        return tab

    def activate_detail_kind(self, kind: DetailKind) -> Optional[ObjectDetailTab]:
        """Switch the active detail tab's view. Returns the tab if it changed."""
        tab = self.active_detail_tab
        if tab is None or tab.active_detail_kind == kind:
            return None
        if kind not in supported_detail_kinds(tab.target.object_type):
            return None
        tab.active_detail_kind = kind
        return tab

    def close_detail_tab(self, tab_id: str) -> Optional[ObjectDetailTab]:
        """Close a detail tab and return it.

        Closing the active one falls back to the nearest remaining detail tab,
        else to the first worksheet.
        """
        index = next(
            (i for i, tab in enumerate(self.detail_tabs) if tab.id == tab_id), -1)
        if index < 0:
            return None

        was_active = self.active_tab_id == tab_id
        closed = self.detail_tabs.pop(index)

        if was_active:
            if self.detail_tabs:
                self.active_tab_id = self.detail_tabs[max(0, index - 1)].id
            else:
                self.active_tab_id = self.query_tabs[0].id
        return closed

    # ── Whole-registry operations ─────────────────────────────

    def reset(self, default_text: str = "") -> None:
        """Back to a single fresh worksheet (used on disconnect)."""
        self.query_tabs = []
        self.detail_tabs = []
        self._next_query_number = 1
        self.add_query_tab(default_text)

    def snapshot(self) -> List[Dict[str, str]]:
        """Worksheet titles and texts, in tab order, for persistence."""
        return [{"title": tab.title, "source_text": tab.source_text}
                for tab in self.query_tabs]

    def restore(self, texts: List[str]) -> None:
        """Replace the worksheets with one tab per saved text."""
        if not texts:
            return
        self.query_tabs = []
        self.detail_tabs = []
        self._next_query_number = 1
        for text in texts:
            self.add_query_tab(text)
        self.active_tab_id = self.query_tabs[0].id
