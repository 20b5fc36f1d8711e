"""Result pane bookkeeping for worksheet tabs."""

from typing import Optional

from .errors import ValidationError
from .models import QueryTab, ResultPane, TabularResult

UNKNOWN_ERROR = "Statement failed without an error message."


class ResultPaneManager:
    """Allocates one result pane per statement of a tab's latest run."""

    def prepare(self, tab: QueryTab, statement_count: int) -> None:
        """Replace the tab's panes with fresh, empty ones for a new run.

        Pane numbers come from the tab's counter, so titles never repeat
        within the tab's lifetime even across re-runs.
        """
        panes = []
        for _ in range(max(1, statement_count)):
            number = tab.next_pane_number
            tab.next_pane_number += 1
            panes.append(ResultPane(
                id=f"{tab.id}:result:{number}",
                title=f"Result {number}",
            ))
        tab.result_panes = panes
        tab.active_result_pane_id = panes[0].id

    def write(self, tab: QueryTab, index: int,
              result: Optional[TabularResult] = None,
              error: Optional[str] = None) -> ResultPane:
        """Fill one pane. A failed pane is activated so the error is visible.

        Any error, even an empty one, and a missing result both mark the pane
        as failed.
        """
        if index < 0 or index >= len(tab.result_panes):
            raise ValidationError(
                f"Result pane {index + 1} does not exist in {tab.title}")

        pane = tab.result_panes[index]
        if error is not None or result is None:
            pane.result = None
            pane.error_message = error or UNKNOWN_ERROR
            tab.active_result_pane_id = pane.id
        else:
            pane.result = result
            pane.error_message = ""
        return pane

    def activate(self, tab: QueryTab, pane_id: str) -> bool:
        """Activate a pane of the current run; ids from older runs are ignored."""
        if not any(pane.id == pane_id for pane in tab.result_panes):
            return False
        tab.active_result_pane_id = pane_id
        return True

    def active_pane(self, tab: QueryTab) -> Optional[ResultPane]:
        for pane in tab.result_panes:
            if pane.id == tab.active_result_pane_id:
                return pane
        return None
