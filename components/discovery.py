from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TypeVar

from resolver.status import Status, PENDING

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")

Unsubscribe = Callable[[], None]


class ChangeFeed:
    """Tiny change-notification source, the moral equivalent of a mutation observer."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Unsubscribe:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            try:
                self._subscribers.remove(callback)
            except ValueError:
                pass
        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def notify(self) -> None:
        for cb in list(self._subscribers):
            cb()


def find_and_call(
    root: T,
    search: Callable[[T], Optional[E]],
    on_found: Callable[[E], None],
    *,
    feed: Optional[ChangeFeed] = None,
) -> bool:
    """
    Call `on_found` once with the first element `search(root)` returns.

    Tries immediately; if nothing matches yet, re-runs the search on every
    change notification of `feed` (default: `root` itself) and stops
    watching after the first hit. Returns True when found immediately.
    """
    watched = feed if feed is not None else root
    done = False
    unsubscribe: Optional[Unsubscribe] = None

    def _attach_if_found() -> bool:
        nonlocal done
        if done:
            return True
        elem = search(root)
        if elem is None:
            return False
        done = True
        on_found(elem)
        return True

    if _attach_if_found():
        return True

    def _on_change() -> None:
        if _attach_if_found() and unsubscribe is not None:
            unsubscribe()

    unsubscribe = watched.subscribe(_on_change)
    return False


@dataclass
class CandidateRow:
    row_id: str
    url: str
    title: str = ""
    status: Optional[Status] = None


class CandidateTable(ChangeFeed):
    """Rows of the host UI's results table as they appear."""

    def __init__(self) -> None:
        super().__init__()
        self.rows: List[CandidateRow] = []

    def add_rows(self, rows: List[CandidateRow]) -> None:
        self.rows.extend(rows)
        self.notify()


@dataclass
class RowTracker:
    """
    Submits each row's address once, the first time the row becomes visible.

    `submit(address, sink)` is typically WorkQueue.submit; `on_status` is the
    status renderer and sees Pending first, then the terminal status.
    """
    submit: Callable[[str, Callable[[Status], None]], object]
    on_status: Callable[[CandidateRow, Status], None]
    _seen: Dict[str, CandidateRow] = field(default_factory=dict, init=False, repr=False)

    @property
    def submitted_count(self) -> int:
        return len(self._seen)

    def row_visible(self, row: CandidateRow) -> bool:
        if row.row_id in self._seen:
            return False
        self._seen[row.row_id] = row
        self._set_status(row, PENDING)
        self.submit(row.url, lambda status, _row=row: self._set_status(_row, status))
        return True

    def _set_status(self, row: CandidateRow, status: Status) -> None:
        row.status = status
        self.on_status(row, status)

    def watch(self, table: CandidateTable) -> None:
        """
        Wait for the table to have rows, then treat every row, present and
        future, as visible.
        """
        def _reveal_all() -> None:
            for row in list(table.rows):
                self.row_visible(row)

        def _on_populated(_: CandidateTable) -> None:
            logger.debug("Results table populated (%d rows)", len(table.rows))
            _reveal_all()
            table.subscribe(_reveal_all)

        find_and_call(table, lambda t: t if t.rows else None, _on_populated)
