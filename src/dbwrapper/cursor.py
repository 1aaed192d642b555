"""
Result cursor over buffered rows.

States:
    EMPTY      - nothing fetched yet, current_scan is -1
    ITERATING  - 0 <= current_scan < len(rows)
    EXHAUSTED  - current_scan >= len(rows)

`advance` moves `cursor` and `current_scan` together and never clamps, so
calling it past the end keeps moving `current_scan` forward.
"""
from enum import Enum

from dbwrapper.exceptions import NoResultsError, ResultsExhaustedError
from dbwrapper.row import RowStore

BEFORE_FIRST = -1


class CursorState(Enum):
    EMPTY = 'empty'
    ITERATING = 'iterating'
    EXHAUSTED = 'exhausted'


class ResultCursor:
    """Ordered RowStores from a single query plus the read position.
    """

    def __init__(self) -> None:
        self.rows: list[RowStore] = []
        self.cursor = 0
        self.current_scan = BEFORE_FIRST

    def __len__(self) -> int:
        return len(self.rows)

    def reset(self) -> None:
        """Drop buffered rows and rewind; run at the start of every query."""
        self.rows = []
        self.cursor = 0
        self.current_scan = BEFORE_FIRST

    def rewind(self) -> None:
        """Move back before the first row, keeping the rows."""
        self.cursor = 0
        self.current_scan = BEFORE_FIRST

    def append(self, row: RowStore) -> None:
        self.rows.append(row)

    @property
    def state(self) -> CursorState:
        if self.current_scan == BEFORE_FIRST:
            return CursorState.EMPTY
        if self.current_scan < len(self.rows):
            return CursorState.ITERATING
        return CursorState.EXHAUSTED

    def advance(self) -> bool:
        """Report whether a row is available, then step both counters."""
        has_next = self.cursor < len(self.rows)
        self.cursor += 1
        self.current_scan += 1
        return has_next

    def current(self) -> RowStore:
        """Return the row under the cursor.

        A cursor that was never advanced is treated as sitting on the first row.
        """
        if self.current_scan == BEFORE_FIRST:
            self.current_scan = 0
        if not self.rows:
            raise NoResultsError('No scan result found')
        if self.current_scan > len(self.rows) - 1:
            raise ResultsExhaustedError('Ran out of scan results')
        return self.rows[self.current_scan]
