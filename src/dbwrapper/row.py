"""Buffered row storage and typed accessors.

A RowStore holds one fetched row. The driver fills it in place: the list
returned by `bind_scan_targets` is the same list that `lookup` reads.

Stored values are restricted to the row variant (bytes, int, str, None);
every accessor below coerces from that variant and never raises.
"""
import logging
import re
from typing import Any

from dbwrapper.utils import ReadWriteLock

from libb import attrdict

logger = logging.getLogger(__name__)

_DECIMAL_INT = re.compile(r'[+-]?\d+')


def _parse_int(text: str) -> tuple[int, bool]:
    if _DECIMAL_INT.fullmatch(text):
        return int(text), True
    return 0, False


class RowStore:
    """One row of a query result, keyed by column name.

    The column map is built once by `populate_columns` and is immutable
    afterwards; reads and writes are guarded by a per-row reader/writer lock.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._values: list[Any] = []
        self._index: dict[str, int] = {}
        self._columns: tuple[str, ...] = ()
        self._populated = False

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f'RowStore({dict(self.raw_values())!r})'

    @property
    def columns(self) -> tuple[str, ...]:
        """Column names in query order."""
        return self._columns

    def populate_columns(self, names: list[str]) -> None:
        """Build the name -> position map from the driver's column list.

        Must be called exactly once, before any value is stored. With
        duplicate names the last position wins.
        """
        with self._lock.writing():
            if self._populated:
                raise RuntimeError('Columns have already been populated for this row')
            self._columns = tuple(names)
            self._values = [None] * len(names)
            self._index = {name: i for i, name in enumerate(names)}
            self._populated = True

    def bind_scan_targets(self) -> list[Any]:
        """Return the slots the driver writes one row into, in column order.

        The returned list is the row's own storage; the scan step assigns
        into it by slice and never rebinds it.
        """
        return self._values

    def lookup(self, name: str) -> tuple[Any, bool]:
        """Thread-safe read of a column value.

        Returns (value, found); an unknown column is (None, False), never an error.
        """
        with self._lock.reading():
            pos = self._index.get(name)
            if pos is None:
                return None, False
            return self._values[pos], True

    def raw_values(self) -> attrdict:
        """Materialize the whole row as a name -> value mapping."""
        with self._lock.reading():
            return attrdict({name: self._values[pos] for name, pos in self._index.items()})

    # String

    def check_string(self, key: str) -> tuple[str, bool]:
        """Return the column as text and whether the coercion succeeded.

        Null counts as success: the column is there, it is just empty.
        """
        val, ok = self.lookup(key)
        if not ok:
            return '', False
        if isinstance(val, bytes):
            return val.decode('utf-8', errors='replace'), True
        if isinstance(val, str):
            return val, True
        if isinstance(val, int) and not isinstance(val, bool):
            return str(val), True
        if val is None:
            return '', True
        return '', False

    def get_string(self, key: str) -> str:
        return self.check_string(key)[0]

    # Integer

    def check_int(self, key: str) -> tuple[int, bool]:
        """Return the column as an int and whether the coercion succeeded.

        Blobs and strings are parsed as base-10 text.
        """
        val, ok = self.lookup(key)
        if not ok:
            return 0, False
        if isinstance(val, bytes):
            return _parse_int(val.decode('utf-8', errors='replace'))
        if isinstance(val, str):
            return _parse_int(val)
        if isinstance(val, int) and not isinstance(val, bool):
            return val, True
        if val is None:
            return 0, True
        return 0, False

    def get_int(self, key: str) -> int:
        return self.check_int(key)[0]

    # Boolean

    def check_bool(self, key: str) -> tuple[bool, bool]:
        """Only native integers are recognized; true iff greater than zero."""
        val, ok = self.lookup(key)
        if ok and isinstance(val, int) and not isinstance(val, bool):
            return val > 0, True
        return False, False

    def get_bool(self, key: str) -> bool:
        return self.check_bool(key)[0]

    # Float

    def get_float(self, key: str) -> float:
        """Parse the string form of the column, 0.0 when it is not a number."""
        try:
            return float(self.get_string(key))
        except ValueError:
            return 0.0

    def get_interface(self, key: str) -> Any:
        """Best available type: string, then int, then bool, else None."""
        for check in (self.check_string, self.check_int, self.check_bool):
            val, ok = check(key)
            if ok:
                return val
        return None
