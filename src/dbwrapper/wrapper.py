"""
Session facade: run SQL, buffer every result row, map rows onto records.

Usage:
    >>> import sqlite3
    >>> db = wrap(sqlite3.connect(':memory:'))
    >>> _ = db.execute('create table t (id integer, name text)')
    >>> db.execute('insert into t values (?, ?), (?, ?)', 1, 'a', 2, 'b')
    2
    >>> db.query('select id, name from t order by id')
    >>> while db.next():
    ...     print(db.get_int('id'), db.get_string('name'))
    1 a
    2 b
    >>> db.query_one('select count(*) from t')
    '2'

The cursor follows a scanner contract: call `next()` before reading each
row. Reading without ever calling `next()` reads the first row.
"""
import contextlib
import inspect
import json
import logging
from collections.abc import Callable, Iterator
from typing import Any, Self

import sqlalchemy as sa
from dbwrapper.connection import Connection, configure_connection
from dbwrapper.cursor import ResultCursor
from dbwrapper.exceptions import CursorError, QueryError, TransactionError
from dbwrapper.exceptions import ValidationError
from dbwrapper.mapping import new_record, require_dataclass, unmarshal
from dbwrapper.options import pandas_numpy_data_loader
from dbwrapper.row import RowStore
from dbwrapper.statement import Result, Statement
from dbwrapper.transaction import Transaction

logger = logging.getLogger(__name__)

__all__ = ['Wrapper', 'wrap', 'row_count']


def _validate_callback(callback: Any, record_type: type) -> None:
    """Fail before any row is mapped if `callback` cannot take one record."""
    if not callable(callback):
        raise ValidationError(
            f'provided callback is not callable, but rather a `{type(callback).__name__}`')
    try:
        sig = inspect.signature(callback, eval_str=True)
    except NameError:
        sig = inspect.signature(callback)
    except ValueError:
        # builtins without introspectable signatures are taken on trust
        return
    params = list(sig.parameters.values())
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if len(params) != 1 or params[0].kind not in positional:
        raise ValidationError(
            'provided callback must take exactly one parameter, the record being unwrapped')
    annotation = params[0].annotation
    if annotation is inspect.Parameter.empty:
        return
    if isinstance(annotation, str):
        matches = annotation in {record_type.__name__, record_type.__qualname__}
    else:
        matches = annotation is record_type
    if not matches:
        raise ValidationError(
            f"provided callback's parameter `{annotation}` does not match the record type "
            f'`{record_type.__name__}` being unwrapped')


class Wrapper:
    """Buffered query session over one connection.

    Holds the rows of the most recent `query`, the result of the most recent
    `execute` and at most one open transaction. Not thread-safe; use one
    wrapper per thread.
    """

    def __init__(self, connection: Any) -> None:
        if isinstance(connection, Connection):
            self.connection = connection
        else:
            configure_connection(connection)
            self.connection = Connection(connection)
        self.results = ResultCursor()
        self.tx: Transaction | None = None
        self.last_result: Result | None = None
        self.columns: list[str] = []

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[RowStore]:
        while self.next():
            yield self.current()

    def __repr__(self) -> str:
        return (f'Wrapper({self.connection!r}, rows={len(self.results)}, '
                f'state={self.results.state.value})')

    # Cursor counters

    @property
    def cursor(self) -> int:
        return self.results.cursor

    @property
    def current_scan(self) -> int:
        return self.results.current_scan

    # Statements

    def prepare(self, sql: str) -> Statement:
        """Prepare `sql` on the connection, inside the open transaction if any."""
        return self.connection.prepare(sql)

    def query(self, sql: str, *params: Any) -> None:
        """Run a query and buffer every row it returns.

        Earlier buffered rows are discarded first. If the driver fails part
        way through, the rows already read stay buffered and the error
        propagates.
        """
        self.results.reset()
        self.columns = []
        with self.prepare(sql) as stmt:
            rows = stmt.query(*params)
            columns = rows.columns()
            self.columns = columns
            while rows.next():
                row = RowStore()
                row.populate_columns(columns)
                rows.scan(row.bind_scan_targets())
                self.results.append(row)
            rows.close()
        logger.debug(f'Buffered {len(self.results)} rows')

    def query_one(self, sql: str, *params: Any) -> Any:
        """Run a query expected to yield a single value.

        Returns the first row's only column as `get_interface` sees it, or
        None when there are no rows. The row is not buffered.
        """
        self.results.reset()
        with self.prepare(sql) as stmt:
            rows = stmt.query(*params)
            columns = rows.columns()
            if not rows.next():
                return None
            if len(columns) > 1:
                raise ValidationError('May only return one value with this function')
            row = RowStore()
            row.populate_columns(columns)
            rows.scan(row.bind_scan_targets())
            rows.close()
        return row.get_interface(columns[0])

    def execute(self, sql: str, *params: Any) -> int:
        """Run a statement that returns no rows; return the rows affected.

        Outside a transaction the statement is committed immediately.
        """
        with self.prepare(sql) as stmt:
            self.last_result = stmt.execute(*params)
        if not self.connection.in_transaction:
            self.connection.commit()
        return self.last_result.rows_affected

    def get_last_inserted_id(self) -> int:
        """Id generated by the last `execute`."""
        if self.last_result is None:
            raise ValidationError('Must call execute before you can get the last inserted ID')
        if self.last_result.last_insert_id is None:
            raise QueryError(
                f'{self.connection.dialect} does not report inserted ids; use RETURNING with query_one')
        return self.last_result.last_insert_id

    def get_rows_affected(self) -> int:
        """Rows affected by the last `execute`."""
        if self.last_result is None:
            raise ValidationError('Must call execute before you can get the rows affected')
        return self.last_result.rows_affected

    # Transactions

    def begin(self) -> None:
        """Open a transaction; statements accumulate until commit or revert."""
        if self.tx is not None:
            raise TransactionError('A transaction is already open on this wrapper')
        self.tx = Transaction(self.connection).begin()

    def commit(self) -> None:
        if self.tx is None:
            raise TransactionError('No transaction in progress')
        try:
            self.tx.commit()
        finally:
            self.tx = None

    def revert(self) -> None:
        if self.tx is None:
            raise TransactionError('No transaction in progress')
        try:
            self.tx.rollback()
        finally:
            self.tx = None

    rollback = revert

    @contextlib.contextmanager
    def transaction(self) -> Iterator[Self]:
        """Commit on success, revert and re-raise on error.

        with db.transaction():
            db.execute('insert ...')
            db.execute('update ...')
        """
        self.begin()
        try:
            yield self
        except BaseException:
            self.revert()
            raise
        self.commit()

    # Cursor

    def next(self) -> bool:
        """Advance to the next buffered row; False once past the last."""
        return self.results.advance()

    def current(self) -> RowStore:
        """The buffered row under the cursor.

        Raises NoResultsError with nothing buffered, ResultsExhaustedError
        past the end.
        """
        return self.results.current()

    def row_count(self) -> int:
        return len(self.results)

    def has_results(self) -> bool:
        return self.row_count() > 0

    def _current_or_none(self) -> RowStore | None:
        try:
            return self.current()
        except CursorError:
            return None

    # Getters: a cursor error reads as the zero value

    def get_int(self, key: str) -> int:
        row = self._current_or_none()
        return row.get_int(key) if row is not None else 0

    def check_int(self, key: str) -> tuple[int, bool]:
        row = self._current_or_none()
        return row.check_int(key) if row is not None else (0, False)

    def get_string(self, key: str) -> str:
        row = self._current_or_none()
        return row.get_string(key) if row is not None else ''

    def check_string(self, key: str) -> tuple[str, bool]:
        row = self._current_or_none()
        return row.check_string(key) if row is not None else ('', False)

    def get_bool(self, key: str) -> bool:
        row = self._current_or_none()
        return row.get_bool(key) if row is not None else False

    def check_bool(self, key: str) -> tuple[bool, bool]:
        row = self._current_or_none()
        return row.check_bool(key) if row is not None else (False, False)

    def get_float(self, key: str) -> float:
        row = self._current_or_none()
        return row.get_float(key) if row is not None else 0.0

    def get_interface(self, key: str) -> Any:
        row = self._current_or_none()
        return row.get_interface(key) if row is not None else None

    # Mapping

    def unmarshal(self, record: Any) -> Any:
        """Fill the tagged fields of `record` from the current row.

        With no current row every column reads as absent.
        """
        row = self._current_or_none()
        return unmarshal(record, row if row is not None else RowStore())

    def unmarshal_to(self, key: str, target: Any = None) -> Any:
        """Decode the JSON text of column `key`.

        A dict or list `target` is updated in place with the decoded value.
        Empty text leaves `target` alone and returns it. Malformed JSON raises
        json.JSONDecodeError.
        """
        text = self.get_string(key)
        if not text:
            return target
        value = json.loads(text)
        if isinstance(target, dict) and isinstance(value, dict):
            target.update(value)
        elif isinstance(target, list) and isinstance(value, list):
            target[:] = value
        return value

    def unwrap(self, into: list | None, record_type: type,
               callback: Callable[[Any], Any] | None = None) -> list:
        """Map every buffered row to a new `record_type` appended to `into`.

        `into` is cleared first and the cursor is rewound, so every buffered
        row maps once wherever the cursor stood. With no buffered rows it is returned empty
        and `callback` is never inspected. Otherwise `callback`, when given,
        is checked up front and then called once per record, after the
        record is filled.
        """
        if into is None:
            raise ValidationError('Cannot unwrap into None, you probably forgot to pass a list')
        if not isinstance(into, list):
            raise ValidationError(
                f'Cannot unwrap into `{type(into).__name__}`; must pass a list')
        into.clear()
        if not self.has_results():
            return into
        if callback is not None:
            _validate_callback(callback, record_type)
        require_dataclass(record_type)
        self.results.rewind()
        while self.next():
            record = unmarshal(new_record(record_type), self.current())
            into.append(record)
            if callback is not None:
                callback(record)
        logger.debug(f'Unwrapped {len(into)} {record_type.__name__} records')
        return into

    def to_frame(self, loader: Callable[..., Any] | None = None) -> Any:
        """Buffered rows as a DataFrame (or whatever `loader` builds).

        Defaults to the connection's configured data loader, else the NumPy
        pandas loader.
        """
        if loader is None:
            options = self.connection.options
            loader = options.data_loader if options is not None else pandas_numpy_data_loader
        data = [tuple(row.lookup(name)[0] for name in self.columns) for row in self.results.rows]
        return loader(data, list(self.columns))

    def close(self) -> None:
        if self.tx is not None:
            self.revert()
        self.connection.close()


def wrap(connection: Connection | sa.engine.Connection | Any) -> Wrapper:
    """Wrap a connection in a new `Wrapper`."""
    return Wrapper(connection)


def row_count(wrapper: Wrapper | None) -> int:
    """Buffered row count, zero when there is no wrapper at all."""
    if wrapper is None:
        return 0
    return wrapper.row_count()


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
