"""
Buffered query wrapper with dataclass record mapping, for PostgreSQL and SQLite.

Queries run through a `Wrapper`, which buffers every result row and maps
rows onto dataclass records by column tag:
- `db.query(sql, *args)` then `db.next()` / `db.get_int(col)` ...
- `db.unwrap(records, Record)` to map every buffered row at once
- `db.execute(sql, *args)` for statements that return no rows
"""
__version__ = '0.1.0'

from dbwrapper.connection import Connection, connect
from dbwrapper.cursor import CursorState, ResultCursor
from dbwrapper.exceptions import ConnectionFailure, CursorError, DatabaseError
from dbwrapper.exceptions import DbConnectionError, IntegrityError
from dbwrapper.exceptions import IntegrityViolationError, NoResultsError
from dbwrapper.exceptions import OperationalError, ProgrammingError, QueryError
from dbwrapper.exceptions import ResultsExhaustedError, TransactionError
from dbwrapper.exceptions import UniqueViolation
from dbwrapper.exceptions import ValidationError
from dbwrapper.mapping import FieldShape, column, describe, register
from dbwrapper.options import DatabaseOptions
from dbwrapper.row import RowStore
from dbwrapper.transaction import Transaction as transaction
from dbwrapper.wrapper import Wrapper, row_count, wrap

__all__ = [
    'connect',
    'wrap',
    'row_count',
    'Connection',
    'Wrapper',
    'transaction',
    'DatabaseOptions',
    'RowStore',
    'ResultCursor',
    'CursorState',
    'FieldShape',
    'column',
    'describe',
    'register',
    'IntegrityError',
    'ProgrammingError',
    'OperationalError',
    'UniqueViolation',
    'DbConnectionError',
    'ConnectionFailure',
    'ValidationError',
    'DatabaseError',
    'IntegrityViolationError',
    'QueryError',
    'TransactionError',
    'CursorError',
    'NoResultsError',
    'ResultsExhaustedError',
]
