"""
Prepared statements over a DB-API 2.0 cursor.

A `Statement` binds SQL text (already rewritten to the driver's placeholder
style) to one driver cursor. `query` hands back a `Rows` iterator whose
`scan` fills caller-owned slots in place; `execute` hands back a `Result`.
"""
import logging
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Self

from dbwrapper.exceptions import QueryError
from dbwrapper.sql import has_placeholders
from dbwrapper.types import TypeConverter, to_variant

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL statements and parameters."""
    @wraps(func)
    def wrapper(self, *args: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.sql}\nargs: {args}')
        try:
            result = func(self, *args)
            if hasattr(self.dbapi_cursor, 'statusmessage'):
                logger.debug(f'Query result: {self.dbapi_cursor.statusmessage}')
            return result
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.connection.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


@dataclass(frozen=True)
class Result:
    """Outcome of a non-query statement."""
    last_insert_id: int | None
    rows_affected: int


class Rows:
    """Forward-only iterator over the rows of one executed query.

    Mirrors the usual driver contract: `next` moves to the following row,
    `scan` copies the current row into the supplied slots.
    """

    def __init__(self, dbapi_cursor: Any) -> None:
        self.dbapi_cursor = dbapi_cursor
        self._current: tuple | None = None

    def columns(self) -> list[str]:
        """Column names in result order."""
        return [d[0] for d in (self.dbapi_cursor.description or ())]

    def next(self) -> bool:
        """Fetch the following row; False once the result is drained."""
        self._current = self.dbapi_cursor.fetchone()
        return self._current is not None

    def scan(self, targets: list[Any]) -> None:
        """Write the current row into `targets` without rebinding it.

        Values are normalized to the row variant on the way in.
        """
        if self._current is None:
            raise QueryError('scan called without a current row')
        if len(targets) != len(self._current):
            raise QueryError(f'expected {len(self._current)} destination arguments in scan, not {len(targets)}')
        targets[:] = [to_variant(v) for v in self._current]

    def close(self) -> None:
        self._current = None


class Statement:
    """SQL bound to a driver cursor on a `Connection`.
    """

    def __init__(self, connection: Any, sql: str) -> None:
        self.connection = connection
        self.sql = connection.strategy.standardize_sql(sql)
        self.dbapi_cursor = connection.cursor()
        self.closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _run(self, params: tuple) -> None:
        if params:
            params = tuple(TypeConverter.convert_params(p) for p in params)
        if params and not has_placeholders(self.sql):
            self.dbapi_cursor.execute(self.sql)
            logger.debug('Executed query without placeholders (ignoring args)')
            return
        if params:
            self.dbapi_cursor.execute(self.sql, params)
        else:
            self.dbapi_cursor.execute(self.sql)

    @dumpsql
    def query(self, *params: Any) -> Rows:
        """Run a row-returning statement."""
        self._run(params)
        return Rows(self.dbapi_cursor)

    @dumpsql
    def execute(self, *params: Any) -> Result:
        """Run a statement that returns no rows."""
        self._run(params)
        return Result(
            last_insert_id=self.connection.strategy.last_insert_id(self.dbapi_cursor),
            rows_affected=self.dbapi_cursor.rowcount,
            )

    def close(self) -> None:
        if not self.closed:
            self.dbapi_cursor.close()
            self.closed = True
