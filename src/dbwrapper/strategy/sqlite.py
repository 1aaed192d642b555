"""
SQLite-specific strategy implementation.

Uses the stdlib sqlite3 driver:
- `?` placeholders
- auto-commit through ``isolation_level = None``
- date/datetime converters and JSON adapters for dict/list parameters
- ``cursor.lastrowid`` for the last inserted id
"""
import json
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from dbwrapper.sql import standardize_placeholders
from dbwrapper.strategy.base import DatabaseStrategy, register_strategy
from dbwrapper.types import convert_date, convert_datetime

if TYPE_CHECKING:
    from dbwrapper.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for SQLite."""
        return f'sqlite:///{options.database}'

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        connect_args: dict[str, Any] = {
            'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    def register_type_adapters(self, connection: Any) -> None:
        """Register dialect-specific type adapters and converters for SQLite.
        """
        sqlite3.register_adapter(dict, json.dumps)
        sqlite3.register_adapter(list, json.dumps)

        connection.execute('SELECT 1')
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        sqlite_conn = conn
        if hasattr(conn, 'driver_connection'):
            sqlite_conn = conn.driver_connection

        sqlite_conn.execute('PRAGMA foreign_keys = ON')
        self.register_type_adapters(sqlite_conn)
        self.enable_autocommit(sqlite_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = None

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = 'DEFERRED'

    def standardize_sql(self, sql: str) -> str:
        """Convert PostgreSQL-style placeholders (%s) to SQLite-style (?).
        """
        return standardize_placeholders(sql, dialect='sqlite')

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']
