"""
PostgreSQL-specific strategy implementation.

Uses psycopg 3:
- `%s` placeholders
- auto-commit through ``connection.autocommit``
- no last-insert-id support; use ``INSERT ... RETURNING id`` with
  ``Wrapper.query_one`` instead
"""
import logging
from typing import TYPE_CHECKING, Any

from dbwrapper.sql import standardize_placeholders
from dbwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from dbwrapper.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query_parts = [f'application_name={options.appname}'] if options.appname else []
        if options.timeout:
            query_parts.append(f'connect_timeout={options.timeout}')

        url = (f'postgresql+psycopg://{options.username}:{options.password}'
               f'@{options.hostname}:{options.port}/{options.database}')

        if query_parts:
            url += '?' + '&'.join(query_parts)

        return url

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL."""
        return {}

    def register_type_adapters(self, connection: Any) -> None:
        """PostgreSQL with psycopg doesn't need special adapters.
        """

    def configure_connection(self, conn: Any) -> None:
        """Configure connection settings for PostgreSQL.
        """
        raw_conn = conn
        if hasattr(conn, 'driver_connection'):
            raw_conn = conn.driver_connection
        self.enable_autocommit(raw_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = False

    def standardize_sql(self, sql: str) -> str:
        """Convert SQLite-style placeholders (?) to PostgreSQL-style (%s).
        """
        return standardize_placeholders(sql, dialect='postgresql')

    def last_insert_id(self, cursor: Any) -> int | None:
        """psycopg never reports one."""
        return None

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']
