"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `Connection` class that wraps a SQLAlchemy or raw DB-API connection
3. Engine creation and management through a thread-safe registry

A `Connection` knows its dialect strategy, hands out driver cursors and
prepared `Statement` objects, and tracks query counts and timing.
"""
import atexit
import logging
import threading
from collections.abc import Callable
from dataclasses import fields
from typing import Any, Self

import sqlalchemy as sa
from dbwrapper.options import DatabaseOptions
from dbwrapper.statement import Statement
from dbwrapper.exceptions import ConnectionFailure
from dbwrapper.strategy import get_db_strategy, get_strategy
from dbwrapper.utils import get_dialect_name, get_raw_connection
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

__all__ = [
    'Connection',
    'connect',
    'configure_connection',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def get_engine_for_options(options: DatabaseOptions, use_pool: bool = False,
                           pool_size: int = 5, pool_recycle: int = 300,
                           pool_timeout: int = 30,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = f'{str(options)}_{use_pool}_{pool_size}_{pool_recycle}_{pool_timeout}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = strategy.build_connection_url(options)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = pool_size
            engine_kwargs['pool_recycle'] = pool_recycle
            engine_kwargs['pool_timeout'] = pool_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def configure_connection(conn: Any) -> None:
    """Apply the dialect strategy's connection settings.

    Accepts a SQLAlchemy connection or a raw DB-API connection.
    """
    strategy = get_db_strategy(conn)
    if isinstance(conn, sa.engine.Connection):
        strategy.configure_connection(conn.connection)
    else:
        strategy.configure_connection(conn)


class Connection:
    """Wraps a SQLAlchemy connection or a DB-API connection to track calls and execution time

    This class:
    1. Resolves the dialect strategy once
    2. Hands out driver cursors and prepared statements
    3. Tracks query execution counts and timing
    4. Supports context manager protocol for explicit resource management
    """

    def __init__(self, connection: Any, options: DatabaseOptions | None = None) -> None:
        """Initialize a connection wrapper
        """
        if isinstance(connection, sa.engine.Connection):
            self.sa_connection = connection
            self.engine = connection.engine
            self.dbapi_connection = connection.connection
        else:
            self.sa_connection = None
            self.engine = None
            self.dbapi_connection = connection
        self.options = options
        self._dialect = get_dialect_name(connection)
        self.strategy = get_db_strategy(connection)
        self.calls = 0
        self.time = 0
        self.in_transaction = False

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection when exiting the context manager
        """
        self.close()

    def __repr__(self) -> str:
        return f'Connection(dialect={self._dialect!r}, calls={self.calls})'

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self._dialect

    @property
    def driver_connection(self) -> Any:
        """The driver's own connection object, below any pool proxy."""
        return get_raw_connection(self.dbapi_connection)

    @property
    def closed(self) -> bool:
        if self.sa_connection is not None:
            return self.sa_connection.closed
        return getattr(self.dbapi_connection, 'closed', False) is True

    def cursor(self) -> Any:
        """Get a driver cursor for this connection
        """
        return self.dbapi_connection.cursor()

    def prepare(self, sql: str) -> Statement:
        """Prepare `sql` for execution on this connection."""
        return Statement(self, sql)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def commit(self) -> None:
        """Explicit commit that works regardless of auto-commit setting
        """
        self.dbapi_connection.commit()

    def rollback(self) -> None:
        self.dbapi_connection.rollback()

    def close(self) -> None:
        """Close the underlying connection, rolling back an open transaction.
        """
        if self.closed:
            return
        if self.in_transaction:
            logger.warning('Closing connection with an open transaction; rolling back')
            self.rollback()
            self.in_transaction = False
        if self.sa_connection is not None:
            self.sa_connection.close()
        else:
            self.dbapi_connection.close()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Connection:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Connection pooling options:
        use_pool: Whether to use connection pooling (default: False)
        pool_max_connections: Maximum connections in pool (default: 5)
        pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
        pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    Returns
        Connection object configured for auto-commit outside transactions

    Raises
        ConnectionFailure: the driver refused the connection
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    engine = get_engine_for_options(options, use_pool=options.use_pool,
                                    pool_size=options.pool_max_connections,
                                    pool_recycle=options.pool_max_idle_time,
                                    pool_timeout=options.pool_wait_timeout)

    try:
        sa_connection = engine.connect()
    except sa.exc.DBAPIError as e:
        logger.error(f'Could not connect to {options.drivername} database {options.database}: {e}')
        raise ConnectionFailure(f'Could not connect to {options.drivername} database {options.database}') from e
    configure_connection(sa_connection)

    return Connection(sa_connection, options)
