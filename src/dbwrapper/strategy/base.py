"""
Base strategy interface for dialect-specific behavior.

Defines the abstract base class that all dialect strategies inherit from.
A strategy owns everything that differs between drivers: how the SQLAlchemy
URL is built, how a fresh connection is configured, how auto-commit is
toggled around transactions, which placeholder style the driver expects and
whether the driver can report the last inserted id.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dbwrapper.options import DatabaseOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> str:
        """Build the database connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            Connection URL string suitable for SQLAlchemy
        """

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """

    @abstractmethod
    def register_type_adapters(self, connection: Any) -> None:
        """Register dialect-specific type adapters.

        Args:
            connection: Raw DBAPI connection to register adapters on
        """

    @abstractmethod
    def configure_connection(self, conn: Any) -> None:
        """Put a fresh connection into the state the wrapper expects.

        After configuration every statement outside an explicit transaction
        commits on its own.
        """

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode on a raw database connection.
        """

    @abstractmethod
    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode on a raw database connection.
        """

    @abstractmethod
    def standardize_sql(self, sql: str) -> str:
        """Rewrite placeholders in `sql` to the driver's style."""

    def last_insert_id(self, cursor: Any) -> int | None:
        """Id generated by the last INSERT on `cursor`, None if unknown.
        """
        return getattr(cursor, 'lastrowid', None)

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.

        Returns
            List of field names that must have non-None/non-zero values
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Args:
            options: DatabaseOptions to validate

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')
