"""
Exception classes for the row-buffering wrapper.
"""
import sqlite3

import psycopg


class DatabaseError(Exception):
    """Base class for all dbwrapper errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing or maintaining database connection.
    """


class QueryError(DatabaseError):
    """Error in query syntax or execution.
    """


class IntegrityViolationError(DatabaseError):
    """Database constraint violation error.
    """


class ValidationError(DatabaseError):
    """Error in input validation (nil targets, wrong shapes, bad callbacks).
    """


class TransactionError(DatabaseError):
    """Transaction control used out of order (nested begin, commit without begin).
    """


class CursorError(DatabaseError):
    """Base class for result cursor conditions.
    """


class NoResultsError(CursorError):
    """The last query buffered no rows.
    """


class ResultsExhaustedError(CursorError):
    """The cursor has moved past the last buffered row.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    ConnectionFailure,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    IntegrityViolationError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    psycopg.DatabaseError,
    sqlite3.ProgrammingError,
    sqlite3.DatabaseError,
    QueryError,
    )

OperationalError = (
    psycopg.OperationalError,
    sqlite3.OperationalError,
    )

UniqueViolation = (
    psycopg.errors.UniqueViolation,
    sqlite3.IntegrityError,
    IntegrityViolationError,
    )
