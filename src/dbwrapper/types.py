"""
Value handling on both sides of the driver.

This module provides:
- to_variant: Normalize a driver value into the stored row variant
  (bytes, int, str or None)
- TypeConverter: Convert Python parameters to database-compatible formats
- convert_date/convert_datetime: SQLite converters registered by the strategy
"""
import datetime
import decimal
import json
import logging
import math
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd

try:
    import pyarrow as pa
    PYARROW_AVAILABLE = True
except ImportError:
    pa = None
    PYARROW_AVAILABLE = False

logger = logging.getLogger(__name__)

Variant = bytes | int | str | None

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


# Row values - Database -> stored variant

def to_variant(value: Any) -> Variant:
    """Normalize a raw driver value into the opaque row variant.

    Integers and booleans stay native, blobs become ``bytes``, every other
    scalar is rendered as text the way a text-protocol driver would send it.

    >>> to_variant(True), to_variant(7), to_variant(memoryview(b'ab'))
    (1, 7, b'ab')
    >>> to_variant(decimal.Decimal('1.50'))
    '1.50'
    >>> to_variant(datetime.datetime(2023, 1, 2, 15, 4, 5))
    '2023-01-02 15:04:05'
    >>> to_variant([1, 2, 3])
    '[1, 2, 3]'
    """
    if value is None:
        return None
    if isinstance(value, bool | np.bool_):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)
    if isinstance(value, NUMPY_INT_TYPES):
        return int(value)
    if isinstance(value, float | decimal.Decimal | np.floating):
        return str(value)
    if isinstance(value, datetime.datetime):
        # aware values render as RFC 3339, naive ones as 'YYYY-MM-DD HH:MM:SS'
        if value.tzinfo is not None:
            return value.isoformat()
        return value.isoformat(sep=' ')
    if isinstance(value, datetime.date | datetime.time):
        return value.isoformat()
    if isinstance(value, dict | list | tuple):
        return json.dumps(value, default=str)
    return str(value)


# Parameters - Python -> Database

def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if val is None:
        return None

    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


def _convert_pyarrow_value(value: Any) -> Any:
    """Convert PyArrow scalar to Python type."""
    if not PYARROW_AVAILABLE or value is None:
        return value

    if hasattr(value, 'as_py'):
        try:
            return value.as_py()
        except Exception as e:
            logger.debug(f'PyArrow as_py conversion failed: {e}')

    if isinstance(value, pa.Array | pa.ChunkedArray):
        return value.to_pylist()

    return str(value)


class TypeConverter:
    """Parameter conversion for statements.

    Handles NumPy, pandas and PyArrow scalars so callers can pass values
    straight out of a DataFrame.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, str):
            return value

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        if pd.api.types.is_scalar(value) and pd.isna(value):
            return None

        if PYARROW_AVAILABLE and isinstance(value, pa.Scalar | pa.Array | pa.ChunkedArray):
            return _convert_pyarrow_value(value)

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


# SQLite converters - registered by the sqlite strategy

def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
