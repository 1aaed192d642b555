"""
Best-effort decoders used by the record mapper.

Every function here returns None (or a zero value) instead of raising when
the input cannot be decoded; the mapper leaves the field at its default in
that case.
"""
import datetime
import json
import logging
import math
import re
from collections.abc import Callable
from typing import Any

import dateutil.parser
import shapely.wkb
from shapely.geometry import LineString, Point
from shapely.geometry.base import BaseGeometry

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc

ZERO_TIME = datetime.datetime.min.replace(tzinfo=UTC)

# Prefix ahead of the WKB payload (MySQL stores the SRID there)
WKB_PREFIX_SIZE = 4


# JSON arrays

def decode_json_array(text: str) -> list[Any] | None:
    """Decode a JSON array column, None when it is empty or not an array.

    >>> decode_json_array('[1,2,3]')
    [1, 2, 3]
    >>> decode_json_array('[1,2') is None
    True
    """
    if not text:
        return None
    try:
        value = json.loads(text)
    except ValueError as e:
        logger.debug(f'Ignoring malformed JSON array: {e}')
        return None
    if not isinstance(value, list):
        return None
    return value


def zero_value(element_type: Any) -> Any:
    """Zero value for a sequence element type.

    >>> zero_value(int), zero_value(str), zero_value(bool), zero_value(float)
    (0, '', False, 0.0)
    """
    if element_type in {int, float, str, bool}:
        return element_type()
    return None


def convert_element(value: Any, element_type: Any) -> tuple[Any, bool]:
    """Convert one decoded JSON element to the declared element type.

    Numbers convert between int and float (floats truncate toward zero),
    strings and booleans must already have the right type.

    >>> convert_element(2.9, int)
    (2, True)
    >>> convert_element('2', int)
    (0, False)
    >>> convert_element(True, int)
    (0, False)
    """
    if element_type in {None, Any, object}:
        return value, True
    if element_type is int:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0, False
        if isinstance(value, float) and not math.isfinite(value):
            return 0, False
        return int(value), True
    if element_type is float:
        if isinstance(value, bool) or not isinstance(value, int | float):
            return 0.0, False
        return float(value), True
    if isinstance(element_type, type) and isinstance(value, element_type):
        return value, True
    return zero_value(element_type), False


# Timestamps

def _zone(name: str | None, offset: int | None) -> int:
    # unknown abbreviations are recorded with a zero offset
    return offset if offset is not None else 0


def _parse_plain(text: str) -> datetime.datetime:
    return dateutil.parser.parse(text).replace(tzinfo=UTC)


def _parse_zone_suffix(text: str) -> datetime.datetime:
    stamp, _abbrev = text.rsplit(' ', 1)
    return dateutil.parser.parse(stamp, tzinfos=_zone)


def _parse_network(text: str) -> datetime.datetime:
    return dateutil.parser.parse(text, tzinfos=_zone)


_CLOCK = r'\d{1,2}:\d{2}:\d{1,2}(?:\.\d{1,9})?'

TIME_LAYOUTS: list[tuple[str, re.Pattern, Callable[[str], datetime.datetime]]] = [
    ('2006-01-02 15:04:5',
     re.compile(rf'\d{{4}}-\d{{2}}-\d{{2}} {_CLOCK}'), _parse_plain),
    ('2006-01-02 15:04:5 -0700 MST',
     re.compile(rf'\d{{4}}-\d{{2}}-\d{{2}} {_CLOCK} [+-]\d{{4}} [A-Z][A-Za-z]{{2,4}}'),
     _parse_zone_suffix),
    ('RFC3339',
     re.compile(rf'\d{{4}}-\d{{2}}-\d{{2}}T{_CLOCK}(?:Z|[+-]\d{{2}}:\d{{2}})'),
     dateutil.parser.isoparse),
    ('RFC822',
     re.compile(r'\d{2} [A-Z][a-z]{2} \d{2} \d{2}:\d{2} [A-Z]{3,5}'), _parse_network),
    ('RFC1123',
     re.compile(r'[A-Z][a-z]{2}, \d{2} [A-Z][a-z]{2} \d{4} \d{2}:\d{2}:\d{2} [A-Z]{3,5}'),
     _parse_network),
    ('RFC1123Z',
     re.compile(r'[A-Z][a-z]{2}, \d{2} [A-Z][a-z]{2} \d{4} \d{2}:\d{2}:\d{2} [+-]\d{4}'),
     _parse_network),
]


def parse_timestamp(text: str) -> datetime.datetime | None:
    """Parse a timestamp column with the first layout that fits.

    Empty text is the zero time; text matching no layout is None.

    >>> parse_timestamp('2023-01-02 15:04:05')
    datetime.datetime(2023, 1, 2, 15, 4, 5, tzinfo=datetime.timezone.utc)
    >>> parse_timestamp('') == ZERO_TIME
    True
    >>> parse_timestamp('not-a-date') is None
    True
    """
    if text == '':
        return ZERO_TIME
    for name, pattern, parse in TIME_LAYOUTS:
        if not pattern.fullmatch(text):
            continue
        try:
            return parse(text)
        except (ValueError, OverflowError) as e:
            logger.debug(f'Timestamp {text!r} fits {name} but did not parse: {e}')
    return None


# Geometry

def decode_wkb(raw: Any, geometry_type: type[BaseGeometry]) -> BaseGeometry | None:
    """Decode a prefixed WKB blob into `geometry_type`, None on any failure.
    """
    if not isinstance(raw, bytes | bytearray | memoryview):
        return None
    data = bytes(raw)
    if len(data) > WKB_PREFIX_SIZE:
        data = data[WKB_PREFIX_SIZE:]
    try:
        geometry = shapely.wkb.loads(data)
    except Exception as e:
        logger.debug(f'Ignoring undecodable WKB geometry: {e}')
        return None
    if not isinstance(geometry, geometry_type):
        logger.debug(f'Expected {geometry_type.__name__}, decoded {geometry.geom_type}')
        return None
    return geometry


def decode_point(raw: Any) -> Point | None:
    return decode_wkb(raw, Point)


def decode_path(raw: Any) -> LineString | None:
    return decode_wkb(raw, LineString)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
