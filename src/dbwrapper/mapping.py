"""
Record mapping: fill dataclass fields from a buffered row.

A record is any dataclass. A field takes part in mapping iff its metadata
carries a non-empty ``'sql'`` entry naming the column:

    @dataclass
    class User:
        id: int = column('id')
        name: str = column('name', default='')
        tags: list[str] = column('tags', default_factory=list)
        seen: datetime.datetime | None = column('last_seen', default=None)
        note: str = ''                      # untagged, never touched

`describe` turns a record type into an ordered tuple of FieldDescriptor,
one per tagged field, each carrying its column, its FieldShape and a setter.
The tuple is computed once per type and cached.

Mapping is lossy-tolerant: a value that cannot be decoded leaves the field
as it was (or at its zero value, for floats and timestamps) and never raises.
"""
import collections.abc
import dataclasses
import datetime
import logging
import types
import typing
from collections.abc import Callable
from enum import Enum
from typing import Any

from dbwrapper.cache import cached_by_type
from dbwrapper.decode import convert_element, decode_json_array, decode_path
from dbwrapper.decode import decode_point, parse_timestamp
from dbwrapper.exceptions import ValidationError
from dbwrapper.row import RowStore
from shapely.geometry import LineString, Point

logger = logging.getLogger(__name__)

TAG = 'sql'


class FieldShape(Enum):
    INTEGER = 'integer'
    STRING = 'string'
    BOOLEAN = 'boolean'
    FLOAT = 'float'
    SEQUENCE = 'sequence'
    TIMESTAMP = 'timestamp'
    POINT = 'point'
    PATH = 'path'
    UNSUPPORTED = 'unsupported'


_SCALAR_SHAPES = {
    bool: FieldShape.BOOLEAN,
    int: FieldShape.INTEGER,
    str: FieldShape.STRING,
    float: FieldShape.FLOAT,
    datetime.datetime: FieldShape.TIMESTAMP,
}

_SEQUENCE_ORIGINS = {list, tuple, collections.abc.Sequence, collections.abc.MutableSequence}


def column(name: str, **kwargs: Any) -> Any:
    """Declare a dataclass field mapped to column `name`.

    Accepts the same keyword arguments as `dataclasses.field`.
    """
    if not name:
        raise ValueError('Column name must not be empty')
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[TAG] = name
    return dataclasses.field(metadata=metadata, **kwargs)


def _strip_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def resolve_shape(annotation: Any) -> tuple[FieldShape, Any, type]:
    """Return (shape, element type, container type) for a field annotation.

    >>> resolve_shape(int)[0]
    <FieldShape.INTEGER: 'integer'>
    >>> resolve_shape(list[int])
    (<FieldShape.SEQUENCE: 'sequence'>, <class 'int'>, <class 'list'>)
    >>> resolve_shape(dict)[0]
    <FieldShape.UNSUPPORTED: 'unsupported'>
    """
    annotation = _strip_optional(annotation)

    if annotation in _SCALAR_SHAPES:
        return _SCALAR_SHAPES[annotation], None, list

    if annotation in {list, tuple}:
        return FieldShape.SEQUENCE, None, annotation

    origin = typing.get_origin(annotation)
    if origin in _SEQUENCE_ORIGINS:
        args = typing.get_args(annotation)
        container = tuple if origin is tuple else list
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            return FieldShape.UNSUPPORTED, None, list
        return FieldShape.SEQUENCE, (args[0] if args else None), container

    if isinstance(annotation, type):
        if issubclass(annotation, Point):
            return FieldShape.POINT, None, list
        if issubclass(annotation, LineString):
            return FieldShape.PATH, None, list

    return FieldShape.UNSUPPORTED, None, list


def zero_of(shape: FieldShape, container: type = list) -> Any:
    """Zero value a field of `shape` starts at when it has no default."""
    if shape is FieldShape.INTEGER:
        return 0
    if shape is FieldShape.STRING:
        return ''
    if shape is FieldShape.BOOLEAN:
        return False
    if shape is FieldShape.FLOAT:
        return 0.0
    if shape is FieldShape.SEQUENCE:
        return container()
    return None


# Readers return (value, assign); assign=False leaves the field untouched

def _read_int(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return row.get_int(desc.column), True


def _read_string(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return row.get_string(desc.column), True


def _read_bool(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return row.get_bool(desc.column), True


def _read_float(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return row.get_float(desc.column), True


def _read_sequence(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    values = decode_json_array(row.get_string(desc.column))
    if not values:
        return None, False
    converted = [convert_element(value, desc.element_type)[0] for value in values]
    return desc.container(converted), True


def _read_timestamp(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return parse_timestamp(row.get_string(desc.column)), True


def _geometry_reader(decode: Callable[[Any], Any]) -> Callable:
    def read(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
        raw, found = row.lookup(desc.column)
        if not found:
            return None, False
        geometry = decode(raw)
        return geometry, geometry is not None
    return read


def _read_nothing(desc: 'FieldDescriptor', row: RowStore) -> tuple[Any, bool]:
    return None, False


_READERS: dict[FieldShape, Callable[['FieldDescriptor', RowStore], tuple[Any, bool]]] = {
    FieldShape.INTEGER: _read_int,
    FieldShape.STRING: _read_string,
    FieldShape.BOOLEAN: _read_bool,
    FieldShape.FLOAT: _read_float,
    FieldShape.SEQUENCE: _read_sequence,
    FieldShape.TIMESTAMP: _read_timestamp,
    FieldShape.POINT: _geometry_reader(decode_point),
    FieldShape.PATH: _geometry_reader(decode_path),
    FieldShape.UNSUPPORTED: _read_nothing,
}


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    """How one tagged field is filled from a row."""
    name: str
    column: str
    shape: FieldShape
    setter: Callable[[Any, Any], None] = dataclasses.field(repr=False, compare=False)
    element_type: Any = None
    container: type = list

    def apply(self, record: Any, row: RowStore) -> bool:
        """Fill this field of `record` from `row`; False if left untouched."""
        value, assign = _READERS[self.shape](self, row)
        if assign:
            self.setter(record, value)
        return assign


def _make_setter(record_type: type, name: str) -> Callable[[Any, Any], None]:
    params = getattr(record_type, '__dataclass_params__', None)
    if params is not None and params.frozen:
        def setter(record: Any, value: Any) -> None:
            object.__setattr__(record, name, value)
    else:
        def setter(record: Any, value: Any) -> None:
            setattr(record, name, value)
    return setter


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except NameError as e:
        logger.debug(f'Falling back to raw annotations for {record_type.__qualname__}: {e}')
        return {f.name: f.type for f in dataclasses.fields(record_type)}


def require_dataclass(record_type: Any) -> None:
    if not (isinstance(record_type, type) and dataclasses.is_dataclass(record_type)):
        raise ValidationError(
            f'unsupported type for unwrapping: `{record_type!r}`; must use a dataclass record')


@cached_by_type('record_fields')
def describe(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Field descriptors for every tagged field of `record_type`, in field order.
    """
    require_dataclass(record_type)
    hints = _type_hints(record_type)
    descriptors = []
    for f in dataclasses.fields(record_type):
        tag = f.metadata.get(TAG)
        if not tag:
            continue
        shape, element_type, container = resolve_shape(hints.get(f.name, f.type))
        if shape is FieldShape.UNSUPPORTED:
            logger.debug(f'{record_type.__qualname__}.{f.name} has no supported shape, skipping')
        descriptors.append(FieldDescriptor(
            name=f.name,
            column=tag,
            shape=shape,
            setter=_make_setter(record_type, f.name),
            element_type=element_type,
            container=container,
        ))
    return tuple(descriptors)


def register(record_type: type) -> type:
    """Class decorator: validate and describe a record type up front.

    @register
    @dataclass
    class User:
        ...
    """
    describe(record_type)
    return record_type


@cached_by_type('record_zeros')
def _required_zeros(record_type: type) -> tuple[tuple[str, FieldShape, type], ...]:
    require_dataclass(record_type)
    hints = _type_hints(record_type)
    required = []
    for f in dataclasses.fields(record_type):
        if not f.init:
            continue
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            shape, _, container = resolve_shape(hints.get(f.name, f.type))
            required.append((f.name, shape, container))
    return tuple(required)


def new_record(record_type: type) -> Any:
    """Build a record with every field at its default or zero value."""
    kwargs = {name: zero_of(shape, container)
              for name, shape, container in _required_zeros(record_type)}
    return record_type(**kwargs)


def unmarshal(record: Any, row: RowStore) -> Any:
    """Fill every tagged field of `record` from `row` and return it."""
    if isinstance(record, type) or not dataclasses.is_dataclass(record):
        raise ValidationError(
            f'Cannot unmarshal into `{type(record).__name__}`; must use a dataclass instance')
    for desc in describe(type(record)):
        desc.apply(record, row)
    return record


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
