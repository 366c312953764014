"""Datum writers and readers driven by a :class:`Schema`.

:class:`DatumWriter` encodes a value following a writer schema.
:class:`DatumReader` decodes it again, resolving the writer schema against
an optional reader schema: fields unknown to the reader are skipped,
fields missing from the writer get their default, numbers are promoted
and unions are matched by branch.

How values are built and taken apart is delegated to a data model.
:class:`GenericData` produces :class:`GenericRecord` objects; the reflect
data models produce instances of user classes.
"""

import collections.abc
import enum
import struct
from typing import Any, Dict, List, Optional

from reflectserde.exceptions import CodecException, IllegalArgumentException
from reflectserde.serialization.io import BinaryDecoder, BinaryEncoder, decode_utf8, encode_utf8
from reflectserde.serialization.schema import Schema, SchemaType


_INT_MIN, _INT_MAX = -(2 ** 31), 2 ** 31 - 1
_LONG_MIN, _LONG_MAX = -(2 ** 63), 2 ** 63 - 1

_BYTES_LIKE = (bytes, bytearray, memoryview)

_PROMOTIONS = {
    SchemaType.INT: (SchemaType.LONG, SchemaType.FLOAT, SchemaType.DOUBLE),
    SchemaType.LONG: (SchemaType.FLOAT, SchemaType.DOUBLE),
    SchemaType.FLOAT: (SchemaType.DOUBLE,),
    SchemaType.STRING: (SchemaType.BYTES,),
    SchemaType.BYTES: (SchemaType.STRING,),
}


class GenericRecord:
    """A schema-aware record usable without the original class.

    Decoding produces generic records when the class a record schema was
    generated from cannot be imported.
    """

    def __init__(self, schema: Schema, fields: Dict[str, Any] = None):
        if schema.type != SchemaType.RECORD:
            raise IllegalArgumentException(f"Not a record schema: {schema.full_name}")
        self._schema = schema
        self._fields = dict(fields or {})

    @property
    def schema(self) -> Schema:
        """Get the schema of this record."""
        return self._schema

    def has_field(self, field_name: str) -> bool:
        return self._schema.get_field(field_name) is not None

    def get_field_names(self) -> List[str]:
        return [f.name for f in self._schema.fields]

    def get(self, field_name: str) -> Any:
        """Get a field value, ``None`` when it was never set."""
        self._check_field(field_name)
        return self._fields.get(field_name)

    def put(self, field_name: str, value: Any) -> None:
        self._check_field(field_name)
        self._fields[field_name] = value

    def _check_field(self, field_name: str) -> None:
        if not self.has_field(field_name):
            raise IllegalArgumentException(
                f"Field '{field_name}' does not exist in {self._schema.full_name}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert this record, and nested records, to dictionaries."""
        return {name: _plain(self._fields.get(name)) for name in self.get_field_names()}

    def __getitem__(self, field_name: str) -> Any:
        return self.get(field_name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GenericRecord):
            return False
        return self._schema.full_name == other._schema.full_name and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"GenericRecord(name={self._schema.full_name!r}, fields={self._fields!r})"


def _plain(value: Any) -> Any:
    if isinstance(value, GenericRecord):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class GenericRecordBuilder:
    """Builder for :class:`GenericRecord` instances."""

    def __init__(self, schema: Schema):
        self._schema = schema
        self._fields: Dict[str, Any] = {}

    def from_record(self, record: GenericRecord) -> "GenericRecordBuilder":
        """Initialize the builder from an existing record."""
        for name in record.get_field_names():
            self._fields[name] = record.get(name)
        return self

    def set(self, field_name: str, value: Any) -> "GenericRecordBuilder":
        if self._schema.get_field(field_name) is None:
            raise IllegalArgumentException(
                f"Field '{field_name}' does not exist in {self._schema.full_name}"
            )
        self._fields[field_name] = value
        return self

    def build(self) -> GenericRecord:
        return GenericRecord(self._schema, self._fields)


class GenericData:
    """Data model building generic values.

    Records decode to :class:`GenericRecord`, enums to their symbol and
    arrays to lists. Subclasses override the hooks to build user types.
    """

    def create_datum_writer(self, schema: Schema) -> "DatumWriter":
        return DatumWriter(schema, self)

    def create_datum_reader(self, writer_schema: Schema, reader_schema: Schema = None) -> "DatumReader":
        return DatumReader(writer_schema, reader_schema, self)

    def get_class(self, schema: Schema) -> Optional[type]:
        """Get the class a named or array schema was generated from."""
        return None

    def new_record(self, old: Any, schema: Schema) -> Any:
        if isinstance(old, GenericRecord) and old.schema.full_name == schema.full_name:
            return old
        return GenericRecord(schema)

    def get_field(self, record: Any, name: str) -> Any:
        if isinstance(record, GenericRecord):
            return record.get(name)
        if isinstance(record, collections.abc.Mapping):
            return record.get(name)
        return getattr(record, name, None)

    def set_field(self, record: Any, name: str, value: Any) -> None:
        if isinstance(record, GenericRecord):
            record.put(name, value)
        elif isinstance(record, collections.abc.MutableMapping):
            record[name] = value
        else:
            object.__setattr__(record, name, value)

    def field_default(self, schema: Schema, name: str) -> Any:
        """Get the value of a reader field the writer did not write."""
        return None

    def new_array(self, old: Any, schema: Schema, items: List[Any]) -> Any:
        return items

    def new_enum(self, schema: Schema, symbol: str) -> Any:
        return symbol

    def enum_symbol(self, datum: Any) -> Any:
        return datum.name if isinstance(datum, enum.Enum) else datum

    def resolve_union(self, union: Schema, datum: Any) -> int:
        """Get the index of the first union branch accepting ``datum``.

        Raises:
            CodecException: If no branch accepts it.
        """
        for index, branch in enumerate(union.branches):
            if self.validate(branch, datum):
                return index
        raise CodecException(
            f"Value of type {type(datum).__name__} matches no branch of union "
            f"{[b.full_name for b in union.branches]}"
        )

    def validate(self, schema: Schema, datum: Any) -> bool:
        """Check whether ``datum`` can be written with ``schema``."""
        kind = schema.type
        if kind == SchemaType.NULL:
            return datum is None
        if kind == SchemaType.BOOLEAN:
            return isinstance(datum, bool)
        if kind == SchemaType.INT:
            return _is_int(datum) and _INT_MIN <= datum <= _INT_MAX
        if kind == SchemaType.LONG:
            return _is_int(datum) and _LONG_MIN <= datum <= _LONG_MAX
        if kind in (SchemaType.FLOAT, SchemaType.DOUBLE):
            return isinstance(datum, float) or _is_int(datum)
        if kind == SchemaType.STRING:
            return isinstance(datum, str)
        if kind == SchemaType.BYTES:
            return isinstance(datum, _BYTES_LIKE)
        if kind == SchemaType.ENUM:
            return self.enum_symbol(datum) in schema.symbols
        if kind == SchemaType.ARRAY:
            return isinstance(datum, (collections.abc.Sequence, collections.abc.Set)) and not isinstance(
                datum, (str,) + _BYTES_LIKE
            )
        if kind == SchemaType.MAP:
            return isinstance(datum, collections.abc.Mapping)
        if kind == SchemaType.RECORD:
            return self._is_record(schema, datum)
        if kind == SchemaType.UNION:
            return any(self.validate(branch, datum) for branch in schema.branches)
        return False

    def _is_record(self, schema: Schema, datum: Any) -> bool:
        if isinstance(datum, GenericRecord):
            return datum.schema.full_name == schema.full_name
        cls = self.get_class(schema)
        if cls is not None:
            return isinstance(datum, cls)
        if isinstance(datum, collections.abc.Mapping):
            return all(f.name in datum for f in schema.fields)
        return datum is not None and all(hasattr(datum, f.name) for f in schema.fields)


def _is_int(datum: Any) -> bool:
    return isinstance(datum, int) and not isinstance(datum, bool)


class DatumWriter:
    """Writes values following a writer schema.

    Args:
        schema: The writer schema.
        data: The data model reading fields off values.
    """

    def __init__(self, schema: Schema, data: GenericData = None):
        self._schema = schema
        self._data = data or GenericData()

    @property
    def schema(self) -> Schema:
        return self._schema

    def write(self, datum: Any, encoder: BinaryEncoder) -> None:
        """Encode ``datum``.

        Raises:
            CodecException: If the value does not fit the schema.
        """
        self._write(self._schema, datum, encoder)

    def _write(self, schema: Schema, datum: Any, encoder: BinaryEncoder) -> None:
        kind = schema.type
        if kind == SchemaType.UNION:
            index = self._data.resolve_union(schema, datum)
            encoder.write_index(index)
            self._write(schema.branches[index], datum, encoder)
            return
        if not self._data.validate(schema, datum):
            raise CodecException(
                f"Expected {schema.full_name}, got {type(datum).__name__}: {datum!r:.80}"
            )

        if kind == SchemaType.NULL:
            encoder.write_null()
        elif kind == SchemaType.BOOLEAN:
            encoder.write_boolean(datum)
        elif kind == SchemaType.INT:
            encoder.write_int(datum)
        elif kind == SchemaType.LONG:
            encoder.write_long(datum)
        elif kind == SchemaType.FLOAT:
            self._write_float(encoder.write_float, datum)
        elif kind == SchemaType.DOUBLE:
            self._write_float(encoder.write_double, datum)
        elif kind == SchemaType.STRING:
            encoder.write_string(datum)
        elif kind == SchemaType.BYTES:
            encoder.write_bytes(bytes(datum))
        elif kind == SchemaType.ENUM:
            encoder.write_int(schema.symbols.index(self._data.enum_symbol(datum)))
        elif kind == SchemaType.ARRAY:
            items = list(datum)
            encoder.write_count(len(items))
            for item in items:
                self._write(schema.items, item, encoder)
        elif kind == SchemaType.MAP:
            encoder.write_count(len(datum))
            for key, value in datum.items():
                self._write(schema.keys, key, encoder)
                self._write(schema.values, value, encoder)
        elif kind == SchemaType.RECORD:
            for f in schema.fields:
                value = self._data.get_field(datum, f.name)
                try:
                    self._write(f.schema, value, encoder)
                except CodecException as e:
                    raise CodecException(f"{schema.name}.{f.name}: {e}", cause=e) from e

    @staticmethod
    def _write_float(write, datum: Any) -> None:
        try:
            write(float(datum))
        except (OverflowError, struct.error) as e:
            raise CodecException(f"Cannot encode {datum!r} as a float", cause=e) from e


class DatumReader:
    """Reads values written with ``writer_schema`` as ``reader_schema``.

    Args:
        writer_schema: The schema the payload was written with.
        reader_schema: The schema to produce values for; defaults to the
            writer schema.
        data: The data model building values.
    """

    def __init__(self, writer_schema: Schema, reader_schema: Schema = None, data: GenericData = None):
        self._writer_schema = writer_schema
        self._reader_schema = reader_schema or writer_schema
        self._data = data or GenericData()

    @property
    def writer_schema(self) -> Schema:
        return self._writer_schema

    @property
    def reader_schema(self) -> Schema:
        return self._reader_schema

    def read(self, reuse: Any, decoder: BinaryDecoder) -> Any:
        """Decode one value.

        Args:
            reuse: A previously decoded value whose records may be filled
                in place, or ``None``.
            decoder: The decoder positioned at the value.

        Raises:
            CodecException: If the payload is truncated or the schemas are
                incompatible.
        """
        return self._read(reuse, self._writer_schema, self._reader_schema, decoder)

    def _read(self, old: Any, writer: Schema, reader: Schema, decoder: BinaryDecoder) -> Any:
        if writer.type == SchemaType.UNION:
            index = decoder.read_index()
            if not 0 <= index < len(writer.branches):
                raise CodecException(f"Union index {index} out of range for {len(writer.branches)} branches")
            return self._read(old, writer.branches[index], reader, decoder)
        if reader.type == SchemaType.UNION:
            branch = self._match_branch(writer, reader)
            if branch is None:
                raise CodecException(f"Writer schema {writer.full_name} matches no branch of the reader union")
            return self._read(old, writer, branch, decoder)
        if not _compatible(writer, reader):
            raise CodecException(f"Cannot read {writer.full_name} as {reader.full_name}")

        kind = writer.type
        if kind == SchemaType.NULL:
            return decoder.read_null()
        if kind == SchemaType.BOOLEAN:
            return decoder.read_boolean()
        if kind == SchemaType.INT:
            return _promote(decoder.read_int(), reader)
        if kind == SchemaType.LONG:
            return _promote(decoder.read_long(), reader)
        if kind == SchemaType.FLOAT:
            return decoder.read_float()
        if kind == SchemaType.DOUBLE:
            return decoder.read_double()
        if kind == SchemaType.STRING:
            value = decoder.read_string()
            return encode_utf8(value) if reader.type == SchemaType.BYTES else value
        if kind == SchemaType.BYTES:
            value = decoder.read_bytes()
            return decode_utf8(value) if reader.type == SchemaType.STRING else value
        if kind == SchemaType.ENUM:
            return self._read_enum(writer, reader, decoder)
        if kind == SchemaType.ARRAY:
            count = decoder.read_count()
            items = [self._read(None, writer.items, reader.items, decoder) for _ in range(count)]
            return self._data.new_array(old, reader, items)
        if kind == SchemaType.MAP:
            count = decoder.read_count()
            result = {}
            for _ in range(count):
                key = self._read(None, writer.keys, reader.keys, decoder)
                result[key] = self._read(None, writer.values, reader.values, decoder)
            return result
        return self._read_record(old, writer, reader, decoder)

    def _read_enum(self, writer: Schema, reader: Schema, decoder: BinaryDecoder) -> Any:
        index = decoder.read_int()
        if not 0 <= index < len(writer.symbols):
            raise CodecException(f"Enum index {index} out of range for {writer.full_name}")
        symbol = writer.symbols[index]
        if symbol not in reader.symbols:
            raise CodecException(f"Symbol {symbol} is not defined by reader enum {reader.full_name}")
        return self._data.new_enum(reader, symbol)

    def _read_record(self, old: Any, writer: Schema, reader: Schema, decoder: BinaryDecoder) -> Any:
        record = self._data.new_record(old, reader)
        reused = record is old
        for writer_field in writer.fields:
            reader_field = reader.get_field(writer_field.name)
            if reader_field is None:
                # consume and discard
                self._read(None, writer_field.schema, writer_field.schema, decoder)
                continue
            previous = self._data.get_field(record, reader_field.name) if reused else None
            value = self._read(previous, writer_field.schema, reader_field.schema, decoder)
            self._data.set_field(record, reader_field.name, value)
        for reader_field in reader.fields:
            if writer.get_field(reader_field.name) is None:
                self._data.set_field(
                    record, reader_field.name, self._data.field_default(reader, reader_field.name)
                )
        return record

    @staticmethod
    def _match_branch(writer: Schema, union: Schema) -> Optional[Schema]:
        for branch in union.branches:
            if branch.type == writer.type and _same_name(writer, branch):
                return branch
        for branch in union.branches:
            if _compatible(writer, branch):
                return branch
        return None


def _same_name(writer: Schema, reader: Schema) -> bool:
    if writer.name is None or reader.name is None:
        return True
    return writer.name == reader.name


def _compatible(writer: Schema, reader: Schema) -> bool:
    if writer.type == reader.type:
        return _same_name(writer, reader)
    return reader.type in _PROMOTIONS.get(writer.type, ())


def _promote(value: int, reader: Schema) -> Any:
    if reader.type in (SchemaType.FLOAT, SchemaType.DOUBLE):
        return float(value)
    return value
