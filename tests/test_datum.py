"""Tests for the datum writer and reader."""

import struct
from collections import deque

import pytest

from reflectserde.exceptions import CodecException, IllegalArgumentException
from reflectserde.reflect.generic import GenericReflectData
from reflectserde.serialization.datum import (
    DatumReader,
    DatumWriter,
    GenericData,
    GenericRecord,
    GenericRecordBuilder,
)
from reflectserde.serialization.io import BinaryDecoder, BinaryEncoder
from reflectserde.serialization.schema import Schema, SchemaType
import reflect_models as models


def encode(schema, datum, data=None):
    encoder = BinaryEncoder()
    DatumWriter(schema, data).write(datum, encoder)
    return encoder.to_bytes()


def decode(payload, writer_schema, reader_schema=None, data=None, reuse=None):
    return DatumReader(writer_schema, reader_schema, data).read(reuse, BinaryDecoder(payload))


def round_trip(datum, data=None):
    data = data or GenericReflectData()
    schema = data.get_schema(datum)
    return decode(encode(schema, datum, data), schema, data=data)


class TestBinaryLayout:
    """Tests for the encoded byte layout."""

    def test_record(self):
        data = GenericReflectData()
        payload = encode(data.get_schema(models.ValueClass), models.ValueClass(42, "test"), data)
        assert payload == struct.pack("<q", 42) + struct.pack("<i", 4) + b"test"

    def test_union_branch_index(self):
        schema = Schema.parse(["null", "string"])
        assert encode(schema, None) == struct.pack("<i", 0)
        assert encode(schema, "a") == struct.pack("<i", 1) + struct.pack("<i", 1) + b"a"

    def test_array_and_map(self):
        assert encode(Schema.parse({"type": "array", "items": "boolean"}), [True, False]) == (
            struct.pack("<i", 2) + b"\x01\x00"
        )
        assert encode(Schema.parse({"type": "map", "values": "int"}), {"k": 5}) == (
            struct.pack("<i", 1) + struct.pack("<i", 1) + b"k" + struct.pack("<i", 5)
        )

    def test_enum_ordinal(self):
        schema = GenericReflectData().get_schema(models.Color)
        assert encode(schema, models.Color.GREEN) == struct.pack("<i", 1)

    def test_encoder_reset(self):
        encoder = BinaryEncoder()
        encoder.write_long(1)
        encoder.reset()
        assert encoder.size() == 0


class TestRoundTrip:
    """Tests for decode(encode(x)) == x."""

    def test_value_class(self):
        assert round_trip(models.ValueClass(42, "test")) == models.ValueClass(42, "test")

    def test_nested(self):
        value = models.NestedValueClass(1, models.ValueClass(2, "b"))
        assert round_trip(value) == value

    def test_generic_instances(self):
        for value in (
            models.GenericClass("foo"),
            models.TwoGenericClass(1, "1"),
            models.GenericValueMapClass({"foo": "bar"}),
            models.NestedGenericValueMapClass(models.GenericValueMapClass({"foo": 10})),
            models.GenericSubClass(1.5, 2.5),
            models.GenericListClass([models.GenericClass(1), models.GenericClass(2)]),
        ):
            assert round_trip(value) == value

    def test_generic_witness_values(self):
        value = models.NestedGenericMapListValueClass(
            {"outer": {"bla": [models.GenericClass(1.0)]}},
            models.GenericClass(2.0),
            models.GenericClass(3.0),
        )
        assert round_trip(value) == value

    def test_recursive(self):
        value = models.RecursiveNode(1, models.RecursiveNode(2, models.RecursiveNode(3)))
        assert round_trip(value) == value

    def test_optional(self):
        data = GenericReflectData()
        schema = data.get_schema(models.OptionalGenericClass(3))
        decoded = decode(encode(schema, models.OptionalGenericClass(None), data), schema, data=data)
        assert decoded == models.OptionalGenericClass(None)

    def test_collections_keep_their_class(self):
        value = models.DequeClass(deque([1, 2]), ("a", "b"))
        decoded = round_trip(value)
        assert decoded == value
        assert isinstance(decoded.items, deque)
        assert isinstance(decoded.pair, tuple)

    def test_abstract_collections_decode_as_lists(self):
        value = models.AbstractCollectionClass([1, 2], ["a"])
        decoded = round_trip(value)
        assert decoded == value
        assert isinstance(decoded.numbers, list)

    def test_concrete_subclass_of_generic_base(self):
        value = models.StringGenericSubClass("base", 3)
        assert round_trip(value) == value

    def test_enum(self):
        value = models.Palette("warm", models.Color.RED, [models.Color.GREEN])
        assert round_trip(value) == value

    def test_most_general_values(self):
        data = GenericReflectData()
        schema = data.get_schema(models.GenericClass(None))
        for inner in (None, True, 7, 1.5, "s", b"b"):
            value = models.GenericClass(inner)
            assert decode(encode(schema, value, data), schema, data=data) == value

    def test_top_level_list(self):
        value = [models.ValueClass(1, "a"), models.ValueClass(2, "b")]
        assert round_trip(value) == value

    def test_back_to_back_in_one_buffer(self):
        data = GenericReflectData()
        schema = data.get_schema(models.ValueClass)
        writer = DatumWriter(schema, data)
        encoder = BinaryEncoder()
        writer.write(models.ValueClass(1, "a"), encoder)
        writer.write(models.ValueClass(2, "bb"), encoder)
        decoder = BinaryDecoder(encoder.to_bytes())
        reader = DatumReader(schema, data=data)
        assert reader.read(None, decoder) == models.ValueClass(1, "a")
        assert reader.read(None, decoder) == models.ValueClass(2, "bb")
        assert decoder.remaining() == 0


class TestSchemaResolution:
    """Tests for reading with a reader schema that differs from the writer's."""

    V2_WITHOUT_COMMENT = {
        "type": "record",
        "name": "ValueClassV2",
        "namespace": "reflect_models",
        "fields": [{"name": "x", "type": "long"}, {"name": "text", "type": "string"}],
    }

    def test_reader_field_gets_default(self):
        data = GenericReflectData()
        writer = Schema.parse(self.V2_WITHOUT_COMMENT)
        reader = data.get_schema(models.ValueClassV2)
        payload = encode(writer, {"x": 1, "text": "a"})
        assert decode(payload, writer, reader, data) == models.ValueClassV2(1, "a", "none")

    def test_writer_field_skipped(self):
        data = GenericReflectData()
        writer = data.get_schema(models.ValueClassV2)
        reader = Schema.parse(
            {
                "type": "record",
                "name": "ValueClassV2",
                "namespace": "elsewhere.missing",
                "fields": [{"name": "comment", "type": "string"}],
            }
        )
        payload = encode(writer, models.ValueClassV2(1, "a", "c"), data)
        decoded = decode(payload, writer, reader, data)
        assert isinstance(decoded, GenericRecord)
        assert decoded.to_dict() == {"comment": "c"}

    def test_numeric_promotion(self):
        payload = encode(Schema.primitive(SchemaType.INT), 3)
        assert decode(payload, Schema.primitive(SchemaType.INT), Schema.primitive(SchemaType.DOUBLE)) == 3.0

    def test_string_to_bytes(self):
        payload = encode(Schema.primitive(SchemaType.STRING), "é")
        assert decode(payload, Schema.primitive(SchemaType.STRING), Schema.primitive(SchemaType.BYTES)) == "é".encode("utf-8")

    def test_invalid_utf8_bytes_read_as_string(self):
        payload = encode(Schema.primitive(SchemaType.BYTES), b"\xff\xfe")
        with pytest.raises(CodecException):
            decode(payload, Schema.primitive(SchemaType.BYTES), Schema.primitive(SchemaType.STRING))

    def test_reader_union_branch(self):
        payload = encode(Schema.primitive(SchemaType.LONG), 5)
        reader = Schema.parse(["null", "long"])
        assert decode(payload, Schema.primitive(SchemaType.LONG), reader) == 5

    def test_incompatible(self):
        payload = encode(Schema.primitive(SchemaType.STRING), "a")
        with pytest.raises(CodecException):
            decode(payload, Schema.primitive(SchemaType.STRING), Schema.primitive(SchemaType.LONG))

    def test_unknown_enum_symbol(self):
        writer = Schema.enum("Color", "reflect_models", ["RED", "GREEN", "BLUE"])
        reader = Schema.enum("Color", "reflect_models", ["RED", "GREEN"])
        with pytest.raises(CodecException):
            decode(encode(writer, "BLUE"), writer, reader)


class TestDataModels:
    """Tests for class lookup, generic fallback and reuse."""

    def test_unknown_class_decodes_generically(self):
        schema = Schema.parse(
            {
                "type": "record",
                "name": "Gone",
                "namespace": "no.such.module",
                "fields": [{"name": "a", "type": "long"}],
            }
        )
        decoded = decode(encode(schema, {"a": 1}), schema, data=GenericReflectData())
        assert isinstance(decoded, GenericRecord)
        assert decoded["a"] == 1

    def test_generic_record_round_trip(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        record = GenericRecordBuilder(schema).set("x", 5).set("text", "t").build()
        decoded = decode(encode(schema, record), schema, data=GenericData())
        assert decoded == record

    def test_reuse_fills_previous_instance(self):
        data = GenericReflectData()
        schema = data.get_schema(models.NestedValueClass)
        previous = models.NestedValueClass(0, models.ValueClass(0, ""))
        inner = previous.value_class
        payload = encode(schema, models.NestedValueClass(1, models.ValueClass(2, "b")), data)
        decoded = decode(payload, schema, data=data, reuse=previous)
        assert decoded is previous
        assert decoded.value_class is inner
        assert inner == models.ValueClass(2, "b")

    def test_reuse_of_other_class_is_ignored(self):
        data = GenericReflectData()
        schema = data.get_schema(models.ValueClass)
        previous = models.ValueClassV2(0, "")
        decoded = decode(encode(schema, models.ValueClass(1, "a"), data), schema, data=data, reuse=previous)
        assert decoded is not previous
        assert decoded == models.ValueClass(1, "a")

    def test_mapping_can_be_written_as_record(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        payload = encode(schema, {"x": 1, "text": "a"})
        assert decode(payload, schema, data=GenericReflectData()) == models.ValueClass(1, "a")


class TestGenericRecord:
    """Tests for GenericRecord and its builder."""

    def test_unknown_field(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        with pytest.raises(IllegalArgumentException):
            GenericRecord(schema).put("missing", 1)
        with pytest.raises(IllegalArgumentException):
            GenericRecordBuilder(schema).set("missing", 1)

    def test_requires_record_schema(self):
        with pytest.raises(IllegalArgumentException):
            GenericRecord(Schema.primitive(SchemaType.LONG))

    def test_from_record(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        record = GenericRecord(schema, {"x": 1, "text": "a"})
        copy = GenericRecordBuilder(schema).from_record(record).set("x", 2).build()
        assert copy.get("x") == 2
        assert copy.get("text") == "a"
        assert record.get("x") == 1


class TestEncodingErrors:
    """Tests for values and payloads that do not fit a schema."""

    def test_wrong_field_type(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        with pytest.raises(CodecException) as exc_info:
            encode(schema, models.ValueClass("not a number", "a"))
        assert "ValueClass.x" in str(exc_info.value)

    def test_no_union_branch(self):
        with pytest.raises(CodecException):
            encode(Schema.parse(["null", "long"]), "text")

    def test_unencodable_string(self):
        with pytest.raises(CodecException):
            encode(Schema.primitive(SchemaType.STRING), "\ud800")

    def test_int_out_of_range(self):
        with pytest.raises(CodecException):
            encode(Schema.primitive(SchemaType.INT), 2 ** 40)

    def test_truncated_payload(self):
        schema = GenericReflectData().get_schema(models.ValueClass)
        payload = encode(schema, models.ValueClass(1, "abc"), GenericReflectData())
        with pytest.raises(CodecException):
            decode(payload[:-2], schema)

    def test_bad_union_index(self):
        with pytest.raises(CodecException):
            decode(struct.pack("<i", 9), Schema.parse(["null", "long"]))

    def test_negative_count(self):
        with pytest.raises(CodecException):
            decode(struct.pack("<i", -1), Schema.parse({"type": "array", "items": "long"}))
