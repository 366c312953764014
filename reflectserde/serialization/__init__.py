"""Schema model and binary datum codec."""

from reflectserde.serialization.schema import (
    CLASS_PROP,
    Field,
    Schema,
    SchemaType,
)
from reflectserde.serialization.io import (
    BinaryDecoder,
    BinaryEncoder,
    CoderPool,
)
from reflectserde.serialization.datum import (
    DatumReader,
    DatumWriter,
    GenericData,
    GenericRecord,
    GenericRecordBuilder,
)

__all__ = [
    "CLASS_PROP",
    "Field",
    "Schema",
    "SchemaType",
    "BinaryDecoder",
    "BinaryEncoder",
    "CoderPool",
    "DatumReader",
    "DatumWriter",
    "GenericData",
    "GenericRecord",
    "GenericRecordBuilder",
]
