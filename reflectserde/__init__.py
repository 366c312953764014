"""Schema registry serde for generic Python classes."""

from reflectserde.exceptions import (
    ReflectSerdeException,
    IllegalStateException,
    IllegalArgumentException,
    ConfigurationException,
    UnresolvableTypeVariableException,
    SerializationException,
    MalformedMessageException,
    SchemaRegistryException,
    CodecException,
    SchemaRegistryClientException,
)
from reflectserde.config import SerdeConfig
from reflectserde.serialization.schema import Schema, SchemaType
from reflectserde.serialization.datum import GenericRecord, GenericRecordBuilder
from reflectserde.reflect.generic import GenericReflectData
from reflectserde.reflect.evidence import TypeEvidenceResolver
from reflectserde.registry.client import (
    SchemaRegistryClient,
    MockSchemaRegistryClient,
    CachedSchemaRegistryClient,
)
from reflectserde.serialization.serde import (
    ReflectSerializer,
    ReflectDeserializer,
    ReflectSerde,
)

__all__ = [
    "ReflectSerdeException",
    "IllegalStateException",
    "IllegalArgumentException",
    "ConfigurationException",
    "UnresolvableTypeVariableException",
    "SerializationException",
    "MalformedMessageException",
    "SchemaRegistryException",
    "CodecException",
    "SchemaRegistryClientException",
    "SerdeConfig",
    "Schema",
    "SchemaType",
    "GenericRecord",
    "GenericRecordBuilder",
    "GenericReflectData",
    "TypeEvidenceResolver",
    "SchemaRegistryClient",
    "MockSchemaRegistryClient",
    "CachedSchemaRegistryClient",
    "ReflectSerializer",
    "ReflectDeserializer",
    "ReflectSerde",
]

__version__ = "0.1.0"
