"""Schema-registry framed serializer and deserializer.

Every message is framed as::

    [0x00][schema id: int32 big-endian][payload]

The payload is the object encoded with the schema registered under the id.
Schemas of generic objects are inferred from their field values, so
``Box("text")`` and ``Box(3)`` register different schemas.

Example:
    >>> serde = ReflectSerde()
    >>> serde.configure({"schema_registry_urls": "mock://orders"})
    >>> data = serde.serializer().serialize("orders", Box("text"))
    >>> serde.deserializer().deserialize("orders", data)
    Box(value='text')
"""

import struct
from typing import Any, Dict, Optional, Union

from reflectserde.config import SerdeConfig
from reflectserde.exceptions import (
    CodecException,
    IllegalStateException,
    MalformedMessageException,
    SchemaRegistryClientException,
    SchemaRegistryException,
)
from reflectserde.logging import get_logger, set_level
from reflectserde.reflect.generic import GenericReflectData
from reflectserde.registry.client import SchemaRegistryClient, create_registry_client
from reflectserde.registry.subject import SubjectNameStrategy, get_subject_name_strategy
from reflectserde.serialization.datum import DatumReader, DatumWriter
from reflectserde.serialization.io import CoderPool
from reflectserde.serialization.schema import Schema

_logger = get_logger("serde")

MAGIC_BYTE = 0
HEADER_FORMAT = ">bi"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)


def _schema_of(data: GenericReflectData, schema_or_type: Any) -> Optional[Schema]:
    if schema_or_type is None or isinstance(schema_or_type, Schema):
        return schema_or_type
    return data.get_schema(schema_or_type)


def _as_config(config: Union[SerdeConfig, dict]) -> SerdeConfig:
    return config if isinstance(config, SerdeConfig) else SerdeConfig.from_dict(config)


def _apply_log_levels(config: SerdeConfig) -> None:
    for component, level in config.log_levels.items():
        set_level(level, component)


def _client_for(config: SerdeConfig) -> SchemaRegistryClient:
    return create_registry_client(
        config.schema_registry_urls,
        max_schemas_per_subject=config.max_schemas_per_subject,
        request_timeout=config.request_timeout,
        basic_auth_user_info=config.basic_auth_user_info,
    )


class ReflectSerializer:
    """Serializes objects into schema-id framed messages.

    Args:
        client: The schema registry client. When omitted, one is created
            from the registry URLs passed to :meth:`configure`.
        schema_or_type: A fixed writer schema, or a type to derive it from.
            When omitted the schema is inferred from each object.

    Not safe for concurrent use.
    """

    def __init__(self, client: SchemaRegistryClient = None, schema_or_type: Any = None):
        self._client = client
        self._data = GenericReflectData()
        self._schema = _schema_of(self._data, schema_or_type)
        self._writers: Dict[int, DatumWriter] = {}
        self._coders = CoderPool()
        self._subject_name_strategy: SubjectNameStrategy = get_subject_name_strategy("topic_name")
        self._auto_register = True
        self._is_key = False

    @property
    def schema(self) -> Optional[Schema]:
        """Get the fixed writer schema, if any."""
        return self._schema

    @property
    def client(self) -> Optional[SchemaRegistryClient]:
        return self._client

    def configure(self, config: Union[SerdeConfig, dict], is_key: Optional[bool] = None) -> None:
        """Apply a configuration.

        Args:
            config: A :class:`SerdeConfig` or its dictionary form.
            is_key: Whether message keys are serialized; defaults to the
                ``is_key`` configuration value.
        """
        config = _as_config(config)
        _apply_log_levels(config)
        self._is_key = config.is_key if is_key is None else is_key
        self._auto_register = config.auto_register_schemas
        self._subject_name_strategy = get_subject_name_strategy(config.subject_name_strategy)
        if self._client is None and config.schema_registry_urls:
            self._client = _client_for(config)

    def serialize(self, topic: str, obj: Any) -> Optional[bytes]:
        """Serialize an object into a framed message.

        Returns:
            The message bytes, or ``None`` for a ``None`` object.

        Raises:
            SchemaRegistryException: If the schema cannot be registered or
                found.
            CodecException: If the object does not fit its schema.
        """
        if obj is None:
            return None
        if self._client is None:
            raise IllegalStateException("No schema registry client configured")

        schema = self._schema if self._schema is not None else self._data.get_schema(obj)
        subject = self._subject_name_strategy.subject_name(topic, self._is_key, schema)
        schema_id = -1
        try:
            if self._auto_register:
                schema_id = self._client.register(subject, schema)
            else:
                schema_id = self._client.get_id(subject, schema)
        except SchemaRegistryClientException as e:
            action = "registering" if self._auto_register else "retrieving"
            raise SchemaRegistryException(
                f"Error {action} schema for subject {subject}: {e}", cause=e, subject=subject
            ) from e

        writer = self._writers.get(schema_id)
        if writer is None:
            writer = DatumWriter(schema, self._data)
            self._writers[schema_id] = writer
        try:
            with self._coders.borrow_encoder() as encoder:
                encoder.write_raw(struct.pack(HEADER_FORMAT, MAGIC_BYTE, schema_id))
                writer.write(obj, encoder)
                return encoder.to_bytes()
        except (CodecException, TypeError, ValueError) as e:
            raise CodecException(
                f"Error serializing message with schema id {schema_id}: {e}",
                cause=e,
                schema_id=schema_id,
                subject=subject,
            ) from e

    def close(self) -> None:
        self._writers.clear()


class ReflectDeserializer:
    """Deserializes schema-id framed messages.

    Args:
        client: The schema registry client. When omitted, one is created
            from the registry URLs passed to :meth:`configure`.
        schema_or_type: A reader schema, or a type to derive it from. When
            omitted each message is read with its own writer schema.

    Not safe for concurrent use.
    """

    def __init__(self, client: SchemaRegistryClient = None, schema_or_type: Any = None):
        self._client = client
        self._data = GenericReflectData()
        self._reader_schema = _schema_of(self._data, schema_or_type)
        self._readers: Dict[int, DatumReader] = {}
        self._coders = CoderPool()
        self._reuse_decoded_objects = False
        self._previous: Any = None

    @property
    def reader_schema(self) -> Optional[Schema]:
        return self._reader_schema

    @property
    def client(self) -> Optional[SchemaRegistryClient]:
        return self._client

    def configure(self, config: Union[SerdeConfig, dict], is_key: Optional[bool] = None) -> None:
        config = _as_config(config)
        _apply_log_levels(config)
        self._reuse_decoded_objects = config.reuse_decoded_objects
        if self._client is None and config.schema_registry_urls:
            self._client = _client_for(config)

    def deserialize(self, topic: str, data: Optional[bytes]) -> Any:
        """Deserialize a framed message.

        Returns:
            The decoded object, or ``None`` for ``None`` data.

        Raises:
            MalformedMessageException: If the frame header is missing or
                has an unknown magic byte.
            SchemaRegistryException: If the schema id is unknown.
            CodecException: If the payload cannot be decoded.
        """
        if data is None:
            return None
        if len(data) < HEADER_SIZE:
            raise MalformedMessageException(
                f"Message of {len(data)} bytes is shorter than the {HEADER_SIZE} byte header"
            )
        magic, schema_id = struct.unpack_from(HEADER_FORMAT, data, 0)
        if magic != MAGIC_BYTE:
            raise MalformedMessageException(f"Unknown magic byte {magic}")
        if self._client is None:
            raise IllegalStateException("No schema registry client configured")

        reader = self._readers.get(schema_id)
        if reader is None:
            try:
                writer_schema = self._client.get_by_id(schema_id)
            except SchemaRegistryClientException as e:
                raise SchemaRegistryException(
                    f"Error retrieving schema for id {schema_id}: {e}", cause=e, schema_id=schema_id
                ) from e
            reader = DatumReader(writer_schema, self._reader_schema, self._data)
            self._readers[schema_id] = reader
            _logger.debug("Created reader for schema id %d on topic %s", schema_id, topic)

        reuse = self._previous if self._reuse_decoded_objects else None
        try:
            with self._coders.borrow_decoder(data, HEADER_SIZE) as decoder:
                result = reader.read(reuse, decoder)
        except (CodecException, TypeError, ValueError) as e:
            raise CodecException(
                f"Error deserializing message with schema id {schema_id}: {e}",
                cause=e,
                schema_id=schema_id,
            ) from e
        if self._reuse_decoded_objects:
            self._previous = result
        return result

    def close(self) -> None:
        self._readers.clear()
        self._previous = None


class ReflectSerde:
    """A serializer and deserializer pair for the same type.

    Args:
        client: The schema registry client shared by both sides.
        schema_or_type: Passed to both sides; see :class:`ReflectSerializer`
            and :class:`ReflectDeserializer`.
    """

    def __init__(self, client: SchemaRegistryClient = None, schema_or_type: Any = None):
        self._serializer = ReflectSerializer(client, schema_or_type)
        self._deserializer = ReflectDeserializer(client, schema_or_type)

    def serializer(self) -> ReflectSerializer:
        return self._serializer

    def deserializer(self) -> ReflectDeserializer:
        return self._deserializer

    def configure(self, config: Union[SerdeConfig, dict], is_key: Optional[bool] = None) -> None:
        config = _as_config(config)
        self._serializer.configure(config, is_key)
        self._deserializer.configure(config, is_key)

    def close(self) -> None:
        self._serializer.close()
        self._deserializer.close()
