"""Schema registry clients and subject naming strategies."""

from reflectserde.registry.client import (
    CachedSchemaRegistryClient,
    MockSchemaRegistryClient,
    SchemaRegistryClient,
    create_registry_client,
)
from reflectserde.registry.subject import (
    RecordNameStrategy,
    SubjectNameStrategy,
    TopicNameStrategy,
    TopicRecordNameStrategy,
    get_subject_name_strategy,
)

__all__ = [
    "CachedSchemaRegistryClient",
    "MockSchemaRegistryClient",
    "SchemaRegistryClient",
    "create_registry_client",
    "RecordNameStrategy",
    "SubjectNameStrategy",
    "TopicNameStrategy",
    "TopicRecordNameStrategy",
    "get_subject_name_strategy",
]
