"""Subject naming strategies.

A strategy decides under which registry subject a schema is registered for
a given topic.
"""

from abc import ABC, abstractmethod
from typing import Dict, Type, Union

from reflectserde.exceptions import ConfigurationException, IllegalArgumentException
from reflectserde.serialization.schema import NAMED_TYPES, Schema


class SubjectNameStrategy(ABC):
    """Abstract subject naming strategy."""

    @abstractmethod
    def subject_name(self, topic: str, is_key: bool, schema: Schema) -> str:
        pass


class TopicNameStrategy(SubjectNameStrategy):
    """``<topic>-key`` or ``<topic>-value``."""

    def subject_name(self, topic: str, is_key: bool, schema: Schema) -> str:
        return f"{topic}-{'key' if is_key else 'value'}"


class RecordNameStrategy(SubjectNameStrategy):
    """The full name of the record schema."""

    def subject_name(self, topic: str, is_key: bool, schema: Schema) -> str:
        return _record_name(schema)


class TopicRecordNameStrategy(SubjectNameStrategy):
    """``<topic>-<record full name>``."""

    def subject_name(self, topic: str, is_key: bool, schema: Schema) -> str:
        return f"{topic}-{_record_name(schema)}"


def _record_name(schema: Schema) -> str:
    if schema.type not in NAMED_TYPES:
        raise IllegalArgumentException(
            f"Record name strategies need a named schema, got {schema.type.value}"
        )
    return schema.full_name


SUBJECT_NAME_STRATEGIES: Dict[str, Type[SubjectNameStrategy]] = {
    "topic_name": TopicNameStrategy,
    "record_name": RecordNameStrategy,
    "topic_record_name": TopicRecordNameStrategy,
}


def get_subject_name_strategy(
    strategy: Union[str, SubjectNameStrategy, Type[SubjectNameStrategy]]
) -> SubjectNameStrategy:
    """Get a strategy from its configuration name, class or instance.

    Raises:
        ConfigurationException: If the name is unknown.
    """
    if isinstance(strategy, SubjectNameStrategy):
        return strategy
    if isinstance(strategy, type) and issubclass(strategy, SubjectNameStrategy):
        return strategy()
    strategy_class = SUBJECT_NAME_STRATEGIES.get(str(strategy).lower())
    if strategy_class is None:
        raise ConfigurationException(
            f"Unknown subject name strategy '{strategy}', "
            f"expected one of {sorted(SUBJECT_NAME_STRATEGIES)}"
        )
    return strategy_class()
