"""Serde configuration.

Example:
    Configuration from a dictionary::

        config = SerdeConfig.from_dict({
            "schema_registry_urls": ["http://localhost:8081"],
            "auto_register_schemas": False,
        })

    From a YAML file::

        # reflect-serde.yml
        reflect_serde:
          schema_registry_urls: http://registry-1:8081,http://registry-2:8081
          subject_name_strategy: topic_record_name

        config = SerdeConfig.from_yaml("reflect-serde.yml")
"""

import os
from typing import Any, Dict, List, Optional, Union

from reflectserde.exceptions import ConfigurationException
from reflectserde.logging import COMPONENTS, parse_level
from reflectserde.registry.subject import SUBJECT_NAME_STRATEGIES

_ROOT_KEY = "reflect_serde"


def _as_url_list(value: Union[str, List[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [url.strip() for url in value.split(",") if url.strip()]
    return [str(url).strip() for url in value]


class SerdeConfig:
    """Configuration shared by the reflect serializer and deserializer."""

    def __init__(
        self,
        schema_registry_urls: Union[str, List[str], None] = None,
        max_schemas_per_subject: int = 1000,
        auto_register_schemas: bool = True,
        is_key: bool = False,
        subject_name_strategy: str = "topic_name",
        request_timeout: float = 10.0,
        basic_auth_user_info: Optional[str] = None,
        reuse_decoded_objects: bool = False,
        log_levels: Optional[Dict[str, Union[int, str]]] = None,
    ):
        self._schema_registry_urls = _as_url_list(schema_registry_urls)
        self._max_schemas_per_subject = max_schemas_per_subject
        self._auto_register_schemas = auto_register_schemas
        self._is_key = is_key
        self._subject_name_strategy = subject_name_strategy
        self._request_timeout = request_timeout
        self._basic_auth_user_info = basic_auth_user_info
        self._reuse_decoded_objects = reuse_decoded_objects
        self._log_levels = dict(log_levels or {})
        self._validate()

    def _validate(self) -> None:
        if self._max_schemas_per_subject < 1:
            raise ConfigurationException("max_schemas_per_subject must be at least 1")
        if self._request_timeout <= 0:
            raise ConfigurationException("request_timeout must be positive")
        if str(self._subject_name_strategy).lower() not in SUBJECT_NAME_STRATEGIES:
            raise ConfigurationException(
                f"Invalid subject_name_strategy: {self._subject_name_strategy}"
            )
        if self._basic_auth_user_info is not None and ":" not in self._basic_auth_user_info:
            raise ConfigurationException("basic_auth_user_info must be in user:password form")
        for component, level in self._log_levels.items():
            if component not in COMPONENTS:
                raise ConfigurationException(f"Unknown logging component in log_levels: {component}")
            parse_level(level)

    @property
    def schema_registry_urls(self) -> List[str]:
        """Get the schema registry base URLs."""
        return list(self._schema_registry_urls)

    @schema_registry_urls.setter
    def schema_registry_urls(self, value: Union[str, List[str]]) -> None:
        self._schema_registry_urls = _as_url_list(value)

    @property
    def max_schemas_per_subject(self) -> int:
        """Get the maximum number of schemas cached per subject."""
        return self._max_schemas_per_subject

    @max_schemas_per_subject.setter
    def max_schemas_per_subject(self, value: int) -> None:
        self._max_schemas_per_subject = value
        self._validate()

    @property
    def auto_register_schemas(self) -> bool:
        """Whether the serializer registers schemas, or only looks them up."""
        return self._auto_register_schemas

    @auto_register_schemas.setter
    def auto_register_schemas(self, value: bool) -> None:
        self._auto_register_schemas = value

    @property
    def is_key(self) -> bool:
        """Whether the serde handles message keys rather than values."""
        return self._is_key

    @is_key.setter
    def is_key(self, value: bool) -> None:
        self._is_key = value

    @property
    def subject_name_strategy(self) -> str:
        return self._subject_name_strategy

    @subject_name_strategy.setter
    def subject_name_strategy(self, value: str) -> None:
        self._subject_name_strategy = value
        self._validate()

    @property
    def request_timeout(self) -> float:
        """Get the registry request timeout in seconds."""
        return self._request_timeout

    @request_timeout.setter
    def request_timeout(self, value: float) -> None:
        self._request_timeout = value
        self._validate()

    @property
    def basic_auth_user_info(self) -> Optional[str]:
        return self._basic_auth_user_info

    @basic_auth_user_info.setter
    def basic_auth_user_info(self, value: Optional[str]) -> None:
        self._basic_auth_user_info = value
        self._validate()

    @property
    def reuse_decoded_objects(self) -> bool:
        """Whether decoding fills the previously decoded object in place."""
        return self._reuse_decoded_objects

    @reuse_decoded_objects.setter
    def reuse_decoded_objects(self, value: bool) -> None:
        self._reuse_decoded_objects = value

    @property
    def log_levels(self) -> Dict[str, Union[int, str]]:
        """Get the logging levels applied per component on configure."""
        return dict(self._log_levels)

    @log_levels.setter
    def log_levels(self, value: Dict[str, Union[int, str]]) -> None:
        self._log_levels = dict(value or {})
        self._validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_registry_urls": self.schema_registry_urls,
            "max_schemas_per_subject": self._max_schemas_per_subject,
            "auto_register_schemas": self._auto_register_schemas,
            "is_key": self._is_key,
            "subject_name_strategy": self._subject_name_strategy,
            "request_timeout": self._request_timeout,
            "basic_auth_user_info": self._basic_auth_user_info,
            "reuse_decoded_objects": self._reuse_decoded_objects,
            "log_levels": self.log_levels,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SerdeConfig":
        """Create a configuration from a dictionary.

        Raises:
            ConfigurationException: On unknown keys or invalid values.
        """
        if _ROOT_KEY in data:
            data = data[_ROOT_KEY] or {}
        known = set(cls().to_dict())
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationException(f"Unknown configuration keys: {', '.join(unknown)}")
        try:
            return cls(
                schema_registry_urls=data.get("schema_registry_urls"),
                max_schemas_per_subject=int(data.get("max_schemas_per_subject", 1000)),
                auto_register_schemas=bool(data.get("auto_register_schemas", True)),
                is_key=bool(data.get("is_key", False)),
                subject_name_strategy=data.get("subject_name_strategy", "topic_name"),
                request_timeout=float(data.get("request_timeout", 10.0)),
                basic_auth_user_info=data.get("basic_auth_user_info"),
                reuse_decoded_objects=bool(data.get("reuse_decoded_objects", False)),
                log_levels=data.get("log_levels"),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid configuration value: {e}", cause=e) from e

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "SerdeConfig":
        """Load configuration from a YAML file.

        Args:
            yaml_path: Path to the YAML configuration file.

        Raises:
            ConfigurationException: If the file cannot be read or parsed.
        """
        try:
            import yaml
        except ImportError:
            raise ConfigurationException(
                "PyYAML is required for YAML configuration loading. "
                "Install it with: pip install pyyaml"
            )

        if not os.path.exists(yaml_path):
            raise ConfigurationException(f"Configuration file not found: {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}")
        except IOError as e:
            raise ConfigurationException(f"Failed to read configuration file: {e}")

        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_content: str) -> "SerdeConfig":
        """Load configuration from a YAML string.

        Raises:
            ConfigurationException: If the YAML cannot be parsed.
        """
        try:
            import yaml
        except ImportError:
            raise ConfigurationException(
                "PyYAML is required for YAML configuration loading. "
                "Install it with: pip install pyyaml"
            )

        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}")

        return cls.from_dict(data or {})

    def __repr__(self) -> str:
        return f"SerdeConfig({self.to_dict()!r})"
