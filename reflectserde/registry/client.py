"""Schema registry clients.

A registry assigns a numeric id to every schema registered under a
subject. The id, not the schema, travels in each message frame.
"""

import base64
import json
import threading
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

from reflectserde.exceptions import (
    ConfigurationException,
    IllegalStateException,
    SchemaRegistryClientException,
)
from reflectserde.logging import get_logger
from reflectserde.serialization.schema import Schema

_logger = get_logger("registry")

_MOCK_URL_PREFIX = "mock://"
_CONTENT_TYPE = "application/vnd.schemaregistry.v1+json"
_DEFAULT_TIMEOUT = 10.0

SUBJECT_NOT_FOUND = 40401
SCHEMA_NOT_FOUND = 40403


class SchemaRegistryClient(ABC):
    """Abstract schema registry client."""

    @abstractmethod
    def register(self, subject: str, schema: Schema) -> int:
        """Register a schema under a subject, returning its id.

        Registering the same schema again returns the same id.
        """
        pass

    @abstractmethod
    def get_id(self, subject: str, schema: Schema) -> int:
        """Look up the id of a schema already registered under a subject.

        Raises:
            SchemaRegistryClientException: If the schema is not registered.
        """
        pass

    @abstractmethod
    def get_by_id(self, schema_id: int) -> Schema:
        """Get the schema with the given id.

        Raises:
            SchemaRegistryClientException: If no schema has that id.
        """
        pass

    def close(self) -> None:
        """Release resources held by the client."""
        pass


class MockSchemaRegistryClient(SchemaRegistryClient):
    """In-memory schema registry.

    Ids start at 1 and are shared across subjects: the same schema gets the
    same id wherever it is registered. Instances obtained through
    :meth:`for_scope` are shared by everyone using the same scope name,
    which is what ``mock://<scope>`` registry URLs resolve to.
    """

    _scopes: Dict[str, "MockSchemaRegistryClient"] = {}
    _scopes_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self._ids: Dict[Schema, int] = {}
        self._schemas: Dict[int, Schema] = {}
        self._subjects: Dict[str, List[int]] = {}
        self._next_id = 1

    @classmethod
    def for_scope(cls, scope: str) -> "MockSchemaRegistryClient":
        with cls._scopes_lock:
            client = cls._scopes.get(scope)
            if client is None:
                client = cls()
                cls._scopes[scope] = client
            return client

    @classmethod
    def drop_scope(cls, scope: str) -> None:
        with cls._scopes_lock:
            cls._scopes.pop(scope, None)

    def register(self, subject: str, schema: Schema) -> int:
        with self._lock:
            schema_id = self._ids.get(schema)
            if schema_id is None:
                schema_id = self._next_id
                self._next_id += 1
                self._ids[schema] = schema_id
                self._schemas[schema_id] = schema
            versions = self._subjects.setdefault(subject, [])
            if schema_id not in versions:
                versions.append(schema_id)
            return schema_id

    def get_id(self, subject: str, schema: Schema) -> int:
        with self._lock:
            schema_id = self._ids.get(schema)
            if schema_id is None or schema_id not in self._subjects.get(subject, []):
                raise SchemaRegistryClientException(
                    f"Schema not found under subject {subject}", status=404, error_code=SCHEMA_NOT_FOUND
                )
            return schema_id

    def get_by_id(self, schema_id: int) -> Schema:
        with self._lock:
            schema = self._schemas.get(schema_id)
        if schema is None:
            raise SchemaRegistryClientException(
                f"Schema {schema_id} not found", status=404, error_code=SCHEMA_NOT_FOUND
            )
        return schema

    def get_all_subjects(self) -> List[str]:
        with self._lock:
            return list(self._subjects)

    def get_versions(self, subject: str) -> List[int]:
        """Get the ids registered under a subject, oldest first."""
        with self._lock:
            return list(self._subjects.get(subject, []))


class CachedSchemaRegistryClient(SchemaRegistryClient):
    """Schema registry client for the Confluent REST API.

    Lookups are cached: each subject keeps a schema to id map and ids map
    back to their schema, so a schema costs at most one request per subject.
    Requests fail over to the next URL when a registry is unreachable.

    Args:
        urls: Registry base URLs, as a list or a comma separated string.
        max_schemas_per_subject: Maximum distinct schemas cached per subject.
        request_timeout: HTTP request timeout in seconds.
        basic_auth_user_info: ``user:password`` credentials, if required.
        headers: Extra HTTP headers sent with every request.

    Example:
        >>> client = CachedSchemaRegistryClient("http://localhost:8081")
        >>> schema_id = client.register("orders-value", schema)
    """

    def __init__(
        self,
        urls: Union[str, List[str]],
        max_schemas_per_subject: int = 1000,
        request_timeout: float = _DEFAULT_TIMEOUT,
        basic_auth_user_info: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if isinstance(urls, str):
            urls = urls.split(",")
        self._urls = [url.strip().rstrip("/") for url in urls if url.strip()]
        if not self._urls:
            raise ConfigurationException("At least one schema registry URL is required")
        self._max_schemas_per_subject = max_schemas_per_subject
        self._request_timeout = request_timeout
        self._headers = {"Accept": f"{_CONTENT_TYPE}, application/json", "Content-Type": _CONTENT_TYPE}
        if basic_auth_user_info:
            token = base64.b64encode(basic_auth_user_info.encode("utf-8")).decode("ascii")
            self._headers["Authorization"] = f"Basic {token}"
        self._headers.update(headers or {})
        self._lock = threading.Lock()
        self._subject_ids: Dict[str, Dict[Schema, int]] = {}
        self._schemas: Dict[int, Schema] = {}

    @property
    def urls(self) -> List[str]:
        return list(self._urls)

    def register(self, subject: str, schema: Schema) -> int:
        return self._lookup(subject, schema, f"/subjects/{_quote(subject)}/versions")

    def get_id(self, subject: str, schema: Schema) -> int:
        return self._lookup(subject, schema, f"/subjects/{_quote(subject)}")

    def _lookup(self, subject: str, schema: Schema, path: str) -> int:
        with self._lock:
            ids = self._subject_ids.setdefault(subject, {})
            schema_id = ids.get(schema)
            if schema_id is not None:
                return schema_id
            if len(ids) >= self._max_schemas_per_subject:
                raise IllegalStateException(
                    f"Too many schemas registered for subject {subject}: "
                    f"limit is {self._max_schemas_per_subject}"
                )
        response = self._request("POST", path, {"schema": schema.to_json()})
        schema_id = int(response["id"])
        with self._lock:
            self._subject_ids[subject][schema] = schema_id
            self._schemas.setdefault(schema_id, schema)
        return schema_id

    def get_by_id(self, schema_id: int) -> Schema:
        with self._lock:
            schema = self._schemas.get(schema_id)
        if schema is not None:
            return schema
        response = self._request("GET", f"/schemas/ids/{int(schema_id)}")
        schema = Schema.parse(response["schema"])
        with self._lock:
            return self._schemas.setdefault(schema_id, schema)

    def _request(self, method: str, path: str, body: dict = None) -> dict:
        """Send a request to the first reachable registry.

        Raises:
            SchemaRegistryClientException: On an error response, an invalid
                response, or when no registry is reachable.
        """
        data = json.dumps(body).encode("utf-8") if body is not None else None
        last_error: Optional[urllib.error.URLError] = None
        for base_url in self._urls:
            url = f"{base_url}{path}"
            request = urllib.request.Request(url, data=data, headers=self._headers, method=method)
            try:
                with urllib.request.urlopen(request, timeout=self._request_timeout) as response:
                    return json.loads(response.read().decode("utf-8"))
            except urllib.error.HTTPError as e:
                raise self._error_from_response(url, e) from e
            except urllib.error.URLError as e:
                _logger.warning("Schema registry %s is unreachable: %s", base_url, e.reason)
                last_error = e
            except json.JSONDecodeError as e:
                raise SchemaRegistryClientException(
                    f"Invalid response from schema registry {url}: {e}", cause=e
                ) from e
        raise SchemaRegistryClientException(
            f"No schema registry reachable: {last_error.reason}", cause=last_error
        ) from last_error

    @staticmethod
    def _error_from_response(url: str, error: urllib.error.HTTPError) -> SchemaRegistryClientException:
        message = error.reason
        error_code = -1
        try:
            payload = json.loads(error.read().decode("utf-8"))
            message = payload.get("message", message)
            error_code = int(payload.get("error_code", error_code))
        except (OSError, ValueError, AttributeError) as e:
            _logger.debug("Unreadable error body from %s: %s", url, e)
        return SchemaRegistryClientException(
            f"Schema registry request {url} failed with status {error.code}: {message}",
            status=error.code,
            error_code=error_code,
            cause=error,
        )


def _quote(subject: str) -> str:
    return urllib.parse.quote(subject, safe="")


def create_registry_client(
    urls: Union[str, List[str]],
    max_schemas_per_subject: int = 1000,
    request_timeout: float = _DEFAULT_TIMEOUT,
    basic_auth_user_info: Optional[str] = None,
) -> SchemaRegistryClient:
    """Create a registry client for the given URLs.

    ``mock://<scope>`` URLs give the shared in-memory registry of that scope.
    """
    if isinstance(urls, str):
        urls = [url.strip() for url in urls.split(",") if url.strip()]
    mock_urls = [url for url in urls if url.startswith(_MOCK_URL_PREFIX)]
    if mock_urls:
        if len(mock_urls) != len(urls):
            raise ConfigurationException("Cannot mix mock:// and real schema registry URLs")
        return MockSchemaRegistryClient.for_scope(mock_urls[0][len(_MOCK_URL_PREFIX):])
    return CachedSchemaRegistryClient(
        urls,
        max_schemas_per_subject=max_schemas_per_subject,
        request_timeout=request_timeout,
        basic_auth_user_info=basic_auth_user_info,
    )
