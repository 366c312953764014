"""reflect-serde exceptions.

This module defines the exception hierarchy for reflect-serde.
All exceptions inherit from :class:`ReflectSerdeException`.

Example:
    Handling serde exceptions::

        from reflectserde.exceptions import (
            MalformedMessageException,
            SerializationException,
        )

        try:
            value = deserializer.deserialize("orders", payload)
        except MalformedMessageException:
            print("Not a schema-framed message")
        except SerializationException as e:
            print(f"Failed for schema id {e.schema_id}: {e}")
"""

from typing import Any, Optional


class ReflectSerdeException(Exception):
    """Base class for all reflect-serde exceptions.

    Args:
        message: The error message describing the exception.
        cause: The underlying exception that caused this error, if any.

    Attributes:
        cause: The underlying cause of this exception, if any.
    """

    def __init__(self, message: str = "", cause: Exception = None):
        super().__init__(message)
        self.cause = cause


class IllegalStateException(ReflectSerdeException):
    """Raised when an operation is invoked on an illegal state.

    Example:
        - Serializing before a schema registry client is configured
        - Registering more schemas for a subject than allowed
    """
    pass


class IllegalArgumentException(ReflectSerdeException):
    """Raised when an illegal or inappropriate argument is passed.

    Example:
        - Requesting a schema for a type that has no schema representation
        - Unresolved forward references in annotations
    """
    pass


class ConfigurationException(ReflectSerdeException):
    """Raised when the serde configuration is invalid or inconsistent.

    Example:
        - Negative request timeout
        - Unknown subject name strategy
        - No schema registry URL and no client
    """
    pass


class UnresolvableTypeVariableException(IllegalArgumentException):
    """Raised when a type variable is still unbound at schema-build time.

    This happens when a schema is requested for a bare generic class (no
    instance, no explicit type arguments): there is no witness for the
    variable and no enclosing parameterized type binds it.

    Args:
        message: The error message.
        type_variable: The type variable that could not be resolved.
    """

    def __init__(self, message: str, type_variable: Any = None):
        super().__init__(message)
        self._type_variable = type_variable

    @property
    def type_variable(self) -> Any:
        """Get the unresolved type variable."""
        return self._type_variable


class SerializationException(ReflectSerdeException):
    """Raised when serialization or deserialization of a message fails.

    Args:
        message: The error message.
        cause: The underlying exception, if any.
        schema_id: The schema id being used, or -1 when not known yet.
        subject: The registry subject being used, if any.
    """

    def __init__(
        self,
        message: str = "",
        cause: Exception = None,
        schema_id: int = -1,
        subject: Optional[str] = None,
    ):
        super().__init__(message, cause)
        self._schema_id = schema_id
        self._subject = subject

    @property
    def schema_id(self) -> int:
        """Get the schema id of the failed message, -1 if unknown."""
        return self._schema_id

    @property
    def subject(self) -> Optional[str]:
        """Get the registry subject of the failed message, if any."""
        return self._subject


class MalformedMessageException(SerializationException):
    """Raised when a message does not start with the expected frame header."""
    pass


class SchemaRegistryException(SerializationException):
    """Raised when registering, looking up or fetching a schema fails."""
    pass


class CodecException(SerializationException):
    """Raised when the payload cannot be encoded or decoded against a schema.

    Example:
        - Truncated payload bytes
        - Value not matching any branch of a union
        - Record missing a field required by the writer schema
    """
    pass


class SchemaRegistryClientException(ReflectSerdeException):
    """Raised by schema registry clients on failed requests.

    Args:
        message: The error message.
        status: HTTP status code, or -1 when no response was received.
        error_code: Registry specific error code, or -1.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        status: int = -1,
        error_code: int = -1,
        cause: Exception = None,
    ):
        super().__init__(message, cause)
        self._status = status
        self._error_code = error_code

    @property
    def status(self) -> int:
        """Get the HTTP status code."""
        return self._status

    @property
    def error_code(self) -> int:
        """Get the registry error code."""
        return self._error_code
