"""Logging infrastructure for reflect-serde.

Every component logs through a child of the ``reflectserde`` logger.
Per-component levels can be set in code or through the ``log_levels``
configuration key, e.g. to silence missing-evidence warnings::

    reflect_serde:
      log_levels:
        reflect.evidence: ERROR

Example:
    >>> from reflectserde.logging import configure_logging, get_logger
    >>> configure_logging(level=logging.DEBUG)
    >>> logger = get_logger("reflect.evidence")
    >>> logger.debug("Evidence path found")
"""

import logging
from typing import Optional, Union

from reflectserde.exceptions import ConfigurationException


REFLECTSERDE_ROOT_LOGGER = "reflectserde"

COMPONENTS = ("reflect.evidence", "reflect.data", "serde", "registry")


def parse_level(level: Union[int, str]) -> int:
    """Get the numeric logging level of a level or level name.

    Raises:
        ConfigurationException: If the level name is unknown.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ConfigurationException(f"Invalid log level: {level}")
    return value


class LoggerFactory:
    """Factory for reflect-serde component loggers.

    Loggers are hierarchical under the 'reflectserde' namespace, one per
    entry of :data:`COMPONENTS`.
    """

    @classmethod
    def get_logger(cls, name: str = "") -> logging.Logger:
        """Get a logger for a reflect-serde component.

        Args:
            name: Component name (e.g., 'serde', 'reflect.evidence').
                  If empty, returns the root reflectserde logger.
        """
        if name:
            return logging.getLogger(f"{REFLECTSERDE_ROOT_LOGGER}.{name}")
        return logging.getLogger(REFLECTSERDE_ROOT_LOGGER)

    @classmethod
    def configure(
        cls,
        level: Union[int, str] = logging.INFO,
        format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handler: Optional[logging.Handler] = None,
    ) -> logging.Logger:
        """Configure the root reflect-serde logger.

        A handler is attached only when the logger has none yet.

        Returns:
            The configured root logger.
        """
        level = parse_level(level)
        logger = logging.getLogger(REFLECTSERDE_ROOT_LOGGER)
        logger.setLevel(level)

        if not logger.handlers:
            if handler is None:
                handler = logging.StreamHandler()
            handler.setLevel(level)
            handler.setFormatter(logging.Formatter(format_string))
            logger.addHandler(handler)
        return logger

    @classmethod
    def set_level(cls, level: Union[int, str], component: str = "") -> None:
        """Set the level of one component, or of the root logger.

        Raises:
            ConfigurationException: If the component or level is unknown.
        """
        if component and component not in COMPONENTS:
            raise ConfigurationException(
                f"Unknown logging component {component!r}; expected one of {', '.join(COMPONENTS)}"
            )
        cls.get_logger(component).setLevel(parse_level(level))


def get_logger(name: str = "") -> logging.Logger:
    return LoggerFactory.get_logger(name)


def configure_logging(
    level: Union[int, str] = logging.INFO,
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Configure the reflect-serde logging system.

    This is the primary entry point for setting up logging.
    """
    return LoggerFactory.configure(level, format_string, handler)


def set_level(level: Union[int, str], component: str = "") -> None:
    LoggerFactory.set_level(level, component)
