"""Unit tests for reflectserde.logging module."""

import logging

import pytest

from reflectserde.exceptions import ConfigurationException
from reflectserde.logging import (
    COMPONENTS,
    REFLECTSERDE_ROOT_LOGGER,
    LoggerFactory,
    configure_logging,
    get_logger,
    parse_level,
    set_level,
)


@pytest.fixture(autouse=True)
def restore_loggers():
    names = [REFLECTSERDE_ROOT_LOGGER] + [f"{REFLECTSERDE_ROOT_LOGGER}.{c}" for c in COMPONENTS]
    saved = {name: (logging.getLogger(name).level, list(logging.getLogger(name).handlers)) for name in names}
    yield
    for name, (level, handlers) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers[:] = handlers


class TestLoggerFactory:
    """Tests for LoggerFactory class."""

    def test_get_logger_root(self):
        assert LoggerFactory.get_logger().name == REFLECTSERDE_ROOT_LOGGER

    def test_get_logger_component(self):
        logger = LoggerFactory.get_logger("reflect.evidence")
        assert logger.name == f"{REFLECTSERDE_ROOT_LOGGER}.reflect.evidence"

    def test_configure(self):
        logger = LoggerFactory.configure(level=logging.DEBUG)
        assert logger.level == logging.DEBUG

    def test_configure_with_level_name(self):
        assert LoggerFactory.configure(level="warning").level == logging.WARNING

    def test_configure_with_handler(self):
        logging.getLogger(REFLECTSERDE_ROOT_LOGGER).handlers[:] = []
        handler = logging.StreamHandler()
        logger = LoggerFactory.configure(handler=handler)
        assert handler in logger.handlers

    def test_configure_keeps_existing_handler(self):
        root = logging.getLogger(REFLECTSERDE_ROOT_LOGGER)
        root.handlers[:] = [logging.NullHandler()]
        LoggerFactory.configure(handler=logging.StreamHandler())
        assert len(root.handlers) == 1


class TestModuleFunctions:
    """Tests for module-level functions."""

    def test_get_logger(self):
        assert get_logger("serde").name == f"{REFLECTSERDE_ROOT_LOGGER}.serde"

    def test_configure_logging(self):
        assert configure_logging(level=logging.INFO) is logging.getLogger(REFLECTSERDE_ROOT_LOGGER)

    def test_set_level(self):
        set_level(logging.ERROR, "registry")
        assert get_logger("registry").level == logging.ERROR

    def test_set_level_by_name(self):
        set_level("debug", "reflect.evidence")
        assert get_logger("reflect.evidence").level == logging.DEBUG

    def test_set_level_unknown_component(self):
        with pytest.raises(ConfigurationException):
            set_level(logging.ERROR, "network")

    @pytest.mark.parametrize("level,expected", [(logging.INFO, logging.INFO), ("ERROR", logging.ERROR)])
    def test_parse_level(self, level, expected):
        assert parse_level(level) == expected

    def test_parse_unknown_level(self):
        with pytest.raises(ConfigurationException):
            parse_level("loud")

    def test_loggers_are_hierarchical(self):
        parent = get_logger("reflect")
        assert get_logger("reflect.evidence").parent is parent
