"""Shared pytest fixtures for reflect-serde tests."""

import uuid

import pytest
from unittest.mock import MagicMock

from reflectserde.config import SerdeConfig
from reflectserde.reflect.generic import GenericReflectData
from reflectserde.registry.client import MockSchemaRegistryClient, SchemaRegistryClient
from reflectserde.serialization.io import BinaryEncoder


@pytest.fixture
def reflect_data():
    """Create a fresh GenericReflectData with an empty evidence table."""
    return GenericReflectData()


@pytest.fixture
def registry():
    """Create an empty in-memory schema registry."""
    return MockSchemaRegistryClient()


@pytest.fixture
def mock_client():
    """Create a MagicMock registry client that hands out schema id 7."""
    client = MagicMock(spec=SchemaRegistryClient)
    client.register.return_value = 7
    client.get_id.return_value = 7
    return client


@pytest.fixture
def mock_scope():
    """Create a unique mock:// registry scope, dropped after the test."""
    scope = f"test-{uuid.uuid4().hex}"
    yield scope
    MockSchemaRegistryClient.drop_scope(scope)


@pytest.fixture
def mock_config(mock_scope):
    """Create a SerdeConfig pointing at the test's mock registry scope."""
    return SerdeConfig(schema_registry_urls=f"mock://{mock_scope}")


@pytest.fixture
def encoder():
    return BinaryEncoder()
