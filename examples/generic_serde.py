#!/usr/bin/env python3
"""Generic class serialization with inferred schemas.

Demonstrates how reflect-serde serializes instances of ``typing.Generic``
classes through a schema registry:
- Schemas inferred from field values (``Box("a")`` vs ``Box(1)``)
- Explicitly parameterized types (``Box[int]``)
- Nested generics, lists and dicts as type witnesses
- The schema-id framed wire format
- Reading old messages with an evolved class
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, TypeVar

from reflectserde import (
    GenericRecord,
    GenericReflectData,
    MalformedMessageException,
    MockSchemaRegistryClient,
    ReflectDeserializer,
    ReflectSerde,
    ReflectSerializer,
    UnresolvableTypeVariableException,
)
from reflectserde.logging import configure_logging

T = TypeVar("T")
K = TypeVar("K")


# -----------------------------------------------------------------------------
# Domain Classes
# -----------------------------------------------------------------------------


@dataclass
class Box(Generic[T]):
    """Single-value container."""

    value: T


@dataclass
class Page(Generic[T]):
    """A page of results; T is witnessed by the first item."""

    items: List[T]
    total: int


@dataclass
class Index(Generic[K, T]):
    entries: Dict[str, Box[T]]
    default_key: K


@dataclass
class Order:
    order_id: int
    customer: str


@dataclass
class OrderV2:
    order_id: int
    customer: str
    note: Optional[str] = None


@dataclass
class TreeNode(Generic[T]):
    value: T
    children: List["TreeNode[T]"] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Examples
# -----------------------------------------------------------------------------


def schema_inference_example():
    """Schemas inferred from instances."""
    print("=== Schema Inference ===")

    data = GenericReflectData()
    print(f"  Box('text'):     {data.get_schema(Box('text'))}")
    print(f"  Box(42):         {data.get_schema(Box(42))}")
    print(f"  Box[float]:      {data.get_schema(Box[float])}")

    page = Page([Order(1, "alice")], total=1)
    print(f"  Page of orders:  {data.get_schema(page)}")

    index = Index({"a": Box(1.5)}, default_key="a")
    print(f"  Index:           {data.get_schema(index)}")

    tree = TreeNode(1, [TreeNode(2), TreeNode(3)])
    print(f"  Recursive tree:  {data.get_schema(tree)}")


def unbound_type_example():
    """A bare generic class has nothing to witness its parameters."""
    print("\n=== Unbound Type Variables ===")

    try:
        GenericReflectData().get_schema(Box)
    except UnresolvableTypeVariableException as e:
        print(f"  Box: {e}")

    # An empty list cannot witness T: the most general schema is used
    schema = GenericReflectData().get_schema(Page([], total=0))
    print(f"  Empty page items: {schema.get_field('items').schema}")


def wire_format_example():
    """The framed message layout."""
    print("\n=== Wire Format ===")

    registry = MockSchemaRegistryClient()
    serializer = ReflectSerializer(registry)
    deserializer = ReflectDeserializer(registry)

    data = serializer.serialize("orders", Order(42, "bob"))
    print(f"  Magic byte: {data[0]}")
    print(f"  Schema id:  {int.from_bytes(data[1:5], 'big')}")
    print(f"  Payload:    {data[5:].hex()}")
    print(f"  Decoded:    {deserializer.deserialize('orders', data)}")

    try:
        deserializer.deserialize("orders", b"\x01" + data[1:])
    except MalformedMessageException as e:
        print(f"  Rejected:   {e}")


def round_trip_example():
    """Generic values through a shared in-memory registry."""
    print("\n=== Round Trip ===")

    serde = ReflectSerde()
    serde.configure({"schema_registry_urls": "mock://examples"})

    for value in (Box("text"), Box(7), Page([Box(1.0), Box(2.0)], total=2)):
        data = serde.serializer().serialize("values", value)
        decoded = serde.deserializer().deserialize("values", data)
        print(f"  {value} -> {len(data)} bytes -> {decoded}")

    registry = MockSchemaRegistryClient.for_scope("examples")
    print(f"  Schema ids under values-value: {registry.get_versions('values-value')}")
    serde.close()


def schema_evolution_example():
    """Reading messages written before a field was added."""
    print("\n=== Schema Evolution ===")

    registry = MockSchemaRegistryClient()
    # the schema OrderV2 had before the note field was added
    old_schema = GenericReflectData().get_schema(Order)
    old_schema.name = OrderV2.__qualname__
    old_message = GenericRecord(old_schema, {"order_id": 1, "customer": "carol"})

    data = ReflectSerializer(registry).serialize("orders", old_message)

    deserializer = ReflectDeserializer(registry, schema_or_type=OrderV2)
    print(f"  Decoded with OrderV2: {deserializer.deserialize('orders', data)}")


def main():
    configure_logging(level=logging.WARNING)
    schema_inference_example()
    unbound_type_example()
    wire_format_example()
    round_trip_example()
    schema_evolution_example()

    print("\n=== Examples Complete ===")


if __name__ == "__main__":
    main()
