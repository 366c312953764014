"""Schema model for reflect serialization.

A :class:`Schema` describes the structure of a value: a primitive, a
record with named fields, an enum, an array, a map or a union of
alternatives. Schemas have a JSON form, which is what the schema
registry stores and what equality is defined over.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from reflectserde.exceptions import IllegalArgumentException


class SchemaType(Enum):
    """Kinds of schemas."""

    NULL = "null"
    BOOLEAN = "boolean"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"
    RECORD = "record"
    ENUM = "enum"
    ARRAY = "array"
    MAP = "map"
    UNION = "union"


PRIMITIVE_TYPES = frozenset(
    {
        SchemaType.NULL,
        SchemaType.BOOLEAN,
        SchemaType.INT,
        SchemaType.LONG,
        SchemaType.FLOAT,
        SchemaType.DOUBLE,
        SchemaType.STRING,
        SchemaType.BYTES,
    }
)

NAMED_TYPES = frozenset({SchemaType.RECORD, SchemaType.ENUM})

CLASS_PROP = "python.class"


@dataclass(eq=False)
class Field:
    """Describes a field in a record schema."""

    name: str
    schema: "Schema"
    index: int = -1


@dataclass(eq=False)
class Schema:
    """Schema for reflect serialization.

    Only the attributes relevant to ``type`` are populated: ``fields`` for
    records, ``symbols`` for enums, ``items`` for arrays, ``keys`` and
    ``values`` for maps, ``branches`` for unions.
    """

    type: SchemaType
    name: Optional[str] = None
    namespace: Optional[str] = None
    fields: List[Field] = field(default_factory=list)
    symbols: List[str] = field(default_factory=list)
    items: Optional["Schema"] = None
    keys: Optional["Schema"] = None
    values: Optional["Schema"] = None
    branches: List["Schema"] = field(default_factory=list)
    props: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def primitive(cls, schema_type: SchemaType) -> "Schema":
        if schema_type not in PRIMITIVE_TYPES:
            raise IllegalArgumentException(f"{schema_type.value} is not a primitive type")
        return cls(type=schema_type)

    @classmethod
    def record(
        cls, name: str, namespace: Optional[str] = None, fields: List[Field] = None
    ) -> "Schema":
        schema = cls(type=SchemaType.RECORD, name=name, namespace=namespace)
        for f in fields or []:
            schema.add_field(f.name, f.schema)
        return schema

    @classmethod
    def enum(cls, name: str, namespace: Optional[str], symbols: List[str]) -> "Schema":
        return cls(type=SchemaType.ENUM, name=name, namespace=namespace, symbols=list(symbols))

    @classmethod
    def array(cls, items: "Schema") -> "Schema":
        return cls(type=SchemaType.ARRAY, items=items)

    @classmethod
    def map(cls, values: "Schema", keys: "Schema" = None) -> "Schema":
        if keys is None:
            keys = cls.primitive(SchemaType.STRING)
        return cls(type=SchemaType.MAP, keys=keys, values=values)

    @classmethod
    def union(cls, *branches: "Schema") -> "Schema":
        flattened: List[Schema] = []
        for branch in branches:
            candidates = branch.branches if branch.type == SchemaType.UNION else [branch]
            for candidate in candidates:
                if candidate not in flattened:
                    flattened.append(candidate)
        return cls(type=SchemaType.UNION, branches=flattened)

    @property
    def full_name(self) -> Optional[str]:
        """Get ``namespace.name`` for named schemas, the type name otherwise."""
        if self.type not in NAMED_TYPES:
            return self.type.value
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name

    def get_field(self, name: str) -> Optional[Field]:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def add_field(self, name: str, schema: "Schema") -> Field:
        """Add a field to a record schema."""
        if self.type != SchemaType.RECORD:
            raise IllegalArgumentException(f"Cannot add fields to a {self.type.value} schema")
        if self.get_field(name) is not None:
            raise IllegalArgumentException(f"Duplicate field '{name}' in {self.full_name}")
        descriptor = Field(name=name, schema=schema, index=len(self.fields))
        self.fields.append(descriptor)
        return descriptor

    def get_prop(self, key: str) -> Optional[str]:
        return self.props.get(key)

    def add_prop(self, key: str, value: str) -> None:
        self.props[key] = value

    def is_nullable(self) -> bool:
        if self.type == SchemaType.NULL:
            return True
        return self.type == SchemaType.UNION and any(
            b.type == SchemaType.NULL for b in self.branches
        )

    def to_dict(self) -> Any:
        """Convert to the JSON-compatible form.

        Named schemas seen while rendering their own subtree are written
        as a name reference, so self-referencing records stay finite.
        """
        return self._to_dict([])

    def _to_dict(self, enclosing: List["Schema"]) -> Any:
        if self.type in PRIMITIVE_TYPES:
            if not self.props:
                return self.type.value
            result: Dict[str, Any] = {"type": self.type.value}
        elif self.type == SchemaType.UNION:
            return [b._to_dict(enclosing) for b in self.branches]
        elif self.type in NAMED_TYPES and any(s is self for s in enclosing):
            return self.full_name
        else:
            result = {"type": self.type.value}
            if self.type in NAMED_TYPES:
                result["name"] = self.name
                if self.namespace:
                    result["namespace"] = self.namespace
            if self.type == SchemaType.RECORD:
                inner = enclosing + [self]
                result["fields"] = [
                    {"name": f.name, "type": f.schema._to_dict(inner)} for f in self.fields
                ]
            elif self.type == SchemaType.ENUM:
                result["symbols"] = list(self.symbols)
            elif self.type == SchemaType.ARRAY:
                result["items"] = self.items._to_dict(enclosing)
            elif self.type == SchemaType.MAP:
                keys = self.keys._to_dict(enclosing)
                if keys != SchemaType.STRING.value:
                    result["keys"] = keys
                result["values"] = self.values._to_dict(enclosing)
        for key in sorted(self.props):
            result[key] = self.props[key]
        return result

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def canonical_form(self) -> str:
        """Get a stable JSON string used for equality and registry lookups."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def parse(cls, source: Union[str, dict, list]) -> "Schema":
        """Parse a schema from its JSON text or JSON-compatible form."""
        if isinstance(source, str):
            try:
                data = json.loads(source)
            except json.JSONDecodeError:
                # a bare type name such as "string"
                data = source
        else:
            data = source
        return _SchemaParser().parse(data, [])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return False
        return self.canonical_form() == other.canonical_form()

    def __hash__(self) -> int:
        return hash(self.canonical_form())

    def __repr__(self) -> str:
        return f"Schema({self.to_json()})"

    def __str__(self) -> str:
        return self.to_json()


class _SchemaParser:
    """Builds :class:`Schema` objects from their JSON-compatible form."""

    _RESERVED = frozenset(
        {"type", "name", "namespace", "fields", "symbols", "items", "keys", "values"}
    )

    def parse(self, data: Any, enclosing: List[Schema]) -> Schema:
        if isinstance(data, list):
            return Schema(type=SchemaType.UNION, branches=[self.parse(b, enclosing) for b in data])
        if isinstance(data, str):
            return self._parse_name(data, enclosing)
        if not isinstance(data, dict) or "type" not in data:
            raise IllegalArgumentException(f"Invalid schema: {data!r}")

        type_name = data["type"]
        if isinstance(type_name, (dict, list)):
            return self.parse(type_name, enclosing)
        try:
            schema_type = SchemaType(type_name)
        except ValueError:
            return self._parse_name(type_name, enclosing)

        schema = Schema(type=schema_type)
        if schema_type in NAMED_TYPES:
            if "name" not in data:
                raise IllegalArgumentException(f"Named schema without a name: {data!r}")
            schema.name = data["name"]
            schema.namespace = data.get("namespace")
        if schema_type == SchemaType.RECORD:
            inner = enclosing + [schema]
            for f in data.get("fields", []):
                schema.add_field(f["name"], self.parse(f["type"], inner))
        elif schema_type == SchemaType.ENUM:
            schema.symbols = list(data.get("symbols", []))
        elif schema_type == SchemaType.ARRAY:
            schema.items = self.parse(data["items"], enclosing)
        elif schema_type == SchemaType.MAP:
            schema.keys = self.parse(data.get("keys", "string"), enclosing)
            schema.values = self.parse(data["values"], enclosing)
        for key, value in data.items():
            if key not in self._RESERVED:
                schema.props[key] = value
        return schema

    def _parse_name(self, name: str, enclosing: List[Schema]) -> Schema:
        try:
            schema_type = SchemaType(name)
        except ValueError:
            schema_type = None
        if schema_type in PRIMITIVE_TYPES:
            return Schema(type=schema_type)
        for schema in reversed(enclosing):
            if name in (schema.full_name, schema.name):
                return schema
        raise IllegalArgumentException(f"Undefined schema name: {name}")
