"""Schemas for annotated Python classes and the reflect data model."""

import dataclasses
import enum
import importlib
import inspect
import sys
import typing
from typing import Any, Dict, List, Optional

from reflectserde.exceptions import IllegalArgumentException, UnresolvableTypeVariableException
from reflectserde.logging import get_logger
from reflectserde.reflect.introspection import StructuralIntrospector
from reflectserde.reflect.scope import SchemaGenerationScope
from reflectserde.reflect.types import (
    UNKNOWN_TYPE,
    TypeVariable,
    container_arguments,
    is_builtin_container,
    is_collection_type,
    is_mapping_type,
    raw_type,
    to_type_expr,
    type_name,
)
from reflectserde.serialization.datum import GenericData
from reflectserde.serialization.schema import CLASS_PROP, Schema, SchemaType

_logger = get_logger("reflect.data")

_PRIMITIVES = {
    type(None): SchemaType.NULL,
    bool: SchemaType.BOOLEAN,
    int: SchemaType.LONG,
    float: SchemaType.DOUBLE,
    str: SchemaType.STRING,
    bytes: SchemaType.BYTES,
    bytearray: SchemaType.BYTES,
}


def most_general_schema() -> Schema:
    """Get the schema used for values of unknown type."""
    return Schema.union(
        Schema.primitive(SchemaType.NULL),
        Schema.primitive(SchemaType.BOOLEAN),
        Schema.primitive(SchemaType.LONG),
        Schema.primitive(SchemaType.DOUBLE),
        Schema.primitive(SchemaType.STRING),
        Schema.primitive(SchemaType.BYTES),
    )


def class_name(cls: type) -> str:
    return f"{cls.__module__}:{cls.__qualname__}"


class ReflectData(GenericData):
    """Builds schemas from class annotations and decodes into those classes.

    Records are named after the class ``__qualname__`` in a namespace equal
    to its module, so decoding can import the class back. A class that
    cannot be imported decodes to a generic record.
    """

    def __init__(self, introspector: StructuralIntrospector = None):
        self._introspector = introspector or StructuralIntrospector()
        self._classes: Dict[str, Optional[type]] = {}

    @property
    def introspector(self) -> StructuralIntrospector:
        return self._introspector

    def get_schema(self, type_or_annotation: Any) -> Schema:
        """Get the schema of a class or typing annotation."""
        return self.create_schema(to_type_expr(type_or_annotation), {}, SchemaGenerationScope())

    def create_schema(
        self, type_expr: Any, names: Dict[Any, Schema], scope: SchemaGenerationScope
    ) -> Schema:
        """Build the schema of a type expression.

        Args:
            type_expr: The type expression.
            names: Record and enum schemas built so far in this request,
                keyed by type expression; lets recursive types refer to
                themselves.
            scope: The enclosing parameterized types.

        Raises:
            IllegalArgumentException: If the type has no schema.
        """
        if isinstance(type_expr, TypeVariable):
            raise UnresolvableTypeVariableException(
                f"Type variable {type_expr!r} is not bound", type_variable=type_expr
            )
        if type_expr is UNKNOWN_TYPE:
            return most_general_schema()

        raw = raw_type(type_expr)
        if raw is typing.Union:
            return Schema.union(*(self.create_schema(arg, names, scope) for arg in type_expr.args))
        primitive = _PRIMITIVES.get(raw)
        if primitive is not None:
            return Schema.primitive(primitive)
        if not isinstance(raw, type):
            raise IllegalArgumentException(f"Cannot create a schema for {type_name(type_expr)}")
        if issubclass(raw, enum.Enum):
            return self._enum_schema(raw, names)
        if is_mapping_type(raw):
            keys, values = self._container_slots(type_expr, 2)
            return Schema.map(
                self.create_schema(values, names, scope), self.create_schema(keys, names, scope)
            )
        if is_collection_type(raw):
            (items,) = self._container_slots(type_expr, 1)
            schema = Schema.array(self.create_schema(items, names, scope))
            if raw is not list and not inspect.isabstract(raw):
                schema.add_prop(CLASS_PROP, class_name(raw))
            return schema
        return self._record_schema(type_expr, raw, names, scope)

    @staticmethod
    def _container_slots(type_expr: Any, arity: int) -> List[Any]:
        slots = list(container_arguments(type_expr))
        if len(slots) != arity:
            return [UNKNOWN_TYPE] * arity
        # an unparameterized list holds anything
        return [
            UNKNOWN_TYPE
            if isinstance(slot, TypeVariable) and is_builtin_container(slot.declaring_class)
            else slot
            for slot in slots
        ]

    def _enum_schema(self, cls: type, names: Dict[Any, Schema]) -> Schema:
        schema = names.get(cls)
        if schema is None:
            schema = Schema.enum(cls.__qualname__, cls.__module__, [member.name for member in cls])
            names[cls] = schema
        return schema

    def _record_schema(
        self, type_expr: Any, cls: type, names: Dict[Any, Schema], scope: SchemaGenerationScope
    ) -> Schema:
        schema = names.get(type_expr)
        if schema is not None:
            return schema
        schema = Schema.record(cls.__qualname__, cls.__module__)
        names[type_expr] = schema
        for accessor in self._introspector.fields_of(cls):
            schema.add_field(accessor.name, self.create_schema(accessor.generic_type, names, scope))
        return schema

    def get_class(self, schema: Schema) -> Optional[type]:
        if schema.type in (SchemaType.RECORD, SchemaType.ENUM):
            return self._load_class(schema.namespace, schema.name)
        if schema.type == SchemaType.ARRAY:
            name = schema.get_prop(CLASS_PROP)
            if name and ":" in name:
                return self._load_class(*name.split(":", 1))
        return None

    def _load_class(self, module_name: Optional[str], qualname: Optional[str]) -> Optional[type]:
        key = f"{module_name}:{qualname}"
        if key in self._classes:
            return self._classes[key]
        cls = None
        if module_name and qualname and "<locals>" not in qualname:
            module = sys.modules.get(module_name)
            if module is None:
                try:
                    module = importlib.import_module(module_name)
                except ImportError as e:
                    _logger.debug("Cannot import module %s: %s", module_name, e)
            found: Any = module
            for part in qualname.split("."):
                found = getattr(found, part, None)
            if isinstance(found, type):
                cls = found
        if cls is None:
            _logger.debug("Class %s not found, decoding generically", key)
        self._classes[key] = cls
        return cls

    def new_record(self, old: Any, schema: Schema) -> Any:
        cls = self.get_class(schema)
        if cls is None:
            return super().new_record(old, schema)
        if type(old) is cls:
            return old
        return object.__new__(cls)

    def field_default(self, schema: Schema, name: str) -> Any:
        cls = self.get_class(schema)
        if cls is None or not dataclasses.is_dataclass(cls):
            return None
        for f in dataclasses.fields(cls):
            if f.name != name:
                continue
            if f.default is not dataclasses.MISSING:
                return f.default
            if f.default_factory is not dataclasses.MISSING:
                return f.default_factory()
        return None

    def new_array(self, old: Any, schema: Schema, items: List[Any]) -> Any:
        cls = self.get_class(schema)
        if cls is None or cls is list or inspect.isabstract(cls):
            return items
        return cls(items)

    def new_enum(self, schema: Schema, symbol: str) -> Any:
        cls = self.get_class(schema)
        if cls is None or not issubclass(cls, enum.Enum):
            return symbol
        return cls[symbol]
