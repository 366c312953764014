"""Schema synthesis for generic Python classes."""

from reflectserde.reflect.types import (
    UNKNOWN_TYPE,
    ParameterizedType,
    TypeToken,
    TypeVariable,
    to_type_expr,
)
from reflectserde.reflect.introspection import FieldAccessor, StructuralIntrospector
from reflectserde.reflect.evidence import EvidencePath, EvidenceStep, TypeEvidenceResolver
from reflectserde.reflect.scope import SchemaGenerationScope
from reflectserde.reflect.data import ReflectData
from reflectserde.reflect.generic import GenericReflectData

__all__ = [
    "UNKNOWN_TYPE",
    "ParameterizedType",
    "TypeToken",
    "TypeVariable",
    "to_type_expr",
    "FieldAccessor",
    "StructuralIntrospector",
    "EvidencePath",
    "EvidenceStep",
    "TypeEvidenceResolver",
    "SchemaGenerationScope",
    "ReflectData",
    "GenericReflectData",
]
