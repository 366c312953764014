"""Schema synthesis for instances of generic classes.

Example:
    >>> @dataclass
    ... class Box(Generic[T]):
    ...     value: T
    >>> GenericReflectData().get_schema(Box("hello"))   # value: string
    >>> GenericReflectData().get_schema(Box[int])        # value: long
"""

import typing
from typing import Any, Dict, TypeVar

from reflectserde.reflect.data import ReflectData
from reflectserde.reflect.evidence import TypeEvidenceResolver
from reflectserde.reflect.introspection import StructuralIntrospector
from reflectserde.reflect.scope import SchemaGenerationScope
from reflectserde.reflect.types import ParameterizedType, TypeToken, TypeVariable
from reflectserde.serialization.datum import GenericRecord
from reflectserde.serialization.schema import Schema


def _is_type_like(value: Any) -> bool:
    if isinstance(value, (type, ParameterizedType, TypeVariable, TypeVar)):
        return True
    return typing.get_origin(value) is not None or value is typing.Any


class GenericReflectData(ReflectData):
    """Reflect data model that fills in erased type arguments.

    For an instance, the arguments of its class are inferred from field
    values by a :class:`TypeEvidenceResolver`. For a parameterized type such
    as ``Box[int]`` they are given. Either way every type variable met while
    building field schemas is resolved through a
    :class:`SchemaGenerationScope` of the enclosing parameterized types.

    The evidence table is shared by all requests made through one
    instance. Not thread-safe.
    """

    def __init__(self, introspector: StructuralIntrospector = None):
        super().__init__(introspector)
        self._resolver = TypeEvidenceResolver(self.introspector)

    @property
    def resolver(self) -> TypeEvidenceResolver:
        return self._resolver

    def get_schema(self, value: Any) -> Schema:
        """Get the schema of an instance, a class or a parameterized type.

        Raises:
            UnresolvableTypeVariableException: If a type variable of a bare
                generic class cannot be bound.
        """
        if isinstance(value, Schema):
            return value
        if isinstance(value, GenericRecord):
            return value.schema
        if _is_type_like(value):
            return super().get_schema(value)
        cls = type(value)
        arguments = self._resolver.resolve_bound_arguments(value, cls)
        type_expr = ParameterizedType(cls, tuple(arguments)) if arguments else cls
        return self.create_schema(type_expr, {}, SchemaGenerationScope())

    def create_schema(
        self, type_expr: Any, names: Dict[Any, Schema], scope: SchemaGenerationScope
    ) -> Schema:
        if isinstance(type_expr, TypeVariable):
            type_expr = scope.resolve(type_expr)
        if isinstance(type_expr, ParameterizedType):
            # bind arguments first so Node[T] met inside Node[str] is
            # recognized as the record being built
            type_expr = self._bind(type_expr, scope)
            if isinstance(type_expr.raw, type):
                with scope.entering(type_expr):
                    return super().create_schema(type_expr, names, scope)
        elif isinstance(type_expr, type) and TypeToken(type_expr).bindings:
            # StrBox(Box[str]) binds the variables of its inherited fields
            with scope.entering(type_expr):
                return super().create_schema(type_expr, names, scope)
        return super().create_schema(type_expr, names, scope)

    def _bind(self, type_expr: Any, scope: SchemaGenerationScope) -> Any:
        if isinstance(type_expr, TypeVariable):
            bound = scope.lookup(type_expr)
            return self._bind(bound, scope) if isinstance(bound, ParameterizedType) else bound
        if isinstance(type_expr, ParameterizedType):
            return ParameterizedType(type_expr.raw, tuple(self._bind(a, scope) for a in type_expr.args))
        return type_expr
