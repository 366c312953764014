"""Structural introspection of annotated classes."""

import dataclasses
import inspect
import typing
from typing import Any, Dict, List, Tuple

from reflectserde.exceptions import IllegalArgumentException
from reflectserde.reflect.types import erasure, has_type_variables, to_type_expr, type_name


class FieldAccessor:
    """Reads and writes one declared field of a class.

    Args:
        name: The attribute name.
        declaring_class: The class whose annotations declare the field.
        annotation: The declared annotation, already evaluated.
    """

    def __init__(self, name: str, declaring_class: type, annotation: Any):
        self._name = name
        self._declaring_class = declaring_class
        self._generic_type = to_type_expr(annotation, declaring_class)

    @property
    def name(self) -> str:
        return self._name

    @property
    def declaring_class(self) -> type:
        return self._declaring_class

    @property
    def generic_type(self) -> Any:
        """Get the declared type expression, type variables included."""
        return self._generic_type

    @property
    def declared_type(self) -> Any:
        """Get the erased declared class of the field."""
        return erasure(self._generic_type)

    def has_type_variables(self) -> bool:
        return has_type_variables(self._generic_type)

    def get(self, instance: Any) -> Any:
        return getattr(instance, self._name, None)

    def set(self, instance: Any, value: Any) -> None:
        object.__setattr__(instance, self._name, value)

    def __repr__(self) -> str:
        return f"{self._declaring_class.__qualname__}.{self._name}: {type_name(self._generic_type)}"


def _is_static(annotation: Any) -> bool:
    if annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar:
        return True
    if isinstance(annotation, dataclasses.InitVar):
        return True
    return annotation is getattr(dataclasses, "KW_ONLY", None)


class StructuralIntrospector:
    """Lists the instance fields of classes from their annotations.

    Fields are taken from the annotations of every class in the MRO, base
    classes first, so a subclass lists inherited fields before its own.
    ``ClassVar`` and ``InitVar`` annotations are skipped. Results are cached
    per class.
    """

    def __init__(self):
        self._fields: Dict[type, List[FieldAccessor]] = {}

    def fields_of(self, cls: type) -> List[FieldAccessor]:
        fields = self._fields.get(cls)
        if fields is None:
            fields = self._introspect(cls)
            self._fields[cls] = fields
        return fields

    def describe(self, instance: Any) -> List[Tuple[str, Any, Any]]:
        """List ``(name, declared type, value)`` for each field of an instance."""
        return [(f.name, f.generic_type, f.get(instance)) for f in self.fields_of(type(instance))]

    def _introspect(self, cls: type) -> List[FieldAccessor]:
        declared: Dict[str, Tuple[type, Any]] = {}
        for klass in reversed(cls.__mro__):
            if klass is object or klass.__module__ in ("typing", "builtins"):
                continue
            own = inspect.get_annotations(klass)
            if not own:
                continue
            hints = self._type_hints(klass)
            for name in own:
                annotation = hints.get(name, own[name])
                if _is_static(annotation):
                    declared.pop(name, None)
                    continue
                declared[name] = (klass, annotation)
        return [FieldAccessor(name, klass, annotation) for name, (klass, annotation) in declared.items()]

    @staticmethod
    def _type_hints(klass: type) -> Dict[str, Any]:
        try:
            hints = typing.get_type_hints(klass, include_extras=True)
        except NameError as e:
            raise IllegalArgumentException(
                f"Cannot resolve annotations of {klass.__qualname__}: {e}", cause=e
            ) from e
        own = inspect.get_annotations(klass)
        return {name: hint for name, hint in hints.items() if name in own}
