"""Type expressions for erased generic parameters.

Annotations are normalized into a small set of hashable type expressions:

- a plain class (``int``, ``GenericClass``),
- :class:`TypeVariable`, a ``TypeVar`` together with the class declaring it,
- :class:`ParameterizedType`, a raw class with its type arguments,
- :data:`UNKNOWN_TYPE` for values whose type cannot be known.

:class:`TypeToken` resolves type variables of a class against concrete
arguments, following generic base classes.
"""

import collections
import collections.abc
import sys
import types
import typing
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple, TypeVar

from reflectserde.exceptions import IllegalArgumentException


UNKNOWN_TYPE = object

_E = TypeVar("E")
_K = TypeVar("K")
_V = TypeVar("V")

_BUILTIN_PARAMETERS: Dict[type, Tuple[TypeVar, ...]] = {
    list: (_E,),
    tuple: (_E,),
    set: (_E,),
    frozenset: (_E,),
    collections.deque: (_E,),
    collections.abc.Iterable: (_E,),
    collections.abc.Collection: (_E,),
    collections.abc.Sequence: (_E,),
    collections.abc.MutableSequence: (_E,),
    collections.abc.Set: (_E,),
    collections.abc.MutableSet: (_E,),
    dict: (_K, _V),
    collections.OrderedDict: (_K, _V),
    collections.defaultdict: (_K, _V),
    collections.abc.Mapping: (_K, _V),
    collections.abc.MutableMapping: (_K, _V),
}

_UNION_ORIGINS = tuple(
    origin for origin in (typing.Union, getattr(types, "UnionType", None)) if origin is not None
)

_STRING_LIKE = (str, bytes, bytearray, memoryview)


@dataclass(frozen=True)
class TypeVariable:
    """A type parameter identified by its ``TypeVar`` and declaring class."""

    typevar: Any
    declaring_class: Optional[type]

    @property
    def name(self) -> str:
        return self.typevar.__name__

    def __repr__(self) -> str:
        owner = getattr(self.declaring_class, "__qualname__", "?")
        return f"{self.name}@{owner}"


@dataclass(frozen=True)
class ParameterizedType:
    """A raw class bound to an ordered tuple of type arguments."""

    raw: Any
    args: Tuple[Any, ...]

    def __repr__(self) -> str:
        if self.raw is typing.Union:
            return " | ".join(type_name(a) for a in self.args)
        return f"{type_name(self.raw)}[{', '.join(type_name(a) for a in self.args)}]"


def type_name(type_expr: Any) -> str:
    """Get a short readable name for a type expression."""
    if isinstance(type_expr, (TypeVariable, ParameterizedType)):
        return repr(type_expr)
    if type_expr is UNKNOWN_TYPE:
        return "?"
    return getattr(type_expr, "__qualname__", repr(type_expr))


def type_parameters(cls: Any) -> Tuple[Any, ...]:
    """Get the ``TypeVar`` parameters declared by a class, in order."""
    if not isinstance(cls, type):
        return ()
    params = _BUILTIN_PARAMETERS.get(cls)
    if params is not None:
        return params
    return tuple(p for p in getattr(cls, "__parameters__", ()) if isinstance(p, TypeVar))


def own_variables(cls: Any) -> Tuple[TypeVariable, ...]:
    return tuple(TypeVariable(p, cls) for p in type_parameters(cls))


def is_builtin_container(cls: Any) -> bool:
    return cls in _BUILTIN_PARAMETERS


def is_mapping_type(cls: Any) -> bool:
    return isinstance(cls, type) and issubclass(cls, collections.abc.Mapping)


def is_collection_type(cls: Any) -> bool:
    if not isinstance(cls, type) or issubclass(cls, _STRING_LIKE) or is_mapping_type(cls):
        return False
    if cls in (collections.abc.Iterable, collections.abc.Collection):
        return True
    return issubclass(cls, (collections.abc.Sequence, collections.abc.Set))


def is_sequence_value(value: Any) -> bool:
    """Check whether a value is a list-like or set-like collection."""
    return is_collection_type(type(value))


def is_mapping_value(value: Any) -> bool:
    return isinstance(value, collections.abc.Mapping)


def raw_type(type_expr: Any) -> Any:
    if isinstance(type_expr, ParameterizedType):
        return type_expr.raw
    if isinstance(type_expr, TypeVariable):
        return UNKNOWN_TYPE
    return type_expr


def erasure(type_expr: Any) -> Any:
    """Get the class a type expression erases to."""
    if isinstance(type_expr, TypeVariable):
        bound = getattr(type_expr.typevar, "__bound__", None)
        return bound if isinstance(bound, type) else UNKNOWN_TYPE
    raw = raw_type(type_expr)
    return raw if isinstance(raw, type) else UNKNOWN_TYPE


def type_variables_in(type_expr: Any) -> Iterator[TypeVariable]:
    if isinstance(type_expr, TypeVariable):
        yield type_expr
    elif isinstance(type_expr, ParameterizedType):
        for arg in type_expr.args:
            yield from type_variables_in(arg)


def has_type_variables(type_expr: Any) -> bool:
    return next(type_variables_in(type_expr), None) is not None


def mentions(type_expr: Any, variable: TypeVariable) -> bool:
    return any(v == variable for v in type_variables_in(type_expr))


def unwrap_optional(type_expr: Any) -> Any:
    """Get ``X`` from ``Optional[X]``; other expressions are returned as is."""
    if isinstance(type_expr, ParameterizedType) and type_expr.raw is typing.Union:
        present = [arg for arg in type_expr.args if arg is not type(None)]
        if len(present) == 1:
            return present[0]
    return type_expr


def enclosing_classes(cls: type) -> Iterator[type]:
    """Yield ``cls`` and then the classes it is nested in, innermost first."""
    yield cls
    parts = cls.__qualname__.split(".")
    module = sys.modules.get(cls.__module__)
    if module is None or "<locals>" in parts:
        return
    for depth in range(len(parts) - 1, 0, -1):
        enclosing: Any = module
        for part in parts[:depth]:
            enclosing = getattr(enclosing, part, None)
            if enclosing is None:
                break
        if isinstance(enclosing, type):
            yield enclosing


def declaring_class(typevar: Any, owner: Optional[type]) -> Optional[type]:
    """Find the class a ``TypeVar`` used in ``owner``'s annotations belongs to.

    A variable that is not a parameter of ``owner`` itself is attributed to
    the nearest enclosing class declaring it.
    """
    if owner is None:
        return None
    for cls in enclosing_classes(owner):
        if typevar in type_parameters(cls):
            return cls
    return owner


def to_type_expr(annotation: Any, owner: Optional[type] = None) -> Any:
    """Normalize a typing annotation into a type expression.

    Args:
        annotation: A class, ``TypeVar`` or typing construct.
        owner: The class whose annotations contain ``annotation``; used to
            identify type variables.

    Raises:
        IllegalArgumentException: If the annotation is not supported.
    """
    if annotation is None or annotation is type(None):
        return type(None)
    if annotation is typing.Any or annotation is object:
        return UNKNOWN_TYPE
    if isinstance(annotation, (TypeVariable, ParameterizedType)):
        return annotation
    if isinstance(annotation, TypeVar):
        return TypeVariable(annotation, declaring_class(annotation, owner))
    if isinstance(annotation, (str, typing.ForwardRef)):
        raise IllegalArgumentException(
            f"Unresolved forward reference {annotation!r} in {type_name(owner)}"
        )

    origin = typing.get_origin(annotation)
    if origin is None:
        if isinstance(annotation, type):
            return annotation
        raise IllegalArgumentException(f"Unsupported type annotation {annotation!r}")

    args = typing.get_args(annotation)
    if origin is typing.Annotated:
        return to_type_expr(args[0], owner)
    if origin in (typing.ClassVar, typing.Final):
        return to_type_expr(args[0], owner) if args else UNKNOWN_TYPE
    if origin is typing.Literal:
        return type(args[0]) if args else UNKNOWN_TYPE
    if origin in _UNION_ORIGINS:
        return ParameterizedType(typing.Union, tuple(to_type_expr(a, owner) for a in args))
    if origin is tuple:
        return _tuple_expr(args, owner)
    if not args:
        return origin
    return ParameterizedType(origin, tuple(to_type_expr(a, owner) for a in args))


def _tuple_expr(args: Tuple[Any, ...], owner: Optional[type]) -> Any:
    if not args or args == ((),):
        return tuple
    if len(args) == 2 and args[1] is Ellipsis:
        return ParameterizedType(tuple, (to_type_expr(args[0], owner),))
    elements = []
    for arg in args:
        element = to_type_expr(arg, owner)
        if element not in elements:
            elements.append(element)
    if len(elements) == 1:
        return ParameterizedType(tuple, (elements[0],))
    return ParameterizedType(tuple, (ParameterizedType(typing.Union, tuple(elements)),))


class TypeToken:
    """Binding table of a class or parameterized type.

    Binds the type variables of the raw class and of every generic base
    class reachable from it. Variables without an argument stay unbound.
    """

    def __init__(self, type_expr: Any):
        self._type = type_expr
        self._raw = raw_type(type_expr)
        self._bindings: Dict[TypeVariable, Any] = {}
        if isinstance(self._raw, type):
            args = type_expr.args if isinstance(type_expr, ParameterizedType) else ()
            self._collect(self._raw, args)

    @property
    def type(self) -> Any:
        return self._type

    @property
    def raw_type(self) -> Any:
        return self._raw

    @property
    def bindings(self) -> Dict[TypeVariable, Any]:
        return dict(self._bindings)

    def _collect(self, cls: type, args: Tuple[Any, ...]) -> None:
        for param, arg in zip(type_parameters(cls), args):
            self._bindings.setdefault(TypeVariable(param, cls), arg)
        bases = cls.__dict__.get("__orig_bases__", cls.__bases__)
        for base in bases:
            origin = typing.get_origin(base) or base
            if origin in (typing.Generic, typing.Protocol, object) or not isinstance(origin, type):
                continue
            base_args = tuple(self.resolve(to_type_expr(a, cls)) for a in typing.get_args(base))
            self._collect(origin, base_args)

    def resolve(self, type_expr: Any) -> Any:
        """Substitute the bound type variables in a type expression."""
        if isinstance(type_expr, TypeVariable):
            return self._bindings.get(type_expr, type_expr)
        if isinstance(type_expr, ParameterizedType):
            return ParameterizedType(type_expr.raw, tuple(self.resolve(a) for a in type_expr.args))
        return type_expr

    def type_arguments_of(self, supertype: Any) -> Optional[Tuple[Any, ...]]:
        """Get the arguments of ``supertype`` as seen from this type.

        Returns:
            One entry per parameter of ``supertype``, or ``None`` when
            ``supertype`` is not a superclass of this type.
        """
        raw = self._raw
        if not (isinstance(raw, type) and isinstance(supertype, type) and issubclass(raw, supertype)):
            return None
        return tuple(
            self._bindings.get(TypeVariable(p, supertype), TypeVariable(p, supertype))
            for p in type_parameters(supertype)
        )

    def __repr__(self) -> str:
        return f"TypeToken({type_name(self._type)})"


def container_arguments(type_expr: Any) -> Tuple[Any, ...]:
    """Get the element (or key and value) types of a collection type."""
    raw = raw_type(type_expr)
    if not isinstance(raw, type):
        return ()
    if isinstance(type_expr, ParameterizedType) and raw in _BUILTIN_PARAMETERS:
        return type_expr.args
    token = TypeToken(type_expr)
    for base in raw.__mro__:
        if base in _BUILTIN_PARAMETERS:
            return token.type_arguments_of(base) or ()
    return ()


def subtype(type_expr: Any, runtime_class: type) -> Any:
    """Specialize ``runtime_class`` to match a declared type expression.

    The type parameters of ``runtime_class`` that can be traced to arguments
    of ``type_expr`` are bound to them; the others stay unbound.
    """
    variables = own_variables(runtime_class)
    if not variables:
        return runtime_class
    if isinstance(type_expr, ParameterizedType) and type_expr.raw is typing.Union:
        for branch in type_expr.args:
            branch_raw = raw_type(branch)
            if isinstance(branch_raw, type) and issubclass(runtime_class, branch_raw):
                return subtype(branch, runtime_class)
        return ParameterizedType(runtime_class, variables)
    if not isinstance(type_expr, ParameterizedType) or not isinstance(type_expr.raw, type):
        return ParameterizedType(runtime_class, variables)
    if runtime_class is type_expr.raw:
        return type_expr

    mapping: Dict[TypeVariable, Any] = {}
    seen = TypeToken(runtime_class).type_arguments_of(type_expr.raw)
    if seen is not None:
        for own, declared in zip(seen, type_expr.args):
            if own in variables:
                mapping.setdefault(own, declared)
    if (
        not mapping
        and is_builtin_container(runtime_class)
        and len(type_parameters(type_expr.raw)) == len(variables)
    ):
        mapping = dict(zip(variables, type_expr.args))
    return ParameterizedType(runtime_class, tuple(mapping.get(v, v) for v in variables))
