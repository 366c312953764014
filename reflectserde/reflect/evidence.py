"""Runtime evidence for the type parameters of generic instances.

Type arguments are erased at runtime: an instance of ``Box[T]`` does not
know it was meant to be a ``Box[str]``. :class:`TypeEvidenceResolver`
recovers the arguments by looking for a field of the instance whose value
has exactly the parameter's type, possibly nested inside other generic
fields, lists or dicts. The path to that value is computed once per class
and replayed on every later instance.
"""

import functools
import typing
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from reflectserde.logging import get_logger
from reflectserde.reflect.introspection import FieldAccessor, StructuralIntrospector
from reflectserde.reflect.types import (
    UNKNOWN_TYPE,
    ParameterizedType,
    TypeToken,
    TypeVariable,
    container_arguments,
    has_type_variables,
    is_mapping_value,
    is_sequence_value,
    mentions,
    own_variables,
    raw_type,
    subtype,
    to_type_expr,
    type_parameters,
    unwrap_optional,
)

_logger = get_logger("reflect.evidence")


def _first_element(collection: Any) -> Any:
    for item in collection:
        return item
    return None


def _first_key(mapping: Any) -> Any:
    for key in mapping:
        return key
    return None


def _first_value(mapping: Any) -> Any:
    for value in mapping.values():
        return value
    return None


class EvidenceStep:
    """A typed value accessor: one hop from a value to one of its parts.

    Args:
        read: Function reading the part from its container; returns
            ``None`` when the part is absent.
        default_type: Type to assume when the part is absent.
        description: Label used in logs.
    """

    def __init__(
        self,
        read: Callable[[Any], Any],
        default_type: Any = UNKNOWN_TYPE,
        description: str = "?",
    ):
        self._read = read
        self._default_type = default_type
        self._description = description

    @classmethod
    def for_field(cls, accessor: FieldAccessor) -> "EvidenceStep":
        return cls(accessor.get, accessor.declared_type, accessor.name)

    @classmethod
    def first_element(cls) -> "EvidenceStep":
        return cls(_first_element, UNKNOWN_TYPE, "[0]")

    @classmethod
    def first_key(cls) -> "EvidenceStep":
        return cls(_first_key, UNKNOWN_TYPE, "<key>")

    @classmethod
    def first_value(cls) -> "EvidenceStep":
        return cls(_first_value, UNKNOWN_TYPE, "<value>")

    @property
    def default_type(self) -> Any:
        return self._default_type

    def read(self, container: Any) -> Any:
        return self._read(container)

    def __repr__(self) -> str:
        return self._description


class EvidencePath:
    """Ordered, non-empty sequence of steps from an instance to a witness value."""

    def __init__(self, steps: Sequence[EvidenceStep]):
        self._steps = tuple(steps)

    @property
    def steps(self) -> Sequence[EvidenceStep]:
        return self._steps

    @property
    def default_type(self) -> Any:
        """Get the declared type of the final step."""
        return self._steps[-1].default_type

    def prepend(self, step: EvidenceStep) -> "EvidencePath":
        return EvidencePath((step,) + self._steps)

    def walk(self, instance: Any) -> Any:
        """Follow the path from ``instance``; ``None`` if any step yields nothing."""
        value = instance
        for step in self._steps:
            value = step.read(value)
            if value is None:
                return None
        return value

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        return ".".join(repr(step) for step in self._steps)


class TypeEvidenceResolver:
    """Infers the type arguments of generic instances from their field values.

    The evidence table maps each generic class to one evaluation function
    per type parameter. It is filled from the first instance of the class
    seen and reused afterwards. Not thread-safe.
    """

    def __init__(self, introspector: StructuralIntrospector = None):
        self._introspector = introspector or StructuralIntrospector()
        self._evidence: Dict[type, List[Callable[[Any], Any]]] = {}

    @property
    def introspector(self) -> StructuralIntrospector:
        return self._introspector

    def resolve_bound_arguments(self, instance: Any, cls: type = None) -> List[Any]:
        """Get one inferred type argument per type parameter of ``cls``.

        A parameter without any witness in the object graph resolves to
        :data:`UNKNOWN_TYPE`.

        Args:
            instance: The generic instance.
            cls: The class whose parameters are resolved; defaults to the
                class of ``instance``.
        """
        if cls is None:
            cls = type(instance)
        explicit = self._explicit_arguments(instance, cls)
        if explicit is not None:
            return explicit
        functions = self._evidence.get(cls)
        if functions is None:
            variables = own_variables(cls)
            functions = [
                self._evidence_function(variable, frozenset(variables), instance, cls)
                for variable in variables
            ]
            self._evidence[cls] = functions
        return [function(instance) for function in functions]

    @staticmethod
    def _explicit_arguments(instance: Any, cls: type) -> Optional[List[Any]]:
        # Box[str](...) records its alias on the instance
        alias = getattr(instance, "__orig_class__", None)
        if alias is None or typing.get_origin(alias) is not cls:
            return None
        arguments = [to_type_expr(arg, cls) for arg in typing.get_args(alias)]
        if any(has_type_variables(arg) for arg in arguments):
            return None
        return arguments

    def _evidence_function(
        self,
        variable: TypeVariable,
        variables: FrozenSet[TypeVariable],
        instance: Any,
        cls: type,
    ) -> Callable[[Any], Any]:
        path = self.find_evidence_path(variable, instance, cls, variables)
        if path is None:
            _logger.warning(
                "No evidence for type variable %s in %s, assuming any type",
                variable.name,
                cls.__qualname__,
            )
            return lambda obj: UNKNOWN_TYPE
        _logger.debug("Evidence for %s in %s found at %r", variable.name, cls.__qualname__, path)
        return functools.partial(self.evaluate, path)

    def find_evidence_path(
        self,
        variable: TypeVariable,
        value: Any,
        type_expr: Any,
        variables: FrozenSet[TypeVariable] = None,
        _visiting: FrozenSet[int] = frozenset(),
    ) -> Optional[EvidencePath]:
        """Find the shortest path from ``value`` to a value of type ``variable``.

        Args:
            variable: The type variable to find a witness for.
            value: The value to search.
            type_expr: The type of ``value``, with its type variables
                expressed in terms of the root class being resolved.
            variables: All type parameters of the root class.

        Returns:
            The shortest evidence path; ties go to the field declared first.
            ``None`` if no path exists.
        """
        if variables is None:
            variables = frozenset(own_variables(raw_type(type_expr))) | {variable}
        raw = raw_type(type_expr)
        if not type_parameters(raw):
            return None
        if is_sequence_value(value):
            return self._collection_path(variable, value, type_expr, variables, _visiting)
        if is_mapping_value(value):
            return self._mapping_path(variable, value, type_expr, variables, _visiting)

        if id(value) in _visiting:
            return None
        visiting = _visiting | {id(value)}
        token = TypeToken(type_expr)
        best = None
        for accessor in self._introspector.fields_of(raw):
            candidate = self._field_path(variable, accessor, value, token, variables, visiting)
            if candidate is not None and (best is None or len(candidate) < len(best)):
                best = candidate
        return best

    def _field_path(
        self,
        variable: TypeVariable,
        accessor: FieldAccessor,
        value: Any,
        token: TypeToken,
        variables: FrozenSet[TypeVariable],
        visiting: FrozenSet[int],
    ) -> Optional[EvidencePath]:
        if not accessor.has_type_variables():
            return None
        field_type = unwrap_optional(token.resolve(accessor.generic_type))
        step = EvidenceStep.for_field(accessor)
        if field_type == variable:
            return EvidencePath([step])
        if isinstance(field_type, TypeVariable) and field_type in variables:
            return None
        if isinstance(field_type, ParameterizedType) and field_type.args and all(
            arg in variables and arg != variable for arg in field_type.args
        ):
            return None
        if not mentions(field_type, variable):
            return None

        field_value = accessor.get(value)
        if field_value is None:
            _logger.debug("Field %r is not set, no evidence for %s there", accessor, variable.name)
            return None
        path = self.find_evidence_path(
            variable, field_value, subtype(field_type, type(field_value)), variables, visiting
        )
        return path.prepend(step) if path is not None else None

    def _collection_path(self, variable, collection, type_expr, variables, visiting):
        arguments = container_arguments(type_expr)
        element_type = arguments[0] if arguments else UNKNOWN_TYPE
        return self._slot_path(
            variable, EvidenceStep.first_element(), element_type, collection, variables, visiting
        )

    def _mapping_path(self, variable, mapping, type_expr, variables, visiting):
        arguments = container_arguments(type_expr)
        if len(arguments) != 2:
            return None
        key_path = self._slot_path(
            variable, EvidenceStep.first_key(), arguments[0], mapping, variables, visiting
        )
        value_path = self._slot_path(
            variable, EvidenceStep.first_value(), arguments[1], mapping, variables, visiting
        )
        if key_path is None or (value_path is not None and len(value_path) < len(key_path)):
            return value_path
        return key_path

    def _slot_path(
        self,
        variable: TypeVariable,
        step: EvidenceStep,
        slot_type: Any,
        container: Any,
        variables: FrozenSet[TypeVariable],
        visiting: FrozenSet[int],
    ) -> Optional[EvidencePath]:
        slot_type = unwrap_optional(slot_type)
        if slot_type == variable:
            return EvidencePath([step])
        if not isinstance(slot_type, ParameterizedType) or not mentions(slot_type, variable):
            return None
        element = step.read(container)
        if element is None:
            return None
        path = self.find_evidence_path(
            variable, element, subtype(slot_type, type(element)), variables, visiting
        )
        return path.prepend(step) if path is not None else None

    def evaluate(self, path: EvidencePath, instance: Any) -> Any:
        """Get the type of the value ``path`` reaches from ``instance``.

        Generic witnesses are resolved recursively, so a witness holding a
        ``Box`` of ints yields ``Box[int]``. An absent witness yields the
        declared type of the last step.
        """
        value = path.walk(instance)
        if value is None:
            _logger.debug("Evidence path %r is empty, using %r", path, path.default_type)
            return path.default_type
        value_class = type(value)
        if type_parameters(value_class):
            return ParameterizedType(
                value_class, tuple(self.resolve_bound_arguments(value, value_class))
            )
        return value_class
