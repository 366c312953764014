"""Scope of enclosing parameterized types during schema generation."""

from contextlib import contextmanager
from typing import Any, Iterator, List

from reflectserde.exceptions import UnresolvableTypeVariableException
from reflectserde.reflect.types import TypeToken, TypeVariable


class SchemaGenerationScope:
    """Stack of the parameterized types whose schemas are being built.

    A type variable met while building a field schema is resolved against
    the innermost enclosing type first, then outward. One scope lives for
    one top-level schema request.
    """

    def __init__(self):
        self._stack: List[TypeToken] = []

    def push(self, type_expr: Any) -> None:
        self._stack.append(TypeToken(type_expr))

    def pop(self) -> Any:
        return self._stack.pop().type

    @contextmanager
    def entering(self, type_expr: Any) -> Iterator["SchemaGenerationScope"]:
        """Push ``type_expr`` for the duration of the ``with`` block."""
        self.push(type_expr)
        try:
            yield self
        finally:
            self.pop()

    @property
    def depth(self) -> int:
        return len(self._stack)

    def lookup(self, variable: TypeVariable) -> Any:
        """Resolve a type variable, or return the last variable it maps to."""
        resolved: Any = variable
        for token in reversed(self._stack):
            resolved = token.resolve(resolved)
            if not isinstance(resolved, TypeVariable):
                break
        return resolved

    def resolve(self, variable: TypeVariable) -> Any:
        """Resolve a type variable through the enclosing types.

        Raises:
            UnresolvableTypeVariableException: If no enclosing type binds
                the variable.
        """
        resolved = self.lookup(variable)
        if not isinstance(resolved, TypeVariable):
            return resolved
        raise UnresolvableTypeVariableException(
            f"Type variable {variable!r} is not bound; request the schema of an instance "
            f"or of an explicitly parameterized type such as Box[str]",
            type_variable=resolved,
        )

    def __repr__(self) -> str:
        return f"SchemaGenerationScope({[token.type for token in self._stack]!r})"
