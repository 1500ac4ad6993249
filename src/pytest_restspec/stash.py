"""Variable stash and `$name` substitution.

The stash carries values captured by `set` and `transform_and_set` steps to
later steps. Any string inside a step's parameters, body, headers, paths or
expected values may reference a stashed value as `$name` or `${name}`.
"""

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any, overload

from pytest_restspec.errors import UndefinedVariable
from pytest_restspec.names import EMBEDDED_REFERENCE_PATTERN, REFERENCE_PATTERN, VARIABLE_PATTERN
from pytest_restspec.values import MAPPINGS, SEQUENCES, to_text

if TYPE_CHECKING:
    from re import Match

if TYPE_CHECKING:
    from pytest_restspec.values import RuntimeValue, Value


class Stash:
    """Mutable variable environment mapping names to decoded values.

    Substitution is textual-then-typed: a string that consists of a single
    reference is replaced by the stashed value with its native type, while a
    reference embedded in a longer string is rendered as text.
    """

    def __init__(self, values: 'Mapping[str, Value] | None' = None) -> None:
        """Initialize the stash.

        Args:
            values: Optional initial values.
        """
        self.values: dict[str, Value] = dict(values or {})

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.values!r})'

    def set(self, name: str, value: 'Value') -> None:
        """Store a value, overwriting any previous one.

        Args:
            name: Variable name.
            value: Value to store.

        Raises:
            ValueError: If the name is not a valid variable name.
        """
        if not VARIABLE_PATTERN.match(name):
            raise ValueError(f'Invalid stash variable name {name!r}')

        self.values[name] = value

    def get(self, name: str) -> 'Value':
        """Return a stashed value.

        Args:
            name: Variable name.

        Returns:
            The stashed value.

        Raises:
            UndefinedVariable: If nothing is stored under the name.
        """
        try:
            return self.values[name]
        except KeyError:
            raise UndefinedVariable(name) from None

    def clear(self) -> None:
        """Drop all stashed values."""
        self.values.clear()

    def snapshot(self) -> dict[str, 'Value']:
        """Return a shallow copy of the stashed values."""
        return dict(self.values)

    @overload
    def resolve(self, value: str,
                bindings: 'Mapping[str, RuntimeValue] | None' = None) -> 'RuntimeValue':
        ...  # pragma: no cover

    @overload
    def resolve[T](self, value: T,
                   bindings: 'Mapping[str, RuntimeValue] | None' = None) -> T:
        ...  # pragma: no cover

    def resolve(self, value: Any,
                bindings: 'Mapping[str, RuntimeValue] | None' = None) -> Any:
        """Substitute stash references inside a value.

        Strings, mapping keys and values, and sequence items are processed
        recursively. Other values are returned unchanged.

        Args:
            value: Value to process.
            bindings: Reserved names resolved before the stash, for example
                `body` bound to the last response body.

        Returns:
            The value with every reference substituted.

        Raises:
            UndefinedVariable: If a referenced variable is not defined.
        """
        if isinstance(value, str):
            return self._resolve_string(value, bindings)

        if isinstance(value, MAPPINGS):
            return {
                to_text(self._resolve_string(key, bindings)) if isinstance(key, str) else key:
                    self.resolve(item, bindings)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [self.resolve(item, bindings) for item in value]

        return value

    def lookup(self, name: str,
               bindings: 'Mapping[str, RuntimeValue] | None' = None) -> 'RuntimeValue':
        """Resolve a single variable name, honoring reserved bindings.

        Args:
            name: Variable name without the `$` sigil.
            bindings: Reserved names resolved before the stash.

        Returns:
            The bound or stashed value.

        Raises:
            UndefinedVariable: If the name is neither bound nor stashed.
        """
        if bindings and name in bindings:
            return bindings[name]

        return self.get(name)

    def _resolve_string(self, value: str,
                        bindings: 'Mapping[str, RuntimeValue] | None') -> 'RuntimeValue':
        """Substitute references inside a single string."""
        if '$' not in value:
            return value

        if match := REFERENCE_PATTERN.match(value):
            return self.lookup(match['braced'] or match['name'], bindings)

        def replace(match: 'Match[str]') -> str:
            return to_text(self.lookup(match['braced'] or match['name'], bindings))

        return EMBEDDED_REFERENCE_PATTERN.sub(replace, value)
