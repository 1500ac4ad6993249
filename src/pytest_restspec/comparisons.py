"""Comparison engine used by assertion steps.

This module implements the value semantics of assertions: deep structural
matching with `/regex/` string literals, truthiness, numeric ordering,
length and containment.
"""

from re import DOTALL, VERBOSE, error, fullmatch
from typing import TYPE_CHECKING

from pytest_restspec.errors import TypeMismatch
from pytest_restspec.values import MAPPINGS, SEQUENCES, is_number, to_text

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_restspec.values import RuntimeValue

#: Regex delimiter of `/pattern/` string literals.
REGEX_DELIMITER = '/'

#: Strings considered false by `is_true` and `is_false`.
FALSY_STRINGS = ('', 'false')


def is_regex(value: 'RuntimeValue') -> bool:
    """Check whether an expected value is a `/regex/` literal.

    Args:
        value: Expected value from a test document.

    Returns:
        True if the value is a string delimited by slashes.
    """
    if not isinstance(value, str):
        return False

    value = value.strip()

    return len(value) > 1 and value.startswith(REGEX_DELIMITER) and value.endswith(REGEX_DELIMITER)


def regex_match(actual: 'RuntimeValue', expected: str) -> bool:
    """Match a scalar against a `/regex/` literal.

    The pattern is compiled in verbose mode and must match the whole
    text representation of the value.

    Args:
        actual: Actual value. Containers never match.
        expected: Regex literal including delimiters.

    Returns:
        True if the value matches.

    Raises:
        TypeMismatch: If the pattern is not a valid regular expression.
    """
    if isinstance(actual, (*MAPPINGS, *SEQUENCES)):
        return False

    pattern = expected.strip()[1:-1]

    try:
        return fullmatch(pattern, to_text(actual), VERBOSE | DOTALL) is not None
    except error as base:
        raise TypeMismatch(f'Invalid regular expression {expected!r}') from base


def deep_match(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Structurally compare two values.

    Numbers compare by value regardless of `int`/`float`, booleans only
    equal booleans, mappings must have identical key sets and sequences
    identical lengths. Expected strings written as `/regex/` match by
    pattern instead of equality.

    Args:
        actual: Actual resolved value.
        expected: Expected value from a test document.

    Returns:
        True if the values match.
    """
    if is_regex(expected):
        return regex_match(actual, expected)

    if expected is None or isinstance(expected, bool):
        return actual is expected

    if is_number(expected):
        return is_number(actual) and actual == expected

    if isinstance(expected, str):
        return isinstance(actual, str) and actual == expected

    if isinstance(expected, MAPPINGS):
        return (
            isinstance(actual, MAPPINGS)
            and actual.keys() == expected.keys()
            and all(deep_match(actual[key], value) for key, value in expected.items())
        )

    if isinstance(expected, SEQUENCES):
        return (
            isinstance(actual, SEQUENCES)
            and len(actual) == len(expected)
            and all(
                deep_match(actual_item, expected_item)
                for actual_item, expected_item in zip(actual, expected, strict=True)
            )
        )

    return bool(actual == expected)


def is_truthy(value: 'RuntimeValue') -> bool:
    """Evaluate the truthiness of a resolved value.

    `None`, `False`, `0`, the empty string, the string `false` and empty
    collections are false; everything else is true.

    Args:
        value: Resolved value.

    Returns:
        Truthiness of the value.
    """
    if value is None or isinstance(value, bool):
        return bool(value)

    if is_number(value):
        return value != 0

    if isinstance(value, str):
        return value.strip().lower() not in FALSY_STRINGS

    if isinstance(value, (*MAPPINGS, *SEQUENCES)):
        return len(value) > 0

    return True


type Comparison = Callable[[RuntimeValue, RuntimeValue], bool]


def _ordering(test: 'Callable[[float, float], bool]') -> Comparison:
    """Build a numeric ordering comparison rejecting non-numbers."""
    def compare(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
        if not is_number(actual):
            raise TypeMismatch(f'Cannot compare non-numeric value {actual!r}')
        if not is_number(expected):
            raise TypeMismatch(f'Cannot compare with non-numeric value {expected!r}')
        return test(actual, expected)

    return compare


less_than = _ordering(lambda actual, expected: actual < expected)
less_than_or_equal = _ordering(lambda actual, expected: actual <= expected)
greater_than = _ordering(lambda actual, expected: actual > expected)
greater_than_or_equal = _ordering(lambda actual, expected: actual >= expected)


def length_of(value: 'RuntimeValue') -> int:
    """Count elements of a collection or characters of a string.

    Args:
        value: Resolved value.

    Returns:
        Number of elements or characters.

    Raises:
        TypeMismatch: If the value has no length.
    """
    if isinstance(value, (str, *MAPPINGS, *SEQUENCES)):
        return len(value)

    raise TypeMismatch(f'Value {value!r} has no length')


def contains(actual: 'RuntimeValue', expected: 'RuntimeValue') -> bool:
    """Check that a collection contains an element.

    Sequences must contain an element matching `expected` per
    `deep_match`, mappings must contain it as a key and strings as a
    substring.

    Args:
        actual: Resolved collection.
        expected: Expected element.

    Returns:
        True if the element is present.

    Raises:
        TypeMismatch: If the resolved value is not a collection or string.
    """
    if isinstance(actual, SEQUENCES):
        return any(deep_match(item, expected) for item in actual)

    if isinstance(actual, MAPPINGS):
        return isinstance(expected, str) and expected in actual

    if isinstance(actual, str):
        return to_text(expected) in actual

    raise TypeMismatch(f'Value {actual!r} is not a collection')
