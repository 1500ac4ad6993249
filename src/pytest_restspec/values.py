"""Core type definitions for decoded documents and responses.

Test documents and API responses are both JSON-like trees. This module names
that value space and provides helpers shared by the stash, the path resolver
and the comparison engine.
"""

from collections.abc import Mapping, Sequence
from json import dumps
from typing import Any

#: Scalars are atomic values produced by YAML and JSON decoders.
type Scalar = str | bytes | int | float | bool

#: A decoded value: a scalar, a container of values, or `None`.
type Value = Scalar | Sequence['Value'] | Mapping[str, 'Value'] | None

#: Any Python object before it is known to be a `Value`.
type RuntimeValue = Any

MAPPINGS = (dict,)
SCALARS = (str, bytes, int, float, bool)
SEQUENCES = (list, tuple)
NUMBERS = (int, float)


def is_number(value: RuntimeValue) -> bool:
    """Check that a value is a real number.

    Booleans are integers in Python, but never numbers in a test document.

    Args:
        value: Value to inspect.

    Returns:
        True for `int` and `float` values that are not booleans.
    """
    return isinstance(value, NUMBERS) and not isinstance(value, bool)


def to_text(value: RuntimeValue) -> str:
    """Render a value as it would appear inside a JSON document.

    Strings are returned as is, everything else is serialized as JSON so
    that `True` becomes `true` and `None` becomes `null`.

    Args:
        value: Value to render.

    Returns:
        Text representation of the value.
    """
    if isinstance(value, str):
        return value

    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')

    return dumps(value, ensure_ascii=False, default=str)
