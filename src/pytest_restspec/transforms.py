"""Value transforms available to `transform_and_set` steps.

A transform is written as `#name(path, ...)`. Each argument is a path
resolved like any other step path; the resolved values are passed to the
transform function in order.
"""

from base64 import b64encode
from collections.abc import Callable
from json import dumps
from re import compile as regexp

from pytest_restspec.values import RuntimeValue, to_text

#: A transform receives resolved argument values and returns a new value.
type Transform = Callable[[list[RuntimeValue]], RuntimeValue]

#: `#name(arg, arg)` expression.
TRANSFORM_PATTERN = regexp(r'^#(?P<name>[a-zA-Z]\w*)\((?P<args>[^()]*)\)$')


def _expect_arity(name: str, args: list[RuntimeValue], count: int) -> None:
    """Validate the number of transform arguments."""
    if len(args) != count:
        raise ValueError(f'{name} expects {count} argument(s), got {len(args)}')


def base64_encode_credentials(args: list[RuntimeValue]) -> str:
    """Encode `user:password` credentials with base64."""
    _expect_arity('base64EncodeCredentials', args, 2)
    user, password = (to_text(arg) for arg in args)

    return b64encode(f'{user}:{password}'.encode()).decode('ascii')


def base64_encode(args: list[RuntimeValue]) -> str:
    """Encode the text representation of a value with base64."""
    _expect_arity('base64Encode', args, 1)

    return b64encode(to_text(args[0]).encode()).decode('ascii')


def to_json(args: list[RuntimeValue]) -> str:
    """Serialize a value to compact JSON."""
    _expect_arity('toJson', args, 1)

    return dumps(args[0], ensure_ascii=False, separators=(',', ':'))


TRANSFORMS: dict[str, Transform] = {
    'base64EncodeCredentials': base64_encode_credentials,
    'base64Encode': base64_encode,
    'toJson': to_json,
}


def parse_transform(expression: str) -> tuple[str, tuple[str, ...]]:
    """Split a transform expression into its name and argument paths.

    Args:
        expression: Expression such as `#base64EncodeCredentials(id,api_key)`.

    Returns:
        Tuple of the transform name and the argument paths.

    Raises:
        ValueError: If the expression is malformed or names an unknown
            transform.
    """
    match = TRANSFORM_PATTERN.match(expression.strip())
    if not match:
        raise ValueError(f'Invalid transform expression {expression!r}')

    name = match['name']
    if name not in TRANSFORMS:
        raise ValueError(f'Unknown transform {name!r}')

    args = tuple(arg.strip() for arg in match['args'].split(',') if arg.strip())

    return name, args
