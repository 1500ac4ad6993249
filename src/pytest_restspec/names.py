"""Name primitive types and validation rules.

This module defines the patterns used to validate API operation names
(`indices.create`), stash variable names and stash references inside
strings (`$name`, `${name}`).
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for identifiers used by operations and variables.
_NAME_PATTERN = r'[a-zA-Z_][\w]*'

#: Dotted API operation name, for example `indices.put_settings`.
OPERATION_PATTERN = regexp(
    rf'^(?P<namespace>({_NAME_PATTERN}\.)*)(?P<name>{_NAME_PATTERN})$',
    flags=ASCII,
)

#: Stash variable name.
VARIABLE_PATTERN = regexp(rf'^(?P<name>{_NAME_PATTERN})$', flags=ASCII)

#: A whole-string stash reference: `$name` or `${name}`.
REFERENCE_PATTERN = regexp(
    rf'^\$(\{{(?P<braced>{_NAME_PATTERN})\}}|(?P<name>{_NAME_PATTERN}))$',
    flags=ASCII,
)

#: Stash references embedded in a longer string.
EMBEDDED_REFERENCE_PATTERN = regexp(
    rf'\$(\{{(?P<braced>{_NAME_PATTERN})\}}|(?P<name>{_NAME_PATTERN}))',
    flags=ASCII,
)


Operation = Annotated[
    str, Field(
        pattern=rf'^({_NAME_PATTERN}\.)*{_NAME_PATTERN}$',
        title='Operation name',
        description=(
            'Dotted name of the API operation invoked by a `do` step, '
            'for example `indices.create` or `search`.'
        ),
        examples=[
            'search',
            'indices.create',
        ],
    ),
]

Variable = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}$',
        title='Stash variable',
        description=(
            'Name under which a value is stored in the stash and later '
            'referenced as `$name`.'
        ),
        examples=[
            'scroll_id',
            'master',
        ],
    ),
]
