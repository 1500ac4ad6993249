"""Assertion steps.

Assertions are pure: they resolve a path against the last response (or a
stashed value), evaluate a comparison and raise on failure, without
touching the stash or the last response.
"""

from typing import TYPE_CHECKING, Any, ClassVar, Literal

from pydantic import Field

from pytest_restspec import comparisons
from pytest_restspec.errors import AssertionFailed, PathNotFound, TypeMismatch

from .steps import BaseStep

if TYPE_CHECKING:
    from pytest_restspec.context import ExecutionContext
    from pytest_restspec.values import RuntimeValue

#: Assertion kind names as written in test documents.
type AssertionKind = Literal[
    'match',
    'is_true',
    'is_false',
    'lt',
    'lte',
    'gt',
    'gte',
    'length',
    'contains',
]

#: Assertion kinds written as `{kind: path}` without an expected value.
UNARY_KINDS = frozenset({'is_true', 'is_false'})

#: Kinds comparing numbers.
ORDERINGS = {
    'lt': comparisons.less_than,
    'lte': comparisons.less_than_or_equal,
    'gt': comparisons.greater_than,
    'gte': comparisons.greater_than_or_equal,
}


class AssertionStep(BaseStep):
    """Check of a value found at a path.

    For `is_true` and `is_false` the path is the whole argument and the
    expected value is unused. Every other kind takes a single-pair mapping
    of path to expected value; the expected value may contain stash
    references, substituted before the comparison.
    """

    tag: ClassVar[str] = 'assert'

    kind: AssertionKind = Field(
        title='Assertion kind',
    )
    path: str = Field(
        default='',
        title='Checked path',
        description='Dotted path; the empty path and `$body` denote the whole response body.',
    )
    expected: Any = Field(
        default=None,
        title='Expected value',
    )

    def __call__(self, context: 'ExecutionContext') -> None:
        """Evaluate the assertion.

        Raises:
            AssertionFailed: If the check does not hold.
            PathNotFound: If the path is absent (except for truthiness checks).
            TypeMismatch: If the value cannot be compared.
        """
        try:
            actual = context.lookup(self.path)

        except PathNotFound:
            if self.kind == 'is_false':
                return
            if self.kind == 'is_true':
                raise AssertionFailed(self.kind, self.path, True, None) from None
            raise

        if self.kind in UNARY_KINDS:
            self.check_truthiness(actual)
            return

        expected = context.substitute(self.expected)

        if self.kind == 'length':
            self.check_length(actual, expected)
            return

        if self.kind == 'match':
            passed = comparisons.deep_match(actual, expected)
        elif self.kind == 'contains':
            passed = comparisons.contains(actual, expected)
        else:
            passed = ORDERINGS[self.kind](actual, expected)

        if not passed:
            raise AssertionFailed(self.kind, self.path, expected, actual)

    def check_truthiness(self, actual: 'RuntimeValue') -> None:
        """Check `is_true` and `is_false` assertions."""
        expected = self.kind == 'is_true'
        if comparisons.is_truthy(actual) is not expected:
            raise AssertionFailed(self.kind, self.path, expected, actual)

    def check_length(self, actual: 'RuntimeValue', expected: 'RuntimeValue') -> None:
        """Check a `length` assertion against the element count."""
        if isinstance(expected, bool) or not isinstance(expected, int):
            raise TypeMismatch(f'Expected length must be an integer, got {expected!r}')

        length = comparisons.length_of(actual)
        if length != expected:
            raise AssertionFailed(self.kind, self.path, expected, length)

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        if self.kind in UNARY_KINDS:
            return {self.kind: self.path}

        return {self.kind: {self.path: self.expected}}
