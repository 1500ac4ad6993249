"""Tests for the comparison engine."""

from typing import Any

import pytest

from pytest_restspec import comparisons
from pytest_restspec.errors import TypeMismatch


@pytest.mark.parametrize('actual, expected', (
    pytest.param(1, 1.0, id='int and float'),
    pytest.param('green', 'green', id='string'),
    pytest.param(None, None, id='null'),
    pytest.param(True, True, id='boolean'),
    pytest.param({'a': [1, {'b': 'x'}]}, {'a': [1, {'b': 'x'}]}, id='nested'),
    pytest.param('abc123', '/^abc\\d+$/', id='regex'),
    pytest.param(42, '/\\d+/', id='regex on number'),
    pytest.param({'took': 5}, {'took': '/\\d+/'}, id='regex inside mapping'),
    pytest.param('a b', '/ a \\s b /', id='verbose regex'),
))
def test_deep_match(actual: Any, expected: Any) -> None:
    """Match structurally equal values."""
    assert comparisons.deep_match(actual, expected) is True


@pytest.mark.parametrize('actual, expected', (
    pytest.param(1, True, id='int is not boolean'),
    pytest.param(True, 1, id='boolean is not int'),
    pytest.param('1', 1, id='string is not number'),
    pytest.param({'a': 1, 'b': 2}, {'a': 1}, id='extra key'),
    pytest.param([1, 2], [1, 2, 3], id='shorter list'),
    pytest.param('abc123x', '/abc\\d+/', id='regex must match fully'),
    pytest.param(['x'], '/x/', id='regex on list'),
    pytest.param(0, None, id='zero is not null'),
))
def test_deep_mismatch(actual: Any, expected: Any) -> None:
    """Reject values that differ in type, shape or content."""
    assert comparisons.deep_match(actual, expected) is False


def test_invalid_regex() -> None:
    """Report invalid regular expressions as type mismatches."""
    with pytest.raises(TypeMismatch, match=r'^Invalid regular expression'):
        comparisons.deep_match('x', '/(/')


@pytest.mark.parametrize('value, expected', (
    pytest.param(None, False, id='null'),
    pytest.param(False, False, id='false'),
    pytest.param(0, False, id='zero'),
    pytest.param(0.0, False, id='zero float'),
    pytest.param('', False, id='empty string'),
    pytest.param('false', False, id='false string'),
    pytest.param([], False, id='empty list'),
    pytest.param({}, False, id='empty mapping'),
    pytest.param(True, True, id='true'),
    pytest.param(1, True, id='one'),
    pytest.param('yes', True, id='string'),
    pytest.param([0], True, id='list'),
    pytest.param({'a': None}, True, id='mapping'),
))
def test_is_truthy(value: Any, expected: bool) -> None:  # noqa: FBT001
    """Evaluate truthiness the way test documents expect."""
    assert comparisons.is_truthy(value) is expected


@pytest.mark.parametrize('comparison, actual, expected, result', (
    pytest.param(comparisons.less_than, 1, 2, True, id='lt'),
    pytest.param(comparisons.less_than, 2, 2, False, id='not lt'),
    pytest.param(comparisons.less_than_or_equal, 2, 2.0, True, id='lte'),
    pytest.param(comparisons.greater_than, 3.5, 3, True, id='gt'),
    pytest.param(comparisons.greater_than_or_equal, 2, 3, False, id='not gte'),
))
def test_orderings(comparison: comparisons.Comparison, actual: Any,
                   expected: Any, result: bool) -> None:  # noqa: FBT001
    """Compare numbers."""
    assert comparison(actual, expected) is result


@pytest.mark.parametrize('actual, expected', (
    pytest.param('10', 2, id='string actual'),
    pytest.param(True, 2, id='boolean actual'),
    pytest.param(1, '2', id='string expected'),
    pytest.param(None, 1, id='null actual'),
))
def test_orderings_reject_non_numbers(actual: Any, expected: Any) -> None:
    """Fail with a type mismatch for non-numeric operands."""
    with pytest.raises(TypeMismatch, match=r'^Cannot compare'):
        comparisons.less_than(actual, expected)


@pytest.mark.parametrize('value, expected', (
    pytest.param([1, 2, 3], 3, id='list'),
    pytest.param({'a': 1}, 1, id='mapping'),
    pytest.param('four', 4, id='string'),
))
def test_length_of(value: Any, expected: int) -> None:
    """Count elements and characters."""
    assert comparisons.length_of(value) == expected


def test_length_of_scalar() -> None:
    """Fail for values without a length."""
    with pytest.raises(TypeMismatch, match=r'has no length$'):
        comparisons.length_of(3)


@pytest.mark.parametrize('actual, expected, result', (
    pytest.param([{'id': 1}, {'id': 2}], {'id': 2}, True, id='list element'),
    pytest.param([{'id': 1, 'x': 0}], {'id': 1}, False, id='element must be deep equal'),
    pytest.param([1, 2], 3, False, id='missing element'),
    pytest.param({'books': {}}, 'books', True, id='mapping key'),
    pytest.param({'books': {}}, 'films', False, id='missing key'),
    pytest.param('hello world', 'world', True, id='substring'),
))
def test_contains(actual: Any, expected: Any, result: bool) -> None:  # noqa: FBT001
    """Check membership by collection kind."""
    assert comparisons.contains(actual, expected) is result


def test_contains_scalar() -> None:
    """Fail for values that are not collections."""
    with pytest.raises(TypeMismatch, match=r'is not a collection$'):
        comparisons.contains(5, 5)
