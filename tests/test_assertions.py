"""Tests for assertion steps."""

from typing import TYPE_CHECKING, Any

import pytest

from pytest_restspec.client import Result
from pytest_restspec.errors import AssertionFailed, PathNotFound, TypeMismatch
from pytest_restspec.schema import AssertionStep

if TYPE_CHECKING:
    from pytest_restspec.context import ExecutionContext

RESPONSE = {
    'acknowledged': True,
    'errors': False,
    'took': 7,
    'hits': {
        'total': {'value': 3, 'relation': 'eq'},
        'hits': [
            {'_id': '1', '_source': {'title': 'Dune'}},
            {'_id': '2', '_source': {'title': 'Emma'}},
            {'_id': '3', '_source': {'title': 'Ulysses'}},
        ],
    },
    'tags': ['a', 'b'],
    'empty': [],
    'name': '',
}


@pytest.fixture
def responded(context: 'ExecutionContext') -> 'ExecutionContext':
    """Provide a context holding a canned last response."""
    context.record(Result(body=RESPONSE))
    context.stash.set('three', 3)
    context.stash.set('title', 'Emma')

    return context


@pytest.mark.parametrize('kind, path, expected', (
    pytest.param('match', 'hits.total.value', 3, id='match'),
    pytest.param('match', 'hits.total.value', '$three', id='match stash'),
    pytest.param('match', 'hits.hits.1._source', {'title': '$title'}, id='match nested stash'),
    pytest.param('match', 'hits.hits.0._id', '/^\\d$/', id='match regex'),
    pytest.param('match', '$body', RESPONSE, id='match body'),
    pytest.param('is_true', 'acknowledged', None, id='is_true'),
    pytest.param('is_true', 'hits.hits', None, id='is_true list'),
    pytest.param('is_false', 'errors', None, id='is_false'),
    pytest.param('is_false', 'name', None, id='is_false empty string'),
    pytest.param('is_false', 'empty', None, id='is_false empty list'),
    pytest.param('is_false', 'missing.path', None, id='is_false absent'),
    pytest.param('lt', 'took', 10, id='lt'),
    pytest.param('lte', 'took', 7, id='lte'),
    pytest.param('gt', 'hits.total.value', 2.5, id='gt'),
    pytest.param('gte', 'hits.total.value', '$three', id='gte stash'),
    pytest.param('length', 'hits.hits', 3, id='length'),
    pytest.param('length', 'hits.total', 2, id='length mapping'),
    pytest.param('length', 'hits.hits', '$three', id='length stash'),
    pytest.param('contains', 'tags', 'b', id='contains'),
    pytest.param('contains', 'hits.hits', {'_id': '2', '_source': {'title': 'Emma'}}, id='contains mapping'),
))
def test_assertion_passes(kind: str, path: str, expected: Any,
                          responded: 'ExecutionContext') -> None:
    """Pass assertions that hold."""
    AssertionStep(kind=kind, path=path, expected=expected)(responded)


def test_length_failure(responded: 'ExecutionContext') -> None:
    """Report the path, expected value and actual length."""
    with pytest.raises(AssertionFailed) as excinfo:
        AssertionStep(kind='length', path='hits.hits', expected=2)(responded)

    error = excinfo.value
    assert error.path == 'hits.hits'
    assert error.expected == 2
    assert error.actual == 3
    assert error.message == "length failed for 'hits.hits': expected 2, actual 3"


@pytest.mark.parametrize('kind, path, expected', (
    pytest.param('match', 'hits.total.value', 4, id='match'),
    pytest.param('match', 'hits.total', {'value': 3}, id='match missing key'),
    pytest.param('is_true', 'errors', None, id='is_true'),
    pytest.param('is_true', 'missing', None, id='is_true absent'),
    pytest.param('is_false', 'acknowledged', None, id='is_false'),
    pytest.param('lt', 'took', 7, id='lt'),
    pytest.param('gte', 'took', 8, id='gte'),
    pytest.param('contains', 'tags', 'c', id='contains'),
    pytest.param('contains', 'hits.hits', {'_id': '2'}, id='contains partial'),
))
def test_assertion_fails(kind: str, path: str, expected: Any,
                         responded: 'ExecutionContext') -> None:
    """Fail assertions that do not hold."""
    with pytest.raises(AssertionFailed, match=rf'^{kind} failed'):
        AssertionStep(kind=kind, path=path, expected=expected)(responded)


@pytest.mark.parametrize('kind, path, expected, error', (
    pytest.param('match', 'hits.missing', 1, PathNotFound, id='match absent'),
    pytest.param('gt', 'hits.hits.0._id', 0, TypeMismatch, id='gt on string'),
    pytest.param('lt', 'acknowledged', 1, TypeMismatch, id='lt on boolean'),
    pytest.param('length', 'took', 1, TypeMismatch, id='length on number'),
    pytest.param('length', 'tags', 'two', TypeMismatch, id='length with string'),
))
def test_assertion_errors(kind: str, path: str, expected: Any, error: type[Exception],
                          responded: 'ExecutionContext') -> None:
    """Fail with the specific error kind."""
    with pytest.raises(error):
        AssertionStep(kind=kind, path=path, expected=expected)(responded)


def test_assertions_are_pure(responded: 'ExecutionContext') -> None:
    """Repeat assertions with identical outcomes and no state change."""
    steps = [
        AssertionStep(kind='match', path='hits.total.value', expected='$three'),
        AssertionStep(kind='length', path='hits.hits', expected=3),
        AssertionStep(kind='is_true', path='acknowledged'),
    ]
    stash = responded.stash.snapshot()
    response = responded.last_response

    for _ in range(3):
        for step in steps:
            step(responded)

    assert responded.stash.snapshot() == stash
    assert responded.last_response is response

    for _ in range(2):
        with pytest.raises(AssertionFailed):
            AssertionStep(kind='match', path='took', expected=1)(responded)


@pytest.mark.parametrize('step, document', (
    pytest.param(
        AssertionStep(kind='is_true', path='acknowledged'),
        {'is_true': 'acknowledged'},
        id='unary',
    ),
    pytest.param(
        AssertionStep(kind='match', path='hits.total.value', expected=3),
        {'match': {'hits.total.value': 3}},
        id='binary',
    ),
))
def test_to_document(step: AssertionStep, document: dict[str, Any]) -> None:
    """Serialize assertions back to their document form."""
    assert step.to_document() == document
