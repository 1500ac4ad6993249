"""Tests for the variable stash and reference substitution."""

from typing import Any

import pytest

from pytest_restspec.errors import UndefinedVariable
from pytest_restspec.stash import Stash


def test_typed_substitution() -> None:
    """Substitute a whole-string reference with the native value."""
    stash = Stash()
    stash.set('x', 5)

    assert stash.resolve('$x') == 5
    assert stash.resolve('${x}') == 5


def test_string_coercion() -> None:
    """Render a reference embedded in a longer string as text."""
    stash = Stash()
    stash.set('x', 5)

    assert stash.resolve('prefix-$x') == 'prefix-5'
    assert stash.resolve('${x}0') == '50'


@pytest.mark.parametrize('value, expected', (
    pytest.param(True, 'flag=true', id='boolean'),
    pytest.param(None, 'flag=null', id='null'),
    pytest.param([1, 2], 'flag=[1, 2]', id='list'),
    pytest.param('on', 'flag=on', id='string'),
))
def test_embedded_rendering(value: Any, expected: str) -> None:
    """Render embedded non-string values as JSON text."""
    stash = Stash({'flag': value})

    assert stash.resolve('flag=$flag') == expected


def test_recursive_substitution() -> None:
    """Substitute references inside nested mappings, keys and lists."""
    stash = Stash({'index': 'books', 'id': 3, 'doc': {'title': 'Dune'}})

    resolved = stash.resolve({
        'index': '$index',
        '$index': ['$id', {'nested': '$doc'}],
        'count': 10,
    })

    assert resolved == {
        'index': 'books',
        'books': [3, {'nested': {'title': 'Dune'}}],
        'count': 10,
    }


def test_bindings_take_precedence() -> None:
    """Resolve reserved bindings before stashed values."""
    stash = Stash({'body': 'stashed'})

    assert stash.resolve('$body', {'body': {'acknowledged': True}}) == {'acknowledged': True}
    assert stash.resolve('$body') == 'stashed'


def test_undefined_variable() -> None:
    """Fail on references to variables that were never set."""
    stash = Stash()

    with pytest.raises(UndefinedVariable, match=r"^Stash variable 'missing' is not defined"):
        stash.resolve({'id': '$missing'})

    with pytest.raises(UndefinedVariable):
        stash.get('missing')


def test_set_overwrites() -> None:
    """Overwrite values unconditionally and clear them on demand."""
    stash = Stash()
    stash.set('x', 1)
    stash.set('x', 'two')

    assert stash.get('x') == 'two'
    assert 'x' in stash
    assert len(stash) == 1
    assert stash.snapshot() == {'x': 'two'}

    stash.clear()

    assert 'x' not in stash
    assert list(stash) == []


@pytest.mark.parametrize('name', (
    pytest.param('0var', id='leading digit'),
    pytest.param('with-dash', id='dash'),
    pytest.param('', id='empty'),
))
def test_invalid_name(name: str) -> None:
    """Reject invalid variable names."""
    with pytest.raises(ValueError, match=r'^Invalid stash variable name'):
        Stash().set(name, 1)


def test_plain_values_untouched() -> None:
    """Leave strings without references and non-string scalars unchanged."""
    stash = Stash()

    assert stash.resolve('no references') == 'no references'
    assert stash.resolve(42) == 42
    assert stash.resolve(None) is None
