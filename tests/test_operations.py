"""Tests for the operation catalog."""

from typing import TYPE_CHECKING, Any

import pytest

from pytest_restspec.client import ParameterError
from pytest_restspec.operations import OPERATIONS, Operation, OperationCatalog, Route

if TYPE_CHECKING:
    from re import Pattern


@pytest.mark.parametrize('name, arguments, body, expected', (
    pytest.param(
        'info', {}, None,
        ('GET', '/', {}),
        id='no arguments',
    ),
    pytest.param(
        'index', {'index': 'books', 'id': 1, 'refresh': True}, {'title': 'Dune'},
        ('PUT', '/books/_doc/1', {'refresh': 'true'}),
        id='most specific route',
    ),
    pytest.param(
        'index', {'index': 'books'}, {'title': 'Dune'},
        ('POST', '/books/_doc', {}),
        id='fallback route',
    ),
    pytest.param(
        'search', {'index': ['books', 'films'], 'size': 0}, None,
        ('POST', '/books,films/_search', {'size': '0'}),
        id='list path part',
    ),
    pytest.param(
        'get', {'index': 'my index', 'id': 'a/b', 'routing': None}, None,
        ('GET', '/my%20index/_doc/a%2Fb', {}),
        id='escaped path part',
    ),
    pytest.param(
        'cluster.health', {'wait_for_status': 'yellow', 'pretty': True}, None,
        ('GET', '/_cluster/health', {'wait_for_status': 'yellow', 'pretty': 'true'}),
        id='common parameter',
    ),
))
def test_bind(name: str, arguments: dict[str, Any], body: Any,
              expected: tuple[str, str, dict[str, str]]) -> None:
    """Bind arguments to the matching route and query parameters."""
    request = OPERATIONS.bind(name, arguments, body)

    assert (request.method, request.path, request.params) == expected
    assert request.body == body


def test_bind_ndjson() -> None:
    """Mark bulk requests as newline-delimited."""
    request = OPERATIONS.bind('bulk', {'index': 'books'}, [{'index': {}}, {'title': 'Dune'}])

    assert request.ndjson
    assert request.path == '/books/_bulk'


@pytest.mark.parametrize('name, arguments, body, expect_message', (
    pytest.param('indices.explode', {}, None, r"^Unknown operation 'indices.explode'",
                 id='unknown operation'),
    pytest.param('index', {'index': 'books'}, None, r"^Required argument 'body' missing",
                 id='missing body'),
    pytest.param('info', {}, {'a': 1}, r"^Operation 'info' does not accept a body",
                 id='unexpected body'),
    pytest.param('get', {'index': 'books'}, None, r"^Missing path arguments for 'get': id",
                 id='missing path part'),
    pytest.param('get', {'index': 'books', 'id': 1, 'size': 1}, None,
                 r"^Unsupported parameter 'size' for 'get'", id='unsupported parameter'),
    pytest.param('search', {'q': {'a': 1}}, None, r'cannot be used as an argument',
                 id='mapping argument'),
))
def test_bind_invalid(name: str, arguments: dict[str, Any], body: Any,
                      expect_message: 'Pattern') -> None:
    """Reject invalid arguments before any request is sent."""
    with pytest.raises(ParameterError, match=expect_message):
        OPERATIONS.bind(name, arguments, body)


def test_route_parts() -> None:
    """List the placeholders of a route template."""
    route = Route(method='GET', path='/{index}/_alias/{name}')

    assert route.parts == ('index', 'name')


def test_catalog_rejects_duplicates() -> None:
    """Refuse to register an operation twice."""
    operation = Operation(name='ping', routes=(Route(method='HEAD', path='/'),))

    with pytest.raises(ValueError, match=r"^Operation 'ping' is already registered"):
        OperationCatalog(operation, operation)


def test_catalog_mapping() -> None:
    """Expose operations as a read-only mapping."""
    assert 'indices.create' in OPERATIONS
    assert OPERATIONS['indices.create'].body == 'optional'
    assert len(OPERATIONS) == len(set(OPERATIONS))
