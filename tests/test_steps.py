"""Tests for `do`, `set` and `transform_and_set` steps."""

from typing import TYPE_CHECKING

import pydantic
import pytest

from pytest_restspec.client import ParameterError, RequestTimeout, Result, TransportError
from pytest_restspec.errors import (
    AssertionFailed,
    CatchMismatch,
    PathNotFound,
    UndefinedVariable,
    UnexpectedRequestError,
)
from pytest_restspec.schema import DoStep, SetStep, TransformAndSetStep

if TYPE_CHECKING:
    from pytest_restspec.context import ExecutionContext

    from .conftest import FakeClient

MISSING = TransportError(
    'index_not_found_exception: no such index [books]',
    status=404,
    body={'error': {'type': 'index_not_found_exception', 'reason': 'no such index [books]'}, 'status': 404},
)

CONFLICT = TransportError(
    'version_conflict_engine_exception: document already exists',
    status=409,
    body={'error': {'type': 'version_conflict_engine_exception'}, 'status': 409},
)


def test_do_records_response(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Invoke the operation and record the response."""
    client.respond('index', Result(status=201, body={'result': 'created', '_id': '1'}))
    context.stash.set('name', 'books')

    step = DoStep(
        operation='index',
        params={'index': '$name', 'id': 1, 'refresh': True},
        body={'title': 'Dune', 'shelf': '$name'},
        headers={'X-Opaque-Id': 'req-$name'},
    )
    step(context)

    assert client.calls == [(
        'index',
        {'index': 'books', 'id': 1, 'refresh': True},
        {'title': 'Dune', 'shelf': 'books'},
        {'X-Opaque-Id': 'req-books'},
    )]
    assert context.last_response is not None
    assert context.last_response.status == 201
    assert context.body == {'result': 'created', '_id': '1'}


def test_do_substitutes_body_reference(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Resolve `$body` against the previous response."""
    client.respond('get', {'_source': {'title': 'Dune'}})
    DoStep(operation='get', params={'index': 'books', 'id': 1})(context)

    DoStep(operation='index', params={'index': 'copy', 'id': 1}, body='$body')(context)

    assert client.calls[-1][2] == {'_source': {'title': 'Dune'}}


def test_do_undefined_reference(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Fail before invoking the client when a reference is undefined."""
    with pytest.raises(UndefinedVariable):
        DoStep(operation='get', params={'index': '$missing', 'id': 1})(context)

    assert client.calls == []


@pytest.mark.parametrize('catch, error', (
    pytest.param('missing', MISSING, id='missing'),
    pytest.param('conflict', CONFLICT, id='conflict'),
    pytest.param('request', MISSING, id='request'),
    pytest.param('/no.such.index/', MISSING, id='regex on message'),
    pytest.param('/index_not_found_exception/', MISSING, id='regex on body'),
    pytest.param('unavailable', TransportError('unavailable', status=503), id='unavailable'),
    pytest.param('bad_request', TransportError('parse_exception', status=400), id='bad request'),
    pytest.param('param', ParameterError('missing required parameter index'), id='param'),
))
def test_do_catch(catch: str, error: Exception,
                  client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Suppress a matching error and record it as the last response."""
    client.respond('indices.get', error)

    DoStep(operation='indices.get', params={'index': 'books'}, catch=catch)(context)

    assert context.last_response is not None
    if isinstance(error, TransportError):
        assert context.last_response.status == error.status
        assert context.body == error.body
    else:
        assert context.body == {'error': str(error)}


@pytest.mark.parametrize('catch, error', (
    pytest.param('missing', CONFLICT, id='other status'),
    pytest.param('/mapper_parsing/', MISSING, id='regex mismatch'),
    pytest.param('param', MISSING, id='param on response error'),
    pytest.param('missing', ParameterError('bad'), id='status on parameter error'),
    pytest.param('request_timeout', RequestTimeout('timed out'), id='client side timeout'),
))
def test_do_catch_mismatch(catch: str, error: Exception,
                           client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Fail when the error does not match the declared catch."""
    client.respond('indices.get', error)

    with pytest.raises(CatchMismatch, match=rf"^Expected '{catch}' error"):
        DoStep(operation='indices.get', params={'index': 'books'}, catch=catch)(context)


def test_do_missing_exception(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Fail when an expected error did not happen."""
    client.respond('indices.get', {'books': {}})

    with pytest.raises(CatchMismatch, match=r'missing exception'):
        DoStep(operation='indices.get', params={'index': 'books'}, catch='missing')(context)


@pytest.mark.parametrize('error', (
    pytest.param(MISSING, id='error response'),
    pytest.param(RequestTimeout('GET /books timed out'), id='timeout'),
    pytest.param(ParameterError('missing required parameter index'), id='parameter'),
))
def test_do_unexpected_error(error: Exception,
                             client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Fail with an unexpected request error when no catch is declared."""
    client.respond('indices.get', error)

    with pytest.raises(UnexpectedRequestError, match=r'^indices.get failed') as excinfo:
        DoStep(operation='indices.get', params={'index': 'books'})(context)

    if isinstance(error, TransportError):
        assert excinfo.value.status == error.status


@pytest.mark.parametrize('catch', (
    pytest.param('not_found', id='unknown token'),
    pytest.param('/(/', id='invalid regex'),
))
def test_do_invalid_catch(catch: str) -> None:
    """Reject unknown catch values when the step is built."""
    with pytest.raises(pydantic.ValidationError):
        DoStep(operation='get', catch=catch)


def test_do_warnings(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Check expected warnings against the `Warning` response headers."""
    deprecated = Result(headers={'warning': '299 Elasticsearch-8.1.0 "[types removal] deprecated"'})
    client.respond('search', deprecated, Result())

    DoStep(operation='search', warnings=('[types removal] deprecated',))(context)

    with pytest.raises(AssertionFailed, match=r'^warnings failed'):
        DoStep(operation='search', warnings=('[types removal] deprecated',))(context)


def test_set_from_body(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Capture a response value into the stash."""
    client.respond('cluster.state', {'master_node': 'node-1'})
    DoStep(operation='cluster.state')(context)

    SetStep(path='master_node', target='master')(context)

    assert context.stash.get('master') == 'node-1'


def test_set_from_stash(context: 'ExecutionContext') -> None:
    """Capture a value found under a stashed value."""
    context.stash.set('doc', {'user': {'name': 'kim'}})

    SetStep(path='$doc.user.name', target='name')(context)

    assert context.stash.get('name') == 'kim'


def test_set_missing_path(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Fail on absent paths without touching the stash."""
    client.respond('info', {'version': {}})
    DoStep(operation='info')(context)

    with pytest.raises(PathNotFound):
        SetStep(path='version.number', target='version')(context)

    assert 'version' not in context.stash


def test_set_alias() -> None:
    """Accept the `as` alias used in documents."""
    step = SetStep.model_validate({'path': 'hits.total', 'as': 'total'})

    assert step.target == 'total'
    assert step.to_document() == {'set': {'hits.total': 'total'}}


def test_transform_and_set(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Apply a transform to resolved values and stash the result."""
    client.respond('security.create_api_key', {'id': 'key-id', 'api_key': 'secret'})
    DoStep(operation='security.create_api_key', body={'name': 'k'})(context)

    step = TransformAndSetStep(path='id, api_key', transform='base64EncodeCredentials', target='login')
    step(context)

    assert step.arguments == ('id', 'api_key')
    assert context.stash.get('login') == 'a2V5LWlkOnNlY3JldA=='


def test_transform_unknown() -> None:
    """Reject unknown transforms when the step is built."""
    with pytest.raises(pydantic.ValidationError):
        TransformAndSetStep(path='id', transform='rot13', target='x')


def test_do_allowed_warnings(client: 'FakeClient', context: 'ExecutionContext') -> None:
    """Accept allowed warnings and reject undeclared ones once warnings are declared."""
    client.respond('search', Result(headers={'Warning': '299 Elasticsearch-8.1.0 "[size] is deprecated"'}))

    DoStep(operation='search', allowed_warnings=('[size] is deprecated',))(context)
    DoStep(operation='search')(context)

    with pytest.raises(AssertionFailed, match=r'^allowed_warnings failed'):
        DoStep(operation='search', allowed_warnings=('[from] is deprecated',))(context)
