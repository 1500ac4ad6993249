"""Service state reset utilities.

The runner calls one of the two reset operations before and after each test
file so that every file starts from an empty service. Both are idempotent
and may be called on an already clean service.
"""

import logging
from typing import TYPE_CHECKING

from pytest_restspec.client import TransportError
from pytest_restspec.errors import ClusterResetFailed
from pytest_restspec.values import MAPPINGS

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_restspec.client import ApiClient, Result
    from pytest_restspec.values import RuntimeValue

logger = logging.getLogger(__name__)

#: Index prefixes owned by the service itself and never deleted.
PROTECTED_INDEX_PREFIXES = ('.security', '.watches')

#: Superuser recreated after security objects are wiped.
REST_USER = 'x_pack_rest_user'
REST_PASSWORD = 'x-pack-test-password'  # noqa: S105

_NOT_FOUND = 404

#: A reset operation applied to a client.
type ResetOperation = Callable[[ApiClient], None]


def _call(client: 'ApiClient', operation: str, *,
          body: 'RuntimeValue' = None, **params: 'RuntimeValue') -> 'Result | None':
    """Invoke an operation, treating a missing resource as success."""
    try:
        return client.invoke(operation, params, body=body)
    except TransportError as error:
        if error.status == _NOT_FOUND:
            logger.debug('%s: nothing to remove (%s)', operation, error)
            return None
        raise


def _attempt(client: 'ApiClient', operation: str, **params: 'RuntimeValue') -> None:
    """Invoke a best-effort removal; built-in objects may refuse deletion."""
    try:
        _call(client, operation, **params)
    except TransportError as error:
        logger.debug('%s %s refused: %s', operation, params, error)


def _body(result: 'Result | None') -> dict:
    """Return a mapping body or an empty mapping."""
    if result is None or not isinstance(result.body, MAPPINGS):
        return {}

    return result.body


def clear_indices(client: 'ApiClient') -> None:
    """Delete all user indices and their aliases."""
    indices = _body(_call(client, 'indices.get', index='_all', expand_wildcards='all'))

    for index in indices:
        if index.startswith(PROTECTED_INDEX_PREFIXES):
            continue
        _call(client, 'indices.delete_alias', index=index, name='*')
        _call(client, 'indices.delete', index=index)


def clear_index_templates(client: 'ApiClient') -> None:
    """Delete all legacy index templates."""
    _call(client, 'indices.delete_template', name='*')


def clear_snapshots_and_repositories(client: 'ApiClient') -> None:
    """Delete every snapshot of every repository, then the repositories."""
    repositories = _body(_call(client, 'snapshot.get_repository', repository='_all'))

    for repository in repositories:
        snapshots = _body(_call(client, 'snapshot.get', repository=repository, snapshot='_all'))
        for snapshot in snapshots.get('snapshots', ()):
            _call(client, 'snapshot.delete', repository=repository, snapshot=snapshot['snapshot'])
        _call(client, 'snapshot.delete_repository', repository=repository)


def clear_roles(client: 'ApiClient') -> None:
    """Delete all roles that can be deleted."""
    for role in _body(_call(client, 'security.get_role')):
        _attempt(client, 'security.delete_role', name=role)


def clear_users(client: 'ApiClient') -> None:
    """Delete all users that can be deleted."""
    for user in _body(_call(client, 'security.get_user')):
        _attempt(client, 'security.delete_user', username=user)


def clear_privileges(client: 'ApiClient') -> None:
    """Delete all application privileges."""
    for application, privileges in _body(_call(client, 'security.get_privileges')).items():
        for name in privileges:
            _attempt(client, 'security.delete_privileges', application=application, name=name)


def clear_datafeeds(client: 'ApiClient') -> None:
    """Stop and delete all machine learning datafeeds."""
    _call(client, 'ml.stop_datafeed', datafeed_id='_all', force=True)
    for datafeed in _body(_call(client, 'ml.get_datafeeds')).get('datafeeds', ()):
        _call(client, 'ml.delete_datafeed', datafeed_id=datafeed['datafeed_id'])


def clear_ml_jobs(client: 'ApiClient') -> None:
    """Close and delete all machine learning jobs."""
    _call(client, 'ml.close_job', job_id='_all', force=True)
    for job in _body(_call(client, 'ml.get_jobs')).get('jobs', ()):
        _call(client, 'ml.delete_job', job_id=job['job_id'])


def clear_rollup_jobs(client: 'ApiClient') -> None:
    """Stop and delete all rollup jobs."""
    for job in _body(_call(client, 'rollup.get_jobs', id='_all')).get('jobs', ()):
        job_id = job['config']['id']
        _call(client, 'rollup.stop_job', id=job_id)
        _call(client, 'rollup.delete_job', id=job_id)


def clear_tasks(client: 'ApiClient') -> None:
    """Cancel all cancellable tasks."""
    nodes = _body(_call(client, 'tasks.list')).get('nodes', {})

    for node in nodes.values():
        for task in node.get('tasks', {}).values():
            if task.get('cancellable'):
                _attempt(client, 'tasks.cancel', task_id=f'{task["node"]}:{task["id"]}')


def clear_machine_learning_indices(client: 'ApiClient') -> None:
    """Delete internal machine learning indices."""
    _call(client, 'indices.delete', index='.ml-*')


def create_rest_user(client: 'ApiClient') -> None:
    """Recreate the superuser used by the test suites."""
    _call(
        client,
        'security.put_user',
        username=REST_USER,
        body={'password': REST_PASSWORD, 'roles': ['superuser']},
    )


def _reset(client: 'ApiClient', *steps: 'ResetOperation') -> None:
    """Run reset steps, converting any failure into `ClusterResetFailed`."""
    for step in steps:
        try:
            step(client)
        except Exception as base:
            raise ClusterResetFailed(f'Reset step {step.__name__} failed: {base}') from base


def reset_baseline(client: 'ApiClient') -> None:
    """Reset the service to an empty state.

    Deletes user indices, index templates, snapshots and repositories.

    Args:
        client: Service client.

    Raises:
        ClusterResetFailed: If any reset step fails.
    """
    logger.debug('Resetting service state')

    _reset(
        client,
        clear_indices,
        clear_index_templates,
        clear_snapshots_and_repositories,
    )


def reset_baseline_with_security(client: 'ApiClient') -> None:
    """Reset the service to an empty state including security objects.

    Removes roles, users, privileges, machine learning and rollup jobs,
    cancels running tasks, recreates the test superuser and then performs
    `reset_baseline`.

    Args:
        client: Service client.

    Raises:
        ClusterResetFailed: If any reset step fails.
    """
    logger.debug('Resetting service state and security objects')

    _reset(
        client,
        clear_roles,
        clear_users,
        clear_privileges,
        clear_datafeeds,
        clear_ml_jobs,
        clear_rollup_jobs,
        clear_tasks,
        clear_machine_learning_indices,
        create_rest_user,
    )
    reset_baseline(client)
