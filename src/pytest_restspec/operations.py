"""Static catalog of supported API operations.

Each dotted operation name used by `do` steps maps to an `Operation`
describing its HTTP routes, the query parameters it accepts and whether it
takes a body. Binding an operation to arguments performs path templating and
parameter whitelisting; unknown operations are rejected when a test file is
loaded rather than when it runs.
"""

from collections.abc import Iterator, Mapping
from re import findall
from typing import Literal
from urllib.parse import quote

from pydantic import Field

from pytest_restspec.client import ParameterError
from pytest_restspec.models import SchemaModel
from pytest_restspec.names import Operation as OperationName  # noqa: TC001
from pytest_restspec.values import MAPPINGS, SEQUENCES, RuntimeValue, to_text

type Method = Literal['GET', 'HEAD', 'POST', 'PUT', 'DELETE']
type BodyMode = Literal['none', 'optional', 'required']

#: Query parameters accepted by every operation.
COMMON_PARAMS = frozenset({
    'error_trace',
    'filter_path',
    'human',
    'pretty',
})

#: Characters kept unescaped in path parts.
_PATH_SAFE = ',*'


class Route(SchemaModel):
    """A single HTTP route of an operation."""

    method: Method
    path: str = Field(
        title='Path template',
        description='Path with `{part}` placeholders, for example `/{index}/_settings`.',
    )

    @property
    def parts(self) -> tuple[str, ...]:
        """Names of the placeholders used by the path template."""
        return tuple(findall(r'\{(\w+)\}', self.path))


class Request(SchemaModel):
    """A bound request ready to be sent by a transport."""

    method: Method
    path: str
    params: dict[str, str] = Field(default_factory=dict)
    body: RuntimeValue = None
    ndjson: bool = False


class Operation(SchemaModel):
    """Declarative definition of an API operation."""

    name: OperationName
    routes: tuple[Route, ...] = Field(min_length=1)
    params: frozenset[str] = Field(
        default_factory=frozenset,
        title='Accepted query parameters',
    )
    body: BodyMode = 'none'
    ndjson: bool = Field(
        default=False,
        title='Newline-delimited body',
        description='Sequence bodies are sent as newline-delimited JSON.',
    )

    def bind(self, arguments: Mapping[str, RuntimeValue],
             body: RuntimeValue = None) -> Request:
        """Bind arguments to a request.

        The most specific route whose placeholders are all provided wins.
        Remaining arguments must be accepted query parameters.

        Args:
            arguments: Path and query arguments.
            body: Request body.

        Returns:
            The bound request.

        Raises:
            ParameterError: If a required body or path part is missing, or
                an argument is not supported by the operation.
        """
        if self.body == 'required' and body is None:
            raise ParameterError(f"Required argument 'body' missing for {self.name!r}")

        if self.body == 'none' and body is not None:
            raise ParameterError(f'Operation {self.name!r} does not accept a body')

        provided = {
            key: value
            for key, value in arguments.items()
            if value is not None
        }

        route = self._select_route(provided)
        path = route.path.format(**{
            part: quote(self._listify(provided[part]), safe=_PATH_SAFE)
            for part in route.parts
        })

        params = {}
        for key, value in provided.items():
            if key in route.parts:
                continue
            if key not in self.params and key not in COMMON_PARAMS:
                raise ParameterError(f'Unsupported parameter {key!r} for {self.name!r}')
            params[key] = self._listify(value)

        return Request(
            method=route.method,
            path=path,
            params=params,
            body=body,
            ndjson=self.ndjson,
        )

    def _select_route(self, provided: Mapping[str, RuntimeValue]) -> Route:
        """Pick the most specific route satisfied by the arguments."""
        routes = sorted(self.routes, key=lambda route: len(route.parts), reverse=True)
        for route in routes:
            if all(part in provided for part in route.parts):
                return route

        required = min(routes, key=lambda route: len(route.parts)).parts
        missing = ', '.join(part for part in required if part not in provided)

        raise ParameterError(f'Missing path arguments for {self.name!r}: {missing}')

    @staticmethod
    def _listify(value: RuntimeValue) -> str:
        """Render an argument value as a path part or query value."""
        if isinstance(value, bool):
            return 'true' if value else 'false'

        if isinstance(value, SEQUENCES):
            return ','.join(to_text(item) for item in value)

        if isinstance(value, MAPPINGS):
            raise ParameterError(f'Mapping {value!r} cannot be used as an argument')

        return to_text(value)


class OperationCatalog(Mapping[str, Operation]):
    """Immutable registry of operations indexed by dotted name."""

    def __init__(self, *operations: Operation) -> None:
        """Initialize the catalog.

        Args:
            *operations: Operation definitions.

        Raises:
            ValueError: If an operation name is registered twice.
        """
        self._operations: dict[str, Operation] = {}
        for operation in operations:
            if operation.name in self._operations:
                raise ValueError(f'Operation {operation.name!r} is already registered')
            self._operations[operation.name] = operation

    def __getitem__(self, name: str) -> Operation:
        return self._operations[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def bind(self, name: str, arguments: Mapping[str, RuntimeValue],
             body: RuntimeValue = None) -> Request:
        """Bind a named operation to a request.

        Raises:
            ParameterError: If the operation is unknown or arguments invalid.
        """
        if name not in self._operations:
            raise ParameterError(f'Unknown operation {name!r}')

        return self._operations[name].bind(arguments, body)


def _op(name: str, *routes: str, params: tuple[str, ...] = (),
        body: BodyMode = 'none', ndjson: bool = False) -> Operation:
    """Shorthand for an operation whose routes are written as `METHOD /path`."""
    return Operation(
        name=name,
        routes=tuple(
            Route(method=method, path=path)  # type: ignore[arg-type]
            for method, path in (route.split(' ', 1) for route in routes)
        ),
        params=frozenset(params),
        body=body,
        ndjson=ndjson,
    )


_INDICES_OPTIONS = ('allow_no_indices', 'expand_wildcards', 'ignore_unavailable')
_TIMEOUTS = ('master_timeout', 'timeout')
_WRITE = ('refresh', 'routing', 'timeout', 'version', 'version_type', 'wait_for_active_shards')

OPERATIONS = OperationCatalog(
    _op('info', 'GET /'),
    _op('ping', 'HEAD /'),

    _op('index', 'PUT /{index}/_doc/{id}', 'POST /{index}/_doc',
        params=(*_WRITE, 'op_type', 'pipeline', 'if_seq_no', 'if_primary_term'), body='required'),
    _op('create', 'PUT /{index}/_create/{id}', params=(*_WRITE, 'pipeline'), body='required'),
    _op('get', 'GET /{index}/_doc/{id}',
        params=('preference', 'realtime', 'refresh', 'routing', 'stored_fields',
                '_source', '_source_excludes', '_source_includes', 'version', 'version_type')),
    _op('exists', 'HEAD /{index}/_doc/{id}',
        params=('preference', 'realtime', 'refresh', 'routing', 'stored_fields')),
    _op('delete', 'DELETE /{index}/_doc/{id}',
        params=(*_WRITE, 'if_seq_no', 'if_primary_term')),
    _op('update', 'POST /{index}/_update/{id}',
        params=(*_WRITE, 'retry_on_conflict', 'if_seq_no', 'if_primary_term'), body='required'),
    _op('bulk', 'POST /{index}/_bulk', 'POST /_bulk',
        params=('pipeline', 'refresh', 'routing', 'timeout', 'wait_for_active_shards'),
        body='required', ndjson=True),
    _op('search', 'POST /{index}/_search', 'POST /_search',
        params=(*_INDICES_OPTIONS, 'from', 'q', 'rest_total_hits_as_int', 'routing', 'scroll',
                'search_type', 'size', 'sort', 'track_total_hits', 'typed_keys'),
        body='optional'),
    _op('count', 'POST /{index}/_count', 'POST /_count',
        params=(*_INDICES_OPTIONS, 'q', 'routing'), body='optional'),
    _op('scroll', 'POST /_search/scroll', params=('scroll', 'rest_total_hits_as_int'),
        body='required'),
    _op('clear_scroll', 'DELETE /_search/scroll', body='optional'),

    _op('indices.create', 'PUT /{index}', params=(*_TIMEOUTS, 'wait_for_active_shards'),
        body='optional'),
    _op('indices.delete', 'DELETE /{index}', params=(*_INDICES_OPTIONS, *_TIMEOUTS)),
    _op('indices.get', 'GET /{index}',
        params=(*_INDICES_OPTIONS, 'flat_settings', 'include_defaults', 'local', 'master_timeout')),
    _op('indices.exists', 'HEAD /{index}',
        params=(*_INDICES_OPTIONS, 'flat_settings', 'include_defaults', 'local')),
    _op('indices.refresh', 'POST /{index}/_refresh', 'POST /_refresh', params=_INDICES_OPTIONS),
    _op('indices.open', 'POST /{index}/_open', params=(*_INDICES_OPTIONS, *_TIMEOUTS)),
    _op('indices.close', 'POST /{index}/_close', params=(*_INDICES_OPTIONS, *_TIMEOUTS)),
    _op('indices.put_settings', 'PUT /{index}/_settings', 'PUT /_settings',
        params=(*_INDICES_OPTIONS, *_TIMEOUTS, 'preserve_existing', 'flat_settings'),
        body='required'),
    _op('indices.get_settings', 'GET /{index}/_settings/{name}', 'GET /{index}/_settings',
        'GET /_settings/{name}', 'GET /_settings',
        params=(*_INDICES_OPTIONS, 'flat_settings', 'include_defaults', 'local',
                'master_timeout')),
    _op('indices.put_mapping', 'PUT /{index}/_mapping',
        params=(*_INDICES_OPTIONS, *_TIMEOUTS, 'write_index_only'), body='required'),
    _op('indices.get_mapping', 'GET /{index}/_mapping', 'GET /_mapping',
        params=(*_INDICES_OPTIONS, 'local', 'master_timeout')),
    _op('indices.upgrade', 'POST /{index}/_upgrade', 'POST /_upgrade',
        params=(*_INDICES_OPTIONS, 'wait_for_completion', 'only_ancient_segments')),
    _op('indices.put_alias', 'PUT /{index}/_alias/{name}', params=_TIMEOUTS, body='optional'),
    _op('indices.get_alias', 'GET /{index}/_alias/{name}', 'GET /{index}/_alias',
        'GET /_alias/{name}', 'GET /_alias', params=(*_INDICES_OPTIONS, 'local')),
    _op('indices.delete_alias', 'DELETE /{index}/_alias/{name}', params=_TIMEOUTS),
    _op('indices.put_template', 'PUT /_template/{name}',
        params=('create', 'master_timeout', 'order'), body='required'),
    _op('indices.get_template', 'GET /_template/{name}', 'GET /_template',
        params=('flat_settings', 'local', 'master_timeout')),
    _op('indices.delete_template', 'DELETE /_template/{name}', params=_TIMEOUTS),

    _op('cluster.health', 'GET /_cluster/health/{index}', 'GET /_cluster/health',
        params=(*_TIMEOUTS, 'expand_wildcards', 'level', 'local', 'wait_for_active_shards',
                'wait_for_events', 'wait_for_no_initializing_shards',
                'wait_for_no_relocating_shards', 'wait_for_nodes', 'wait_for_status')),
    _op('cluster.state', 'GET /_cluster/state/{metric}/{index}', 'GET /_cluster/state/{metric}',
        'GET /_cluster/state', params=(*_INDICES_OPTIONS, 'flat_settings', 'local',
                                       'master_timeout')),
    _op('cluster.get_settings', 'GET /_cluster/settings',
        params=(*_TIMEOUTS, 'flat_settings', 'include_defaults')),
    _op('cluster.put_settings', 'PUT /_cluster/settings',
        params=(*_TIMEOUTS, 'flat_settings'), body='required'),

    _op('cat.indices', 'GET /_cat/indices/{index}', 'GET /_cat/indices',
        params=('bytes', 'format', 'h', 'health', 'help', 'local', 'master_timeout', 'pri',
                's', 'v')),
    _op('nodes.info', 'GET /_nodes/{node_id}/{metric}', 'GET /_nodes/{node_id}', 'GET /_nodes',
        params=('flat_settings', 'timeout')),
    _op('tasks.list', 'GET /_tasks',
        params=('actions', 'detailed', 'group_by', 'nodes', 'parent_task_id', 'timeout',
                'wait_for_completion')),
    _op('tasks.cancel', 'POST /_tasks/{task_id}/_cancel', 'POST /_tasks/_cancel',
        params=('actions', 'nodes', 'parent_task_id', 'wait_for_completion')),

    _op('snapshot.create_repository', 'PUT /_snapshot/{repository}',
        params=(*_TIMEOUTS, 'verify'), body='required'),
    _op('snapshot.get_repository', 'GET /_snapshot/{repository}', 'GET /_snapshot',
        params=('local', 'master_timeout')),
    _op('snapshot.delete_repository', 'DELETE /_snapshot/{repository}', params=_TIMEOUTS),
    _op('snapshot.create', 'PUT /_snapshot/{repository}/{snapshot}',
        params=('master_timeout', 'wait_for_completion'), body='optional'),
    _op('snapshot.get', 'GET /_snapshot/{repository}/{snapshot}',
        params=('ignore_unavailable', 'master_timeout', 'verbose')),
    _op('snapshot.delete', 'DELETE /_snapshot/{repository}/{snapshot}',
        params=('master_timeout',)),

    _op('security.authenticate', 'GET /_security/_authenticate'),
    _op('security.get_role', 'GET /_security/role/{name}', 'GET /_security/role'),
    _op('security.put_role', 'PUT /_security/role/{name}', params=('refresh',), body='required'),
    _op('security.delete_role', 'DELETE /_security/role/{name}', params=('refresh',)),
    _op('security.get_user', 'GET /_security/user/{username}', 'GET /_security/user'),
    _op('security.put_user', 'PUT /_security/user/{username}', params=('refresh',),
        body='required'),
    _op('security.delete_user', 'DELETE /_security/user/{username}', params=('refresh',)),
    _op('security.get_privileges', 'GET /_security/privilege/{application}/{name}',
        'GET /_security/privilege/{application}', 'GET /_security/privilege'),
    _op('security.delete_privileges', 'DELETE /_security/privilege/{application}/{name}',
        params=('refresh',)),
    _op('security.create_api_key', 'PUT /_security/api_key', params=('refresh',),
        body='required'),

    _op('ml.get_datafeeds', 'GET /_ml/datafeeds/{datafeed_id}', 'GET /_ml/datafeeds',
        params=('allow_no_match',)),
    _op('ml.stop_datafeed', 'POST /_ml/datafeeds/{datafeed_id}/_stop',
        params=('allow_no_match', 'force', 'timeout')),
    _op('ml.delete_datafeed', 'DELETE /_ml/datafeeds/{datafeed_id}', params=('force',)),
    _op('ml.get_jobs', 'GET /_ml/anomaly_detectors/{job_id}', 'GET /_ml/anomaly_detectors',
        params=('allow_no_match',)),
    _op('ml.close_job', 'POST /_ml/anomaly_detectors/{job_id}/_close',
        params=('allow_no_match', 'force', 'timeout')),
    _op('ml.delete_job', 'DELETE /_ml/anomaly_detectors/{job_id}',
        params=('force', 'wait_for_completion')),

    _op('rollup.get_jobs', 'GET /_rollup/job/{id}', 'GET /_rollup/job'),
    _op('rollup.stop_job', 'POST /_rollup/job/{id}/_stop',
        params=('timeout', 'wait_for_completion')),
    _op('rollup.delete_job', 'DELETE /_rollup/job/{id}'),
)
