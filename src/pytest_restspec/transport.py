"""HTTP implementation of the service client boundary.

`HttpClient` binds operations from the static catalog to requests and sends
them with a `requests.Session`. Error responses are raised as
`TransportError` with the decoded body, which is what `catch` clauses are
evaluated against.
"""

import logging
from json import dumps
from typing import TYPE_CHECKING

import requests

from pytest_restspec.client import RequestTimeout, Result, TransportError
from pytest_restspec.operations import OPERATIONS
from pytest_restspec.values import MAPPINGS, SEQUENCES

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping
    from typing import Self

if TYPE_CHECKING:
    from pytest_restspec.operations import OperationCatalog, Request
    from pytest_restspec.settings import RunnerSettings
    from pytest_restspec.values import RuntimeValue

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = 'application/json'
NDJSON_CONTENT_TYPE = 'application/x-ndjson'

#: Client-side parameter listing statuses that must not raise.
IGNORE_PARAM = 'ignore'


class HttpClient:
    """Service client sending catalog operations over HTTP."""

    def __init__(self, url: str, *,
                 catalog: 'OperationCatalog' = OPERATIONS,
                 auth: tuple[str, str] | None = None,
                 timeout: float | None = None,
                 verify: bool = True,
                 session: requests.Session | None = None) -> None:
        """Initialize the client.

        Args:
            url: Base URL of the service, for example `http://localhost:9200`.
            catalog: Operations the client can invoke.
            auth: Optional basic authentication credentials.
            timeout: Request timeout in seconds; `None` waits forever.
            verify: Whether to verify TLS certificates.
            session: Optional preconfigured session.
        """
        self.url = url.rstrip('/')
        self.catalog = catalog
        self.timeout = timeout
        self.verify = verify

        self.session = session or requests.Session()
        if auth is not None:
            self.session.auth = auth

    @classmethod
    def from_settings(cls, settings: 'RunnerSettings') -> 'Self':
        """Build a client from runtime settings."""
        auth = None
        if settings.username is not None:
            password = settings.password.get_secret_value() if settings.password else ''
            auth = (settings.username, password)

        return cls(
            settings.url,
            auth=auth,
            timeout=settings.request_timeout,
            verify=settings.verify_certs,
        )

    @property
    def operations(self) -> 'Collection[str]':
        """Names of the operations this client supports."""
        return self.catalog.keys()

    def invoke(self, operation: str, params: 'Mapping[str, RuntimeValue]', *,
               body: 'RuntimeValue' = None,
               headers: 'Mapping[str, str] | None' = None) -> Result:
        """Perform an API operation.

        Args:
            operation: Dotted operation name.
            params: Path and query arguments. An `ignore` argument lists
                HTTP statuses returned as results instead of raised.
            body: Request body.
            headers: Additional request headers.

        Returns:
            The decoded response.

        Raises:
            ParameterError: If arguments are invalid for the operation.
            RequestTimeout: If the request timed out.
            TransportError: If the request failed.
        """
        arguments = dict(params)
        ignore = self._ignored_statuses(arguments.pop(IGNORE_PARAM, None))
        request = self.catalog.bind(operation, arguments, body)

        data, request_headers = self._encode(request)
        request_headers.update(headers or {})

        logger.debug('%s %s %s', request.method, request.path, request.params)

        try:
            response = self.session.request(
                request.method,
                f'{self.url}{request.path}',
                params=request.params,
                data=data,
                headers=request_headers,
                timeout=self.timeout,
                verify=self.verify,
            )

        except requests.Timeout as base:
            raise RequestTimeout(f'{request.method} {request.path} timed out') from base

        except requests.RequestException as base:
            raise TransportError(f'{request.method} {request.path} failed: {base}') from base

        status = response.status_code
        response_headers = dict(response.headers)

        logger.debug('%s %s -> %d', request.method, request.path, status)

        if request.method == 'HEAD':
            if status >= 400 and status != 404 and status not in ignore:  # noqa: PLR2004
                raise TransportError(response.reason or 'Request failed',
                                     status=status, headers=response_headers)
            return Result(status=status, headers=response_headers, body=status < 300)  # noqa: PLR2004

        decoded = self._decode(response)

        if status >= 400 and status not in ignore:  # noqa: PLR2004
            raise TransportError(
                self._error_message(decoded, response.reason),
                status=status,
                body=decoded,
                headers=response_headers,
            )

        return Result(status=status, headers=response_headers, body=decoded)

    @staticmethod
    def _encode(request: 'Request') -> tuple[str | None, dict[str, str]]:
        """Serialize the request body and pick its content type."""
        headers = {'Accept': JSON_CONTENT_TYPE}

        if request.body is None:
            return None, headers

        if isinstance(request.body, str):
            content_type = NDJSON_CONTENT_TYPE if request.ndjson else JSON_CONTENT_TYPE
            return request.body, {**headers, 'Content-Type': content_type}

        if request.ndjson and isinstance(request.body, SEQUENCES):
            data = ''.join(
                f'{item if isinstance(item, str) else dumps(item)}\n'
                for item in request.body
            )
            return data, {**headers, 'Content-Type': NDJSON_CONTENT_TYPE}

        return dumps(request.body), {**headers, 'Content-Type': JSON_CONTENT_TYPE}

    @staticmethod
    def _decode(response: requests.Response) -> 'RuntimeValue':
        """Decode a response body as JSON, falling back to text."""
        if not response.content:
            return None

        content_type = response.headers.get('Content-Type', '')
        if JSON_CONTENT_TYPE in content_type:
            try:
                return response.json()
            except ValueError:
                logger.warning('Response declared as JSON could not be decoded')

        return response.text

    @staticmethod
    def _error_message(body: 'RuntimeValue', reason: str | None) -> str:
        """Extract a human-readable message from an error body."""
        if isinstance(body, MAPPINGS):
            error = body.get('error')
            if isinstance(error, MAPPINGS):
                kind = error.get('type')
                details = error.get('reason')
                if kind and details:
                    return f'{kind}: {details}'
                if kind or details:
                    return str(kind or details)
            if isinstance(error, str):
                return error

        return reason or 'Request failed'

    @staticmethod
    def _ignored_statuses(value: 'RuntimeValue') -> frozenset[int]:
        """Normalize the `ignore` argument into a set of statuses."""
        if value is None:
            return frozenset()

        if isinstance(value, SEQUENCES):
            return frozenset(int(item) for item in value)

        if isinstance(value, str):
            return frozenset(int(item) for item in value.split(',') if item.strip())

        return frozenset({int(value)})
