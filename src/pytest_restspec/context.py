"""Execution state shared by the steps of one test file.

The context owns the stash and the last response. Steps read and write it;
the runner creates one context per test file so that nothing leaks between
files.
"""

import logging
from typing import TYPE_CHECKING

from pytest_restspec.client import Result
from pytest_restspec.names import REFERENCE_PATTERN
from pytest_restspec.paths import PathResolver, split_path
from pytest_restspec.stash import Stash
from pytest_restspec.values import MAPPINGS

if TYPE_CHECKING:
    from collections.abc import Collection

if TYPE_CHECKING:
    from pytest_restspec.client import ApiClient
    from pytest_restspec.values import RuntimeValue

logger = logging.getLogger(__name__)

#: Reserved stash name bound to the last response body.
BODY_BINDING = 'body'


class ExecutionContext:
    """Mutable state of a single test file execution.

    Attributes:
        client: Service client invoked by `do` steps.
        stash: Values captured by `set` and `transform_and_set` steps.
        last_response: Result of the most recent `do` step.
        skip_features: Features the runner treats as unsupported.
    """

    def __init__(self, client: 'ApiClient', *,
                 skip_features: 'Collection[str]' = frozenset(),
                 server_version: str | None = None) -> None:
        """Initialize the context.

        Args:
            client: Service client.
            skip_features: Features treated as unsupported.
            server_version: Known service version. Fetched lazily through
                the `info` operation when omitted.
        """
        self.client = client
        self.stash = Stash()
        self.last_response: Result | None = None
        self.skip_features = frozenset(skip_features)

        self._server_version = server_version

    @property
    def body(self) -> 'RuntimeValue':
        """Body of the last response, or `None` before any call."""
        if self.last_response is None:
            return None

        return self.last_response.body

    @property
    def bindings(self) -> dict[str, 'RuntimeValue']:
        """Reserved names resolved before stash lookups."""
        if self.last_response is None:
            return {}

        return {BODY_BINDING: self.last_response.body}

    @property
    def server_version(self) -> str:
        """Version of the service under test.

        Raises:
            TransportError: If the version has to be fetched and the call fails.
        """
        if self._server_version is None:
            result = self.client.invoke('info', {})
            self._server_version = self._version_number(result.body)
            logger.debug('Detected service version %r', self._server_version)

        return self._server_version

    @staticmethod
    def _version_number(body: 'RuntimeValue') -> str:
        """Extract `version.number` from an `info` response body."""
        version = body.get('version') if isinstance(body, MAPPINGS) else None
        if isinstance(version, MAPPINGS):
            version = version.get('number')

        return version if isinstance(version, str) else ''

    def substitute[T](self, value: T) -> T:
        """Substitute stash references inside a value."""
        return self.stash.resolve(value, self.bindings)

    def lookup(self, path: str) -> 'RuntimeValue':
        """Resolve a step path.

        Paths starting with a stash reference (`$name.rest`) are resolved
        against the stashed value; every other path is resolved against the
        last response body.

        Args:
            path: Dotted path.

        Returns:
            The resolved value.

        Raises:
            PathNotFound: If any segment is absent.
            UndefinedVariable: If a referenced variable is not stashed.
        """
        resolver = PathResolver(self.stash, self.bindings)
        segments = split_path(path)

        if segments and (match := REFERENCE_PATTERN.match(segments[0])):
            name = match['braced'] or match['name']
            root = self.stash.lookup(name, self.bindings)
            return resolver.resolve_segments(root, segments[1:], path)

        return resolver.resolve(self.body, path)

    def record(self, result: Result) -> None:
        """Store the result of a call as the last response."""
        self.last_response = result

    def reset(self) -> None:
        """Clear the stash and the last response."""
        self.stash.clear()
        self.last_response = None
