"""Executable step definitions.

A step is one instruction of a test: an API call (`do`), a value capture
(`set`, `transform_and_set`), an assertion or a skip predicate. Every step
is an immutable model decoded from a single-key YAML mapping and executed
against an `ExecutionContext`.
"""

from re import error as RegexError  # noqa: N812
from re import search
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import Field, field_validator

from pytest_restspec.client import ParameterError, Result, TransportError
from pytest_restspec.comparisons import REGEX_DELIMITER, is_regex
from pytest_restspec.errors import AssertionFailed, CatchMismatch, UnexpectedRequestError
from pytest_restspec.models import SchemaModel
from pytest_restspec.names import Operation, Variable  # noqa: TC001
from pytest_restspec.transforms import TRANSFORMS

if TYPE_CHECKING:
    from pytest_restspec.context import ExecutionContext
    from pytest_restspec.values import Value

#: Catch tokens mapped to the HTTP status they expect.
CATCH_STATUSES = {
    'bad_request': 400,
    'unauthorized': 401,
    'forbidden': 403,
    'missing': 404,
    'request_timeout': 408,
    'conflict': 409,
    'unavailable': 503,
}

#: Catch token matching any error response.
CATCH_REQUEST = 'request'
#: Catch token matching a client-side parameter error.
CATCH_PARAM = 'param'

#: Lowest status treated as an error response.
ERROR_STATUS = 400

#: Response header carrying deprecation warnings.
WARNING_HEADER = 'Warning'


class BaseStep(SchemaModel):
    """Base class for executable steps.

    Concrete steps define the tag used in test documents and implement
    `__call__` against an execution context, raising a `StepError` subclass
    on failure.
    """

    #: Single top-level key identifying the step in a test document.
    tag: ClassVar[str]

    def __call__(self, context: 'ExecutionContext') -> None:
        """Execute the step."""
        raise NotImplementedError  # pragma: no cover

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        raise NotImplementedError  # pragma: no cover


class DoStep(BaseStep):
    """Remote API call, optionally expected to fail."""

    tag: ClassVar[str] = 'do'

    operation: Operation = Field(
        title='Operation name',
    )
    params: dict[str, Any] = Field(
        default_factory=dict,
        title='Operation arguments',
        description='Path and query arguments; stash references are substituted.',
    )
    body: Any = Field(
        default=None,
        title='Request body',
    )
    catch: str | None = Field(
        default=None,
        title='Expected error',
        description=(
            'A status token such as `missing` or `conflict`, `request` for any '
            'error response, `param` for a client-side argument error, or a '
            '`/regex/` searched in the error message and body.'
        ),
    )
    headers: dict[str, Any] | None = Field(
        default=None,
        title='Request headers',
    )
    warnings: tuple[str, ...] = Field(
        default=(),
        title='Expected warnings',
        description='Warnings that must be present in the response `Warning` headers.',
    )
    allowed_warnings: tuple[str, ...] = Field(
        default=(),
        title='Allowed warnings',
        description='Warnings that may be present in the response `Warning` headers.',
    )

    @field_validator('catch')
    @classmethod
    def check_catch(cls, value: str | None) -> str | None:
        """Validate the catch token or regex."""
        if value is None or value in CATCH_STATUSES or value in (CATCH_REQUEST, CATCH_PARAM):
            return value

        if is_regex(value):
            try:
                search(cls._catch_pattern(value), '')
            except RegexError as base:
                raise ValueError(f'Invalid catch regex {value!r}') from base
            return value

        raise ValueError(f'Unknown catch {value!r}')

    def __call__(self, context: 'ExecutionContext') -> None:
        """Invoke the operation and record its response.

        Raises:
            CatchMismatch: If the declared expected error did not happen.
            UnexpectedRequestError: If the call failed without a `catch`.
            AssertionFailed: If an expected warning is missing.
        """
        params = context.substitute(self.params)
        body = context.substitute(self.body)
        headers = context.substitute(self.headers)

        try:
            result = context.client.invoke(self.operation, params, body=body, headers=headers)

        except (TransportError, ParameterError) as error:
            context.record(self.handle_error(error))
            return

        except TimeoutError as error:
            raise UnexpectedRequestError(f'{self.operation} timed out: {error}') from error

        if self.catch is not None:
            raise CatchMismatch(
                f'Expected {self.catch!r} error from {self.operation}, '
                f'but the request succeeded with status {result.status} (missing exception)',
            )

        context.record(result)
        self.check_warnings(result)

    def handle_error(self, error: TransportError | ParameterError) -> Result:
        """Evaluate a failed call against the declared catch.

        Args:
            error: Error raised by the client.

        Returns:
            The error response, recorded as the last response.

        Raises:
            CatchMismatch: If the error does not match the catch.
            UnexpectedRequestError: If no catch is declared.
        """
        status = error.status if isinstance(error, TransportError) else None

        if self.catch is None:
            raise UnexpectedRequestError(
                f'{self.operation} failed: {error}',
                status=status,
                body=error.body if isinstance(error, TransportError) else None,
            ) from error

        if not self.catches(error):
            raise CatchMismatch(
                f'Expected {self.catch!r} error from {self.operation}, got: {error}',
            ) from error

        if isinstance(error, TransportError):
            return error.to_result()

        return Result(status=0, body={'error': str(error)})

    def catches(self, error: TransportError | ParameterError) -> bool:
        """Check whether an error matches the declared catch."""
        if self.catch == CATCH_PARAM:
            return isinstance(error, ParameterError)

        if isinstance(error, ParameterError):
            return False

        if self.catch is not None and is_regex(self.catch):
            return search(self._catch_pattern(self.catch), error.text) is not None

        if error.status is None:
            return False

        if self.catch == CATCH_REQUEST:
            return error.status >= ERROR_STATUS

        return CATCH_STATUSES.get(self.catch or '') == error.status

    def check_warnings(self, result: Result) -> None:
        """Verify the warnings returned with a response.

        Every expected warning must be returned. Once expected or allowed
        warnings are declared, any other returned warning fails the step.

        Raises:
            AssertionFailed: If an expected warning is missing or an
                undeclared one is returned.
        """
        if not self.warnings and not self.allowed_warnings:
            return

        received = result.header_values(WARNING_HEADER)
        text = ' '.join(received)
        for warning in self.warnings:
            if warning not in text:
                raise AssertionFailed('warnings', WARNING_HEADER, warning, received)

        declared = (*self.warnings, *self.allowed_warnings)
        for value in received:
            if not any(warning in value for warning in declared):
                raise AssertionFailed('allowed_warnings', WARNING_HEADER, list(declared), value)

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        arguments: dict[str, Any] = dict(self.params)
        if self.body is not None:
            arguments['body'] = self.body

        document: dict[str, Any] = {}
        if self.catch is not None:
            document['catch'] = self.catch
        if self.headers is not None:
            document['headers'] = self.headers
        if self.warnings:
            document['warnings'] = list(self.warnings)
        if self.allowed_warnings:
            document['allowed_warnings'] = list(self.allowed_warnings)
        document[self.operation] = arguments

        return {self.tag: document}

    @staticmethod
    def _catch_pattern(value: str) -> str:
        """Strip regex delimiters from a catch value."""
        return value.strip().removeprefix(REGEX_DELIMITER).removesuffix(REGEX_DELIMITER)


class SetStep(BaseStep):
    """Capture a value from the last response or stash."""

    tag: ClassVar[str] = 'set'

    path: str = Field(
        title='Source path',
    )
    target: Variable = Field(
        alias='as',
        title='Stash variable',
    )

    def __call__(self, context: 'ExecutionContext') -> None:
        """Store the resolved value in the stash.

        Raises:
            PathNotFound: If the path is absent.
        """
        context.stash.set(self.target, context.lookup(self.path))

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        return {self.tag: {self.path: self.target}}


class TransformAndSetStep(BaseStep):
    """Capture values, apply a transform and store the result."""

    tag: ClassVar[str] = 'transform_and_set'

    path: str = Field(
        title='Argument paths',
        description='Comma separated paths passed to the transform in order.',
    )
    transform: str = Field(
        title='Transform name',
    )
    target: Variable = Field(
        alias='as',
        title='Stash variable',
    )

    @field_validator('transform')
    @classmethod
    def check_transform(cls, value: str) -> str:
        """Validate the transform name."""
        if value not in TRANSFORMS:
            raise ValueError(f'Unknown transform {value!r}')

        return value

    @property
    def arguments(self) -> tuple[str, ...]:
        """Argument paths of the transform."""
        return tuple(item.strip() for item in self.path.split(',') if item.strip())

    def __call__(self, context: 'ExecutionContext') -> None:
        """Resolve the arguments, transform them and store the result.

        Raises:
            PathNotFound: If an argument path is absent.
        """
        values: list[Value] = [context.lookup(path) for path in self.arguments]
        context.stash.set(self.target, TRANSFORMS[self.transform](values))

    def to_document(self) -> dict[str, Any]:
        """Return the YAML document representation of the step."""
        return {self.tag: {self.target: f'#{self.transform}({self.path})'}}


